"""
Swift SDK generator.

Builds self-contained Swift SDK artifact bundles that let a macOS host
cross-compile Swift code for Ubuntu Linux on x86_64 or arm64.
"""

__version__ = "0.1.0"
