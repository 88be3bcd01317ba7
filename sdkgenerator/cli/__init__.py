"""Command-line interface for the SDK generator."""

from sdkgenerator.cli.parser import CLI, main

__all__ = ["CLI", "main"]
