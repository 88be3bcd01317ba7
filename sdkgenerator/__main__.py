"""
Entry point for running the SDK generator as a module.

Usage: python -m sdkgenerator [command] [options]
"""

from sdkgenerator.cli.parser import main

if __name__ == "__main__":
    main()
