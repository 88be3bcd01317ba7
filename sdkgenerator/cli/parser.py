"""
sdk-generator CLI argument parser.

This module implements the command-line interface for the SDK generator using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sdkgenerator import __version__
from sdkgenerator.cli.utils import print_error
from sdkgenerator.config.parser import DEFAULT_CONFIG_FILE
from sdkgenerator.core.exceptions import GeneratorError

logger = logging.getLogger(__name__)

COMMANDS = {
    "generate": "sdkgenerator.cli.commands.generate",
    "resolve": "sdkgenerator.cli.commands.resolve",
}


class CLI:
    """sdk-generator command-line interface."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="sdk-generator",
            description="Generate Swift SDK bundles for cross-compiling to Linux",
            epilog='Use "sdk-generator COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"sdk-generator {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help=f"Path to configuration file (default: ./{DEFAULT_CONFIG_FILE})",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        generation_options = self._generation_options()
        self._add_generate_command(subparsers, generation_options)
        self._add_resolve_command(subparsers, generation_options)

        return parser

    def _generation_options(self) -> argparse.ArgumentParser:
        """Options shared by every command that describes a bundle."""
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument(
            "--swift-version", metavar="VERSION", help="Swift release, e.g. 5.8-RELEASE"
        )
        parent.add_argument(
            "--swift-branch",
            metavar="BRANCH",
            help="download.swift.org branch (default: derived from --swift-version)",
        )
        parent.add_argument(
            "--lld-version", metavar="VERSION", help="LLVM release providing ld.lld"
        )
        parent.add_argument(
            "--ubuntu-version", metavar="VERSION", help="Target Ubuntu release (20.04, 22.04)"
        )
        parent.add_argument(
            "--host-arch",
            metavar="ARCH",
            help="CPU of the machine running the compiler (default: this machine)",
        )
        parent.add_argument(
            "--macos-version",
            metavar="VERSION",
            help="Oldest macOS release the bundle declares as its host (default: 13.0)",
        )
        parent.add_argument(
            "--target-arch",
            metavar="ARCH",
            help="CPU the compiled code runs on (default: --host-arch)",
        )
        parent.add_argument(
            "--source-root",
            type=Path,
            metavar="PATH",
            help="Directory holding Artifacts/, Build/ and Bundles/ (default: current directory)",
        )
        parent.add_argument(
            "--with-docker",
            action="store_true",
            help="Run ar and 7z inside a Linux container",
        )
        parent.add_argument(
            "--docker-image", metavar="IMAGE", help="Image used with --with-docker"
        )
        parent.add_argument(
            "--max-workers", type=int, metavar="N", help="Parallel downloads and extractions"
        )
        return parent

    def _add_generate_command(self, subparsers, parent):
        """Add 'generate' subcommand."""
        subparsers.add_parser(
            "generate",
            parents=[parent],
            help="Generate an SDK bundle",
            description="Download, extract and assemble a Swift SDK artifact bundle",
        )

    def _add_resolve_command(self, subparsers, parent):
        """Add 'resolve' subcommand."""
        subparsers.add_parser(
            "resolve",
            parents=[parent],
            help="Show artifact URLs and bundle paths",
            description="Print what a generate run would download and write, without side effects",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except GeneratorError as e:
            print_error(str(e))
            if parsed_args.verbose:
                logger.debug("Traceback:", exc_info=True)
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = COMMANDS.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
