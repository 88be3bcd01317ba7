"""
Shared utilities for CLI commands.

Turns parsed command-line arguments into validated generation settings and
formats command output consistently.
"""

import logging
import sys
from typing import Any, Dict, Optional

from sdkgenerator.config.parser import GeneratorConfig, load_config
from sdkgenerator.toolchain.generator import GenerationSettings

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================


def config_from_args(args) -> GeneratorConfig:
    """
    Load the configuration file and apply command-line overrides.

    Flags left unset on the command line keep the file's (or default) value.
    """
    config = load_config(
        args.config,
        swift_version=args.swift_version,
        swift_branch=args.swift_branch,
        lld_version=args.lld_version,
        distribution_version=args.ubuntu_version,
        build_cpu=args.host_arch,
        macos_version=args.macos_version,
        run_time_cpu=args.target_arch,
        source_root=args.source_root,
        use_container=True if args.with_docker else None,
        container_image=args.docker_image,
        max_workers=args.max_workers,
    )
    logger.debug(f"Effective configuration: {config}")
    return config


def settings_from_args(args) -> GenerationSettings:
    """Validate the effective configuration before anything touches disk or network."""
    return config_from_args(args).validate()


# ============================================================================
# Output
# ============================================================================


def format_success_message(
    title: str,
    details: Dict[str, Any],
    next_steps: Optional[list] = None,
    width: int = 70,
) -> str:
    """
    Format a standardized success message.

    Args:
        title: Success message title
        details: Key-value pairs to display
        next_steps: Optional list of next step instructions
        width: Width of message box

    Returns:
        Formatted message string
    """
    lines = ["=" * width, title, "=" * width, ""]

    for key, value in details.items():
        lines.append(f"{key}: {value}")

    if next_steps:
        lines.append("")
        lines.append("Next steps:")
        for step in next_steps:
            lines.append(f"  {step}")

    lines.append("")
    return "\n".join(lines)


def print_error(message: str, details: Optional[str] = None):
    """Print error message to stderr in consistent format."""
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)
