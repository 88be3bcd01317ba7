"""
Generate command implementation.

Runs the full pipeline and reports where the bundle was written.
"""

import logging

from sdkgenerator.cli.utils import format_success_message, settings_from_args
from sdkgenerator.core.download import DownloadProgress, format_progress
from sdkgenerator.toolchain.generator import SDKGenerator

logger = logging.getLogger(__name__)


def _log_progress(artifact_id: str, progress: DownloadProgress) -> None:
    logger.debug(f"{artifact_id}: {format_progress(progress)}")


def run(args) -> int:
    """
    Run the generate command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = settings_from_args(args)
    generator = SDKGenerator(settings, progress_callback=_log_progress)
    result = generator.run()

    print(
        format_success_message(
            "Swift SDK bundle generated",
            {
                "Artifact ID": result.artifact_id,
                "Bundle": result.bundle_path,
                "Downloaded": len(result.downloaded),
                "From cache": len(result.cached),
            },
            next_steps=[
                f"swift experimental-sdk install {result.bundle_path}",
                f"swift build --experimental-swift-sdk {result.artifact_id}",
            ],
        )
    )
    return 0
