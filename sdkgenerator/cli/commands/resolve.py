"""
Resolve command implementation.

Prints the download URLs and bundle locations a generation run would use,
without downloading or writing anything.
"""

import logging

from sdkgenerator.cli.utils import settings_from_args
from sdkgenerator.toolchain.catalog import ArtifactCatalog

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the resolve command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = settings_from_args(args)
    catalog = ArtifactCatalog(
        settings.versions,
        settings.target,
        settings.build,
        settings.paths,
        settings.endpoints,
    )
    layout = settings.paths.bundle_layout(settings.versions.swift_version, settings.target)

    print(f"Artifact ID: {layout.artifact_id}")
    print(f"Bundle:      {layout.bundle_path}")
    print(f"SDK:         {layout.sdk_dir_path}")
    print("")
    for artifact in [*catalog.resolve_artifacts(), catalog.package_index_artifact()]:
        print(f"{artifact.artifact_id}:")
        print(f"  url:   {artifact.remote_url}")
        print(f"  cache: {artifact.local_path}")

    packages = ", ".join(settings.target.distribution.packages)
    print("")
    print(f"Distribution packages: {packages}")
    return 0
