"""
Toolchain artifact handling.

Resolution of upstream archives, downloading, extraction, bundle assembly and
the pipeline that ties them together.
"""

from sdkgenerator.toolchain.catalog import (
    ArchiveKind,
    ArtifactCatalog,
    ArtifactDescriptor,
    DistributionEndpoints,
    DownloadableArtifacts,
    ToolVersions,
    resolve_artifacts,
)
from sdkgenerator.toolchain.extractor import (
    ContainerExtractionBackend,
    ExtractionBackend,
    Extractor,
    LocalExtractionBackend,
)
from sdkgenerator.toolchain.fetcher import ArtifactFetcher
from sdkgenerator.toolchain.assembler import BundleAssembler, ExtractedComponents
from sdkgenerator.toolchain.generator import (
    GenerationResult,
    GenerationSettings,
    GenerationState,
    SDKGenerator,
)

__all__ = [
    "ArchiveKind",
    "ArtifactCatalog",
    "ArtifactDescriptor",
    "DistributionEndpoints",
    "DownloadableArtifacts",
    "ToolVersions",
    "resolve_artifacts",
    "ContainerExtractionBackend",
    "ExtractionBackend",
    "Extractor",
    "LocalExtractionBackend",
    "ArtifactFetcher",
    "BundleAssembler",
    "ExtractedComponents",
    "GenerationResult",
    "GenerationSettings",
    "GenerationState",
    "SDKGenerator",
]
