"""
Core functionality for the SDK generator.

This package contains the foundational modules that other components depend on.
The path registry (sdkgenerator.core.paths) and host detection
(sdkgenerator.core.platform) build on sdkgenerator.cross and are imported
from their modules directly.
"""

from .exceptions import (
    GeneratorError,
    ConfigurationError,
    ConfigError,
    UnsupportedArchitecture,
    UnknownDistributionVersion,
    UnsupportedHostOS,
    UnknownMacOSVersion,
    UnresolvableVersion,
    FetchError,
    DownloadError,
    RemoteArtifactNotFound,
    IntegrityMismatch,
    DownloadCancelled,
    PackageResolutionError,
    ExtractionError,
    UnsupportedArchiveFormat,
    InsecureArchiveError,
    ExtractionFailed,
    AssemblyError,
    PipelineError,
)

from .download import (
    DownloadProgress,
    download_file,
    format_progress,
)

from .filesystem import (
    atomic_write,
    extract_tarball,
    safe_rmtree,
)

from .verification import (
    compute_file_hash,
    verify_file_hash,
)

__all__ = [
    "GeneratorError",
    "ConfigurationError",
    "ConfigError",
    "UnsupportedArchitecture",
    "UnknownDistributionVersion",
    "UnsupportedHostOS",
    "UnknownMacOSVersion",
    "UnresolvableVersion",
    "FetchError",
    "DownloadError",
    "RemoteArtifactNotFound",
    "IntegrityMismatch",
    "DownloadCancelled",
    "PackageResolutionError",
    "ExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "ExtractionFailed",
    "AssemblyError",
    "PipelineError",
    "DownloadProgress",
    "download_file",
    "format_progress",
    "atomic_write",
    "extract_tarball",
    "safe_rmtree",
    "compute_file_hash",
    "verify_file_hash",
]
