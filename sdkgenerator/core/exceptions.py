"""
Centralized exception hierarchy for the SDK generator.

Every failure raised by the generation pipeline derives from GeneratorError so
callers (the CLI in particular) can report a single error type. Subclasses are
grouped by the taxonomy the pipeline distinguishes: configuration problems,
fetch failures, extraction failures, and assembly failures.
"""

from pathlib import Path
from typing import Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class GeneratorError(Exception):
    """Base exception for all SDK generator errors."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(GeneratorError):
    """Invalid generator input, detected before any side effect."""

    pass


class ConfigError(ConfigurationError):
    """Configuration file parsing or validation error."""

    pass


class UnsupportedArchitecture(ConfigurationError):
    """Raised for a CPU architecture outside the supported set."""

    def __init__(self, value):
        self.value = value
        super().__init__(
            f"CPU architecture `{value}` is not supported by this generator."
        )


class UnknownDistributionVersion(ConfigurationError):
    """Raised for a Linux distribution or release the generator doesn't know."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(
            f"{name} Linux version `{version}` is not supported by this generator."
        )


class UnsupportedHostOS(ConfigurationError):
    """Raised when the build host OS has no artifact catalog."""

    def __init__(self, host_os: str):
        self.host_os = host_os
        super().__init__(
            f"Build host OS `{host_os}` is not supported by this generator."
        )


class UnknownMacOSVersion(ConfigurationError):
    """Raised when the build host's macOS release isn't supported."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"macOS version `{version}` is not supported by this generator.")


class UnresolvableVersion(ConfigurationError):
    """Raised when a tool version doesn't match a known release naming pattern."""

    def __init__(self, tool: str, version: str):
        self.tool = tool
        self.version = version
        super().__init__(
            f"{tool} version `{version}` does not match a known release pattern."
        )


# ============================================================================
# Fetch Exceptions
# ============================================================================


class FetchError(GeneratorError):
    """Base exception for artifact download failures."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class DownloadError(FetchError):
    """Download failed (retries exhausted or non-retryable HTTP status)."""

    pass


class RemoteArtifactNotFound(DownloadError):
    """The resolved URL does not exist upstream (HTTP 404)."""

    def __init__(self, url: str):
        super().__init__(
            f"Remote artifact not found (HTTP 404): {url}. "
            "The computed download URL is likely wrong.",
            url=url,
        )


class IntegrityMismatch(FetchError):
    """Downloaded content doesn't match its expected SHA-256."""

    def __init__(self, name: str, expected: str, actual: str, url: Optional[str] = None):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {name}: expected {expected}, got {actual}",
            url=url,
        )


class DownloadCancelled(FetchError):
    """Download aborted because another task of the same run failed."""

    pass


class PackageResolutionError(GeneratorError):
    """A required distribution package is missing from the package index."""

    pass


# ============================================================================
# Extraction Exceptions
# ============================================================================


class ExtractionError(GeneratorError):
    """Base exception for archive extraction errors."""

    pass


class UnsupportedArchiveFormat(ExtractionError):
    """Archive kind has no extraction strategy."""

    pass


class InsecureArchiveError(ExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


class ExtractionFailed(ExtractionError):
    """Unpacking did not complete; wraps the underlying I/O or format error."""

    def __init__(self, archive: Path, reason: str):
        self.archive = Path(archive)
        self.reason = reason
        super().__init__(f"Failed to extract {self.archive.name}: {reason}")


# ============================================================================
# Assembly and Pipeline Exceptions
# ============================================================================


class AssemblyError(GeneratorError):
    """Bundle assembly failed."""

    pass


class PipelineError(GeneratorError):
    """Top-level failure of a generation run, naming the stage and artifact."""

    def __init__(self, stage: str, artifact_id: Optional[str], cause: Exception):
        self.stage = stage
        self.artifact_id = artifact_id
        self.cause = cause
        where = f" ({artifact_id})" if artifact_id else ""
        super().__init__(f"Generation failed while {stage}{where}: {cause}")
