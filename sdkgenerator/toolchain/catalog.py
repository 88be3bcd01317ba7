"""
Artifact catalog.

Resolves the concrete list of archives a generation run needs from the tool
versions, the platform target and the build environment. Each upstream
distributor gets its own URL template and its own architecture spelling:

    build-time Swift  download.swift.org  multi-arch macOS installer package
    build-time LLVM   github.com/llvm     provides ld.lld; VENDOR_OS spelling
    run-time Swift    download.swift.org  Linux tarball; LINUX_TRIPLE spelling
    Ubuntu packages   Ubuntu archive      sysroot .debs; DEBIAN_PACKAGE spelling

Build-time artifacts depend only on the build environment and run-time
artifacts only on the platform target.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from sdkgenerator.core.exceptions import UnresolvableVersion, UnsupportedHostOS
from sdkgenerator.core.paths import PathsConfiguration
from sdkgenerator.cross.architecture import (
    CPUArchitecture,
    NamingScheme,
    Triple,
    distributor_name,
)
from sdkgenerator.cross.targets import BuildEnvironment, HostOS, PlatformTarget

logger = logging.getLogger(__name__)

SWIFT_VERSION_PATTERN = re.compile(r"^(?P<number>\d+\.\d+(?:\.\d+)?)-RELEASE$")
LLD_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# LLVM publishes its macOS binaries for this Darwin release.
LLVM_DARWIN_VERSION = "22.0"


class ArchiveKind(Enum):
    """Archive formats the extractor knows how to unpack."""

    TARBALL = "tarball"
    INSTALLER_PACKAGE = "installer-package"
    DEBIAN_PACKAGE = "debian-package"
    PACKAGE_INDEX = "package-index"


@dataclass(frozen=True)
class ArtifactDescriptor:
    """
    One downloadable unit.

    Attributes:
        artifact_id: Stable identifier, unique within a run
        remote_url: Fully resolved download URL
        local_path: Cache location assigned by the path registry
        archive_kind: How the extractor unpacks the file
        expected_sha256: Expected SHA-256 digest, when upstream publishes one
    """

    artifact_id: str
    remote_url: str
    local_path: Path
    archive_kind: ArchiveKind
    expected_sha256: Optional[str] = None


@dataclass(frozen=True)
class DistributionEndpoints:
    """Base URLs of the upstream distribution services."""

    swift: str = "https://download.swift.org"
    llvm: str = "https://github.com/llvm/llvm-project/releases/download"
    ubuntu: str = "http://gb.archive.ubuntu.com/ubuntu"
    ubuntu_ports: str = "http://ports.ubuntu.com/ubuntu-ports"

    def ubuntu_mirror(self, cpu: CPUArchitecture) -> str:
        """Ubuntu hosts amd64 on the primary archive and other architectures on ports."""
        if cpu is CPUArchitecture.X86_64:
            return self.ubuntu.rstrip("/")
        return self.ubuntu_ports.rstrip("/")


@dataclass(frozen=True)
class ToolVersions:
    """
    Versions of the upstream tools packaged into the bundle.

    Raises:
        UnresolvableVersion: If a version doesn't follow its release naming pattern
    """

    swift_version: str
    lld_version: str
    swift_branch: Optional[str] = None

    def __post_init__(self):
        match = SWIFT_VERSION_PATTERN.match(self.swift_version or "")
        if not match:
            raise UnresolvableVersion("Swift", self.swift_version)
        if not LLD_VERSION_PATTERN.match(self.lld_version or ""):
            raise UnresolvableVersion("LLD", self.lld_version)
        if self.swift_branch is None:
            object.__setattr__(
                self, "swift_branch", f"swift-{match.group('number')}-release"
            )

    @property
    def swift_number(self) -> str:
        """Numeric part of the Swift version, e.g. '5.8'."""
        return SWIFT_VERSION_PATTERN.match(self.swift_version).group("number")


@dataclass(frozen=True)
class DownloadableArtifacts:
    """The three toolchain archives of a generation run."""

    build_time_swift: ArtifactDescriptor
    build_time_llvm: ArtifactDescriptor
    run_time_swift: ArtifactDescriptor

    def __iter__(self) -> Iterator[ArtifactDescriptor]:
        yield self.build_time_swift
        yield self.build_time_llvm
        yield self.run_time_swift


class ArtifactCatalog:
    """
    Computes download locations for every artifact of a run.

    Example:
        >>> catalog = ArtifactCatalog(versions, target, build, paths)
        >>> artifacts = catalog.resolve_artifacts()
        >>> artifacts.run_time_swift.remote_url
        'https://download.swift.org/swift-5.8-release/ubuntu2204-aarch64/...'
    """

    def __init__(
        self,
        versions: ToolVersions,
        target: PlatformTarget,
        build: BuildEnvironment,
        paths: PathsConfiguration,
        endpoints: Optional[DistributionEndpoints] = None,
    ):
        if build.host_os is not HostOS.MACOS:
            raise UnsupportedHostOS(build.host_os)

        self.versions = versions
        self.target = target
        self.build = build
        self.paths = paths
        self.endpoints = endpoints or DistributionEndpoints()

    def resolve_artifacts(self) -> DownloadableArtifacts:
        """Resolve the build-time and run-time toolchain archives."""
        artifacts = DownloadableArtifacts(
            build_time_swift=self._descriptor(
                "build-time-swift",
                self.build_time_swift_url(),
                ArchiveKind.INSTALLER_PACKAGE,
            ),
            build_time_llvm=self._descriptor(
                "build-time-llvm", self.build_time_llvm_url(), ArchiveKind.TARBALL
            ),
            run_time_swift=self._descriptor(
                "run-time-swift", self.run_time_swift_url(), ArchiveKind.TARBALL
            ),
        )
        for artifact in artifacts:
            logger.debug(f"Resolved {artifact.artifact_id}: {artifact.remote_url}")
        return artifacts

    def build_time_swift_url(self) -> str:
        """macOS toolchain installer; one package serves every host architecture."""
        version = self.versions.swift_version
        base = self.endpoints.swift.rstrip("/")
        return (
            f"{base}/{self.versions.swift_branch}/xcode/"
            f"swift-{version}/swift-{version}-osx.pkg"
        )

    def build_time_llvm_url(self) -> str:
        lld = self.versions.lld_version
        host = Triple.darwin(self.build.cpu, LLVM_DARWIN_VERSION)
        base = self.endpoints.llvm.rstrip("/")
        return f"{base}/llvmorg-{lld}/clang+llvm-{lld}-{host}.tar.xz"

    def run_time_swift_url(self) -> str:
        version = self.versions.swift_version
        distribution = self.target.distribution
        # swift.org omits the architecture suffix for x86_64 builds.
        if self.target.cpu is CPUArchitecture.X86_64:
            suffix = ""
        else:
            suffix = "-" + distributor_name(self.target.cpu, NamingScheme.LINUX_TRIPLE)
        platform_dir = f"{distribution.name}{distribution.version.replace('.', '')}{suffix}"
        platform_name = f"{distribution.name}{distribution.version}{suffix}"
        base = self.endpoints.swift.rstrip("/")
        return (
            f"{base}/{self.versions.swift_branch}/{platform_dir}/"
            f"swift-{version}/swift-{version}-{platform_name}.tar.gz"
        )

    def package_index_artifact(self, component: str = "main") -> ArtifactDescriptor:
        """Ubuntu `Packages.gz` index for the run-time architecture."""
        distribution = self.target.distribution
        deb_arch = distributor_name(self.target.cpu, NamingScheme.DEBIAN_PACKAGE)
        mirror = self.endpoints.ubuntu_mirror(self.target.cpu)
        url = (
            f"{mirror}/dists/{distribution.codename}/{component}/"
            f"binary-{deb_arch}/Packages.gz"
        )
        name = f"{distribution.name}-{distribution.codename}-{component}-{deb_arch}-Packages.gz"
        return ArtifactDescriptor(
            artifact_id=f"package-index-{component}",
            remote_url=url,
            local_path=self.paths.artifact_cache_path(url, name),
            archive_kind=ArchiveKind.PACKAGE_INDEX,
        )

    def _descriptor(
        self, artifact_id: str, url: str, kind: ArchiveKind
    ) -> ArtifactDescriptor:
        return ArtifactDescriptor(
            artifact_id=artifact_id,
            remote_url=url,
            local_path=self.paths.artifact_cache_path(url),
            archive_kind=kind,
        )


def resolve_artifacts(
    versions: ToolVersions,
    target: PlatformTarget,
    build: BuildEnvironment,
    paths: PathsConfiguration,
    endpoints: Optional[DistributionEndpoints] = None,
) -> DownloadableArtifacts:
    """Convenience wrapper around ArtifactCatalog.resolve_artifacts()."""
    return ArtifactCatalog(versions, target, build, paths, endpoints).resolve_artifacts()
