"""
Filesystem locations used by a generation run.

PathsConfiguration is the only place bundle, cache and working paths are
computed. Every other component asks it for locations instead of joining
paths on its own.

Directory Structure (under the source root):
    Artifacts/                    : Downloaded archives, keyed by file name
    Build/                        : Extracted archives, one directory per archive
    Bundles/<id>.artifactbundle/  : Generated artifact bundle
        info.json                 : Bundle manifest
        <id>/swift-sdk.json       : SDK metadata listing target triples
        <id>/<triple>/toolset.json
        <id>/<triple>/<distro>-<codename>.sdk/
        <id>/<triple>/swift.xctoolchain/usr/bin/
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from sdkgenerator.cross.architecture import NamingScheme, distributor_name
from sdkgenerator.cross.targets import LinuxDistribution, PlatformTarget


def make_artifact_id(swift_version: str, target: PlatformTarget) -> str:
    """
    Compute the bundle identifier.

    Example:
        >>> make_artifact_id("5.8-RELEASE", target)
        '5.8-RELEASE_ubuntu_22.04_aarch64'
    """
    distribution = target.distribution
    cpu = distributor_name(target.cpu, NamingScheme.LINUX_TRIPLE)
    return f"{swift_version}_{distribution.name}_{distribution.version}_{cpu}"


@dataclass(frozen=True)
class BundleLayout:
    """Destination paths of one bundle, derived from the run's inputs."""

    artifact_id: str
    bundle_path: Path
    variant_path: Path
    triple: str
    triple_path: Path
    sdk_dir_path: Path
    toolchain_dir_path: Path
    toolchain_bin_dir_path: Path
    toolset_path: Path
    sdk_metadata_path: Path
    manifest_path: Path

    def relative_to_variant(self, path: Path) -> str:
        """POSIX path of `path` relative to the variant directory."""
        return path.relative_to(self.variant_path).as_posix()

    def all_dirs(self) -> list:
        return [
            self.bundle_path,
            self.variant_path,
            self.triple_path,
            self.sdk_dir_path,
            self.toolchain_bin_dir_path,
        ]


@dataclass(frozen=True)
class PathsConfiguration:
    """
    Authoritative source of every path the generator reads or writes.

    Attributes:
        source_root: Root directory under which all output is created
    """

    source_root: Path

    def __post_init__(self):
        object.__setattr__(self, "source_root", Path(self.source_root))

    @property
    def artifacts_cache_dir(self) -> Path:
        return self.source_root / "Artifacts"

    @property
    def working_dir(self) -> Path:
        return self.source_root / "Build"

    @property
    def bundles_dir(self) -> Path:
        return self.source_root / "Bundles"

    def artifact_cache_path(self, url: str, name: Optional[str] = None) -> Path:
        """
        Local cache file for a remote URL.

        Files are keyed by the URL's file name unless `name` is given, which
        callers use when several URLs share a file name (package indexes).
        """
        name = name or posixpath.basename(urlparse(url).path)
        if not name:
            raise ValueError(f"URL has no file name: {url}")
        return self.artifacts_cache_dir / name

    def extraction_dir(self, archive_path: Union[str, Path]) -> Path:
        """Working directory holding the extracted contents of an archive."""
        name = Path(archive_path).name
        for suffix in (".tar.gz", ".tar.xz", ".tgz", ".pkg", ".deb", ".gz"):
            if name.endswith(suffix):
                name = name[: -len(suffix)]
                break
        return self.working_dir / name

    def artifact_bundle_path(self, artifact_id: str) -> Path:
        return self.bundles_dir / f"{artifact_id}.artifactbundle"

    def bundle_layout(self, swift_version: str, target: PlatformTarget) -> BundleLayout:
        """
        Compute the bundle layout for a Swift version and platform target.

        Identical inputs always produce identical paths.
        """
        artifact_id = make_artifact_id(swift_version, target)
        bundle_path = self.artifact_bundle_path(artifact_id)
        variant_path = bundle_path / artifact_id
        triple = str(target.triple)
        triple_path = variant_path / triple
        toolchain_dir = triple_path / "swift.xctoolchain"

        return BundleLayout(
            artifact_id=artifact_id,
            bundle_path=bundle_path,
            variant_path=variant_path,
            triple=triple,
            triple_path=triple_path,
            sdk_dir_path=triple_path / sdk_dir_name(target.distribution),
            toolchain_dir_path=toolchain_dir,
            toolchain_bin_dir_path=toolchain_dir / "usr" / "bin",
            toolset_path=triple_path / "toolset.json",
            sdk_metadata_path=variant_path / "swift-sdk.json",
            manifest_path=bundle_path / "info.json",
        )


def sdk_dir_name(distribution: LinuxDistribution) -> str:
    return f"{distribution}.sdk"
