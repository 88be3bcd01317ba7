"""
Ubuntu package index resolution.

The target sysroot is built from a fixed set of Ubuntu packages. Their
download locations and checksums come from the release's `Packages.gz`
index, a gzip-compressed series of deb822 stanzas:

    Package: libc6-dev
    Architecture: arm64
    Filename: pool/main/g/glibc/libc6-dev_2.35-0ubuntu3_arm64.deb
    SHA256: 3f1c...

    Package: zlib1g
    ...
"""

import gzip
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Union

from sdkgenerator.core.exceptions import PackageResolutionError
from sdkgenerator.core.paths import PathsConfiguration
from sdkgenerator.cross.architecture import CPUArchitecture
from sdkgenerator.toolchain.catalog import (
    ArchiveKind,
    ArtifactDescriptor,
    DistributionEndpoints,
)

logger = logging.getLogger(__name__)


def iter_stanzas(lines: Iterable[str]) -> Iterator[Dict[str, str]]:
    """
    Split deb822 text into one dict per stanza.

    Continuation lines (starting with whitespace) are appended to the
    previous field.
    """
    stanza: Dict[str, str] = {}
    field = None

    for raw in lines:
        line = raw.rstrip("\n")
        if not line.strip():
            if stanza:
                yield stanza
            stanza, field = {}, None
            continue
        if line[0] in " \t":
            if field is not None:
                stanza[field] += "\n" + line.strip()
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        field = key.strip()
        stanza[field] = value.strip()

    if stanza:
        yield stanza


def parse_packages_index(index_path: Union[str, Path]) -> Dict[str, Dict[str, str]]:
    """
    Parse a `Packages` or `Packages.gz` file.

    Returns:
        Mapping of package name to its stanza; the first stanza wins when a
        package is listed more than once.

    Raises:
        PackageResolutionError: If the file can't be read or decompressed
    """
    index_path = Path(index_path)
    opener = gzip.open if index_path.suffix == ".gz" else open

    packages: Dict[str, Dict[str, str]] = {}
    try:
        with opener(index_path, "rt", encoding="utf-8", errors="replace") as f:
            for stanza in iter_stanzas(f):
                name = stanza.get("Package")
                if name and name not in packages:
                    packages[name] = stanza
    except (OSError, EOFError) as e:
        raise PackageResolutionError(
            f"Failed to read package index {index_path}: {e}"
        ) from e

    logger.debug(f"Parsed {len(packages)} packages from {index_path.name}")
    return packages


def resolve_package_artifacts(
    index: Dict[str, Dict[str, str]],
    package_names: Iterable[str],
    cpu: CPUArchitecture,
    paths: PathsConfiguration,
    endpoints: DistributionEndpoints,
) -> List[ArtifactDescriptor]:
    """
    Turn package names into downloadable .deb descriptors.

    Raises:
        PackageResolutionError: If a package is missing from the index or
            its stanza lacks a file name or checksum
    """
    package_names = list(package_names)
    mirror = endpoints.ubuntu_mirror(cpu)
    missing = [name for name in package_names if name not in index]
    if missing:
        raise PackageResolutionError(
            f"Packages not found in index: {', '.join(missing)}"
        )

    artifacts = []
    for name in package_names:
        stanza = index[name]
        filename = stanza.get("Filename")
        sha256 = stanza.get("SHA256")
        if not filename or not sha256:
            raise PackageResolutionError(
                f"Index entry for {name} has no Filename or SHA256"
            )

        url = f"{mirror}/{filename.lstrip('/')}"
        artifacts.append(
            ArtifactDescriptor(
                artifact_id=f"deb-{name}",
                remote_url=url,
                local_path=paths.artifact_cache_path(url),
                archive_kind=ArchiveKind.DEBIAN_PACKAGE,
                expected_sha256=sha256.lower(),
            )
        )

    return artifacts
