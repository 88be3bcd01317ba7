"""
Platform targets and build environments.

A generation run is described by two independent machines: the build
environment that runs the compiler and the platform target the compiled code
runs on. Both are immutable and constructed once per run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple

from sdkgenerator.core.exceptions import (
    UnknownDistributionVersion,
    UnknownMacOSVersion,
    UnsupportedHostOS,
)
from sdkgenerator.cross.architecture import CPUArchitecture, Triple


class HostOS(Enum):
    """Operating systems the generated bundle's compiler runs on."""

    MACOS = "macos"

    @classmethod
    def parse(cls, value: str) -> "HostOS":
        normalized = str(value).strip().lower()
        if normalized in ("macos", "macosx", "darwin", "osx"):
            return cls.MACOS
        raise UnsupportedHostOS(value)


@dataclass(frozen=True)
class UbuntuRelease:
    """Ubuntu release known to the generator."""

    version: str
    codename: str
    packages: Tuple[str, ...]


# Packages providing the target sysroot: C library, kernel headers, the
# release's default GCC runtime, ICU and zlib.
UBUNTU_RELEASES: Dict[str, UbuntuRelease] = {
    "20.04": UbuntuRelease(
        version="20.04",
        codename="focal",
        packages=(
            "libc6",
            "libc6-dev",
            "linux-libc-dev",
            "libgcc-s1",
            "libgcc-9-dev",
            "libicu66",
            "libicu-dev",
            "libstdc++-9-dev",
            "libstdc++6",
            "zlib1g",
            "zlib1g-dev",
        ),
    ),
    "22.04": UbuntuRelease(
        version="22.04",
        codename="jammy",
        packages=(
            "libc6",
            "libc6-dev",
            "linux-libc-dev",
            "libgcc-s1",
            "libgcc-12-dev",
            "libicu70",
            "libicu-dev",
            "libstdc++-12-dev",
            "libstdc++6",
            "zlib1g",
            "zlib1g-dev",
        ),
    ),
}


@dataclass(frozen=True)
class LinuxDistribution:
    """
    Linux distribution and release of the target.

    Raises:
        UnknownDistributionVersion: If the name or version isn't supported
    """

    name: str
    version: str
    release: UbuntuRelease = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.name != "ubuntu" or self.version not in UBUNTU_RELEASES:
            raise UnknownDistributionVersion(self.name, self.version)
        object.__setattr__(self, "release", UBUNTU_RELEASES[self.version])

    @property
    def codename(self) -> str:
        return self.release.codename

    @property
    def packages(self) -> Tuple[str, ...]:
        return self.release.packages

    def __str__(self) -> str:
        return f"{self.name}-{self.codename}"


@dataclass(frozen=True)
class PlatformTarget:
    """What the generated bundle allows code to run on."""

    distribution: LinuxDistribution
    cpu: CPUArchitecture
    os_family: str = "linux"

    @property
    def triple(self) -> Triple:
        return Triple.linux_gnu(self.cpu)


# macOS releases the bundle can declare as its host; the triple carries the
# minimum deployment version.
MACOS_VERSIONS = ("12.0", "13.0", "14.0")
DEFAULT_MACOS_VERSION = "13.0"


@dataclass(frozen=True)
class BuildEnvironment:
    """
    The machine the compiler itself runs on.

    Raises:
        UnknownMacOSVersion: If macos_version isn't a supported release
    """

    cpu: CPUArchitecture
    host_os: HostOS = HostOS.MACOS
    macos_version: str = DEFAULT_MACOS_VERSION

    def __post_init__(self):
        version = str(self.macos_version).strip()
        if version.isdigit():
            version += ".0"
        if version not in MACOS_VERSIONS:
            raise UnknownMacOSVersion(self.macos_version)
        object.__setattr__(self, "macos_version", version)

    @property
    def triple(self) -> Triple:
        return Triple.macos(self.cpu, self.macos_version)
