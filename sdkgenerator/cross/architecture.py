"""
CPU architecture naming.

Swift on macOS, Swift on Linux and Debian packages all use different names
for the x86 and Arm architectures:

                        |  x86_64    arm64
       ------------------------------------
       Swift macOS      |  x86_64    arm64
       Swift Linux      |  x86_64  aarch64
       Debian packages  |   amd64    arm64

CPUArchitecture is the only identifier stored anywhere; every distributor
spelling is derived from it through distributor_name().
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sdkgenerator.core.exceptions import UnsupportedArchitecture


class CPUArchitecture(Enum):
    """Supported CPU architectures."""

    X86_64 = "x86_64"
    ARM64 = "arm64"

    def __str__(self) -> str:
        return self.value


class NamingScheme(Enum):
    """Architecture spelling conventions used by upstream distributors."""

    VENDOR_OS = "vendor-os"
    """Swift-on-macOS / Darwin spelling"""

    LINUX_TRIPLE = "linux-triple"
    """Swift-on-Linux / GNU target triple spelling"""

    DEBIAN_PACKAGE = "debian-package"
    """Debian and Ubuntu package architecture spelling"""


_DISTRIBUTOR_NAMES = {
    (CPUArchitecture.X86_64, NamingScheme.VENDOR_OS): "x86_64",
    (CPUArchitecture.X86_64, NamingScheme.LINUX_TRIPLE): "x86_64",
    (CPUArchitecture.X86_64, NamingScheme.DEBIAN_PACKAGE): "amd64",
    (CPUArchitecture.ARM64, NamingScheme.VENDOR_OS): "arm64",
    (CPUArchitecture.ARM64, NamingScheme.LINUX_TRIPLE): "aarch64",
    (CPUArchitecture.ARM64, NamingScheme.DEBIAN_PACKAGE): "arm64",
}


def distributor_name(arch: CPUArchitecture, scheme: NamingScheme) -> str:
    """
    Spell an architecture the way a given distributor does.

    Args:
        arch: Canonical CPU architecture
        scheme: Naming convention expected by the consumer of the string

    Returns:
        Distributor-specific architecture name

    Raises:
        UnsupportedArchitecture: If arch is not a supported CPUArchitecture

    Example:
        >>> distributor_name(CPUArchitecture.ARM64, NamingScheme.LINUX_TRIPLE)
        'aarch64'
    """
    try:
        return _DISTRIBUTOR_NAMES[(arch, scheme)]
    except (KeyError, TypeError):
        raise UnsupportedArchitecture(arch) from None


def parse_architecture(value: str) -> CPUArchitecture:
    """
    Parse any known distributor spelling into a CPUArchitecture.

    Args:
        value: Architecture name such as 'x86_64', 'amd64', 'arm64' or 'aarch64'

    Returns:
        Canonical CPUArchitecture

    Raises:
        UnsupportedArchitecture: If no distributor uses this spelling
    """
    if isinstance(value, CPUArchitecture):
        return value

    normalized = str(value).strip().lower()
    for (arch, _scheme), name in _DISTRIBUTOR_NAMES.items():
        if name == normalized:
            return arch

    raise UnsupportedArchitecture(value)


@dataclass(frozen=True)
class Triple:
    """
    Target triple such as 'aarch64-unknown-linux-gnu' or 'arm64-apple-macosx13.0'.

    Attributes:
        cpu: Canonical CPU architecture
        vendor: Vendor component ('unknown', 'apple')
        os: OS component ('linux', 'macosx', 'darwin')
        os_version: Optional OS version appended to the OS component
        environment: Optional environment component ('gnu')
    """

    cpu: CPUArchitecture
    vendor: str
    os: str
    os_version: Optional[str] = None
    environment: Optional[str] = None

    @classmethod
    def linux_gnu(cls, cpu: CPUArchitecture) -> "Triple":
        return cls(cpu, "unknown", "linux", environment="gnu")

    @classmethod
    def macos(cls, cpu: CPUArchitecture, version: str = "13.0") -> "Triple":
        return cls(cpu, "apple", "macosx", os_version=version)

    @classmethod
    def darwin(cls, cpu: CPUArchitecture, version: str = "22.0") -> "Triple":
        return cls(cpu, "apple", "darwin", os_version=version)

    @property
    def scheme(self) -> NamingScheme:
        """Naming scheme used for the CPU component of this triple."""
        if self.vendor == "apple":
            return NamingScheme.VENDOR_OS
        return NamingScheme.LINUX_TRIPLE

    def __str__(self) -> str:
        parts = [
            distributor_name(self.cpu, self.scheme),
            self.vendor,
            self.os + (self.os_version or ""),
        ]
        if self.environment:
            parts.append(self.environment)
        return "-".join(parts)
