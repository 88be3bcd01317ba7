"""
Architecture naming and target description.

This package maps the canonical CPU architecture onto every distributor's
spelling and describes the build and run-time machines of a generation run.
"""

from sdkgenerator.cross.architecture import (
    CPUArchitecture,
    NamingScheme,
    Triple,
    distributor_name,
    parse_architecture,
)
from sdkgenerator.cross.targets import (
    BuildEnvironment,
    HostOS,
    LinuxDistribution,
    PlatformTarget,
)

__all__ = [
    "CPUArchitecture",
    "NamingScheme",
    "Triple",
    "distributor_name",
    "parse_architecture",
    "BuildEnvironment",
    "HostOS",
    "LinuxDistribution",
    "PlatformTarget",
]
