"""
Unit tests for platform targets, build environments and distributions.
"""

import dataclasses

import pytest

from sdkgenerator.core.exceptions import (
    UnknownDistributionVersion,
    UnknownMacOSVersion,
    UnsupportedHostOS,
)
from sdkgenerator.cross.architecture import CPUArchitecture
from sdkgenerator.cross.targets import (
    BuildEnvironment,
    HostOS,
    LinuxDistribution,
    PlatformTarget,
)


class TestLinuxDistribution:
    """Tests for LinuxDistribution."""

    @pytest.mark.parametrize(
        "version, codename", [("20.04", "focal"), ("22.04", "jammy")]
    )
    def test_known_releases(self, version, codename):
        distribution = LinuxDistribution("ubuntu", version)

        assert distribution.codename == codename
        assert str(distribution) == f"ubuntu-{codename}"

    def test_packages_include_libc_headers(self):
        packages = LinuxDistribution("ubuntu", "22.04").packages

        assert "libc6-dev" in packages
        assert "linux-libc-dev" in packages
        assert "libstdc++-12-dev" in packages

    @pytest.mark.parametrize(
        "name, version", [("ubuntu", "18.04"), ("ubuntu", "24.10"), ("debian", "12")]
    )
    def test_unknown_release_rejected(self, name, version):
        """Test unsupported releases fail at construction."""
        with pytest.raises(UnknownDistributionVersion) as exc_info:
            LinuxDistribution(name, version)

        assert exc_info.value.version == version

    def test_equality_ignores_release_record(self):
        assert LinuxDistribution("ubuntu", "22.04") == LinuxDistribution("ubuntu", "22.04")


class TestPlatformTarget:
    """Tests for PlatformTarget."""

    def test_triple(self):
        target = PlatformTarget(LinuxDistribution("ubuntu", "22.04"), CPUArchitecture.ARM64)

        assert str(target.triple) == "aarch64-unknown-linux-gnu"
        assert target.os_family == "linux"

    def test_immutable(self):
        target = PlatformTarget(LinuxDistribution("ubuntu", "22.04"), CPUArchitecture.ARM64)

        with pytest.raises(dataclasses.FrozenInstanceError):
            target.cpu = CPUArchitecture.X86_64


class TestBuildEnvironment:
    """Tests for BuildEnvironment and HostOS."""

    def test_default_host_is_macos(self):
        build = BuildEnvironment(CPUArchitecture.X86_64)

        assert build.host_os is HostOS.MACOS
        assert str(build.triple) == "x86_64-apple-macosx13.0"

    @pytest.mark.parametrize("text", ["macos", "Darwin", "macosx", "osx"])
    def test_parse_macos(self, text):
        assert HostOS.parse(text) is HostOS.MACOS

    @pytest.mark.parametrize("text", ["linux", "windows"])
    def test_parse_unsupported(self, text):
        with pytest.raises(UnsupportedHostOS):
            HostOS.parse(text)

    @pytest.mark.parametrize("version, expected", [("14.0", "14.0"), ("12", "12.0")])
    def test_macos_version_in_triple(self, version, expected):
        build = BuildEnvironment(CPUArchitecture.ARM64, macos_version=version)

        assert build.macos_version == expected
        assert str(build.triple) == f"arm64-apple-macosx{expected}"

    @pytest.mark.parametrize("version", ["10.15", "15.0", "latest", ""])
    def test_unknown_macos_version(self, version):
        with pytest.raises(UnknownMacOSVersion) as exc_info:
            BuildEnvironment(CPUArchitecture.ARM64, macos_version=version)

        assert exc_info.value.version == version
