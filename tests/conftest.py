"""
Pytest configuration and shared fixtures for sdk-generator tests.

Archives are synthesized in temporary directories; the external `ar` and `7z`
tools are replaced by FakeExtractionBackend, which understands the simplified
archives these fixtures produce:

- a test ".deb" is a gzip'd tarball standing in for its data.tar.gz member
- a test ".pkg" is a gzip'd tarball standing in for its single Payload
"""

import gzip
import io
import shutil
import tarfile
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from sdkgenerator.core.exceptions import ExtractionError
from sdkgenerator.core.paths import PathsConfiguration
from sdkgenerator.cross.architecture import CPUArchitecture
from sdkgenerator.cross.targets import BuildEnvironment, LinuxDistribution, PlatformTarget
from sdkgenerator.toolchain.catalog import ToolVersions
from sdkgenerator.toolchain.extractor import ExtractionBackend
from sdkgenerator.toolchain.generator import GenerationSettings


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


# ============================================================================
# Fake extraction backend
# ============================================================================


class FakeExtractionBackend(ExtractionBackend):
    """Records commands and emulates `ar x` and `7z x` for fixture archives."""

    name = "fake"

    def __init__(self):
        self.calls = []

    def run(self, args, cwd):
        args = [str(arg) for arg in args]
        self.calls.append((args, Path(cwd)))
        tool, archive = args[0], Path(args[-1])

        if tool == "ar":
            shutil.copyfile(archive, Path(cwd) / "data.tar.gz")
        elif tool == "7z":
            package_dir = Path(cwd) / "Toolchain.pkg"
            package_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(archive, package_dir / "Payload")
        else:
            raise ExtractionError(f"Unexpected tool: {tool}")


@pytest.fixture
def fake_backend() -> FakeExtractionBackend:
    return FakeExtractionBackend()


# ============================================================================
# Archive builders
# ============================================================================


def build_tarball(
    files: Dict[str, bytes], symlinks: Optional[Dict[str, str]] = None
) -> bytes:
    """Build a gzip'd tarball in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in sorted(files.items()):
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
        for name, target in sorted((symlinks or {}).items()):
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buffer.getvalue()


def build_packages_index(entries: Dict[str, Dict[str, str]]) -> bytes:
    """Build a gzip'd deb822 Packages index from {name: {field: value}}."""
    stanzas = []
    for name, fields in entries.items():
        lines = [f"Package: {name}"] + [f"{key}: {value}" for key, value in fields.items()]
        stanzas.append("\n".join(lines))
    return gzip.compress(("\n\n".join(stanzas) + "\n").encode("utf-8"))


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    return build_tarball


@pytest.fixture
def make_packages_index() -> Callable[..., bytes]:
    return build_packages_index


# ============================================================================
# Run inputs
# ============================================================================


@pytest.fixture
def paths(tmp_path: Path) -> PathsConfiguration:
    return PathsConfiguration(tmp_path / "root")


@pytest.fixture
def jammy_arm64() -> PlatformTarget:
    return PlatformTarget(LinuxDistribution("ubuntu", "22.04"), CPUArchitecture.ARM64)


@pytest.fixture
def arm64_mac() -> BuildEnvironment:
    return BuildEnvironment(CPUArchitecture.ARM64)


@pytest.fixture
def versions() -> ToolVersions:
    return ToolVersions("5.8-RELEASE", "16.0.4")


@pytest.fixture
def settings(versions, jammy_arm64, arm64_mac, paths) -> GenerationSettings:
    """Settings for a 5.8 jammy/arm64 run that never waits between retries."""
    return GenerationSettings(
        versions=versions,
        target=jammy_arm64,
        build=arm64_mac,
        paths=paths,
        max_workers=4,
        max_retries=2,
        timeout=5,
        backoff_factor=0,
    )
