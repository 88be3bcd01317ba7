"""YAML configuration parser for the SDK generator.

This module provides parsing and validation for sdk-generator.yaml files:

    swift:
      version: 5.8-RELEASE
      branch: swift-5.8-release      # optional, derived from the version
    lld_version: 16.0.4
    distribution:
      name: ubuntu
      version: "22.04"
    host:
      os: macos
      cpu: arm64                     # optional, defaults to this machine
      macos_version: "13.0"          # oldest macOS the bundle supports
    target:
      cpu: aarch64                   # optional, defaults to the host CPU
    extraction:
      use_container: false
      container_image: ubuntu:22.04
    source_root: .
    mirrors:
      swift: https://download.swift.org
    download:
      max_workers: 4
      max_retries: 3
      timeout: 30
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from sdkgenerator.core.exceptions import ConfigError
from sdkgenerator.core.paths import PathsConfiguration
from sdkgenerator.core.platform import detect_host_architecture
from sdkgenerator.cross.architecture import parse_architecture
from sdkgenerator.cross.targets import (
    DEFAULT_MACOS_VERSION,
    BuildEnvironment,
    HostOS,
    LinuxDistribution,
    PlatformTarget,
)
from sdkgenerator.toolchain.catalog import DistributionEndpoints, ToolVersions
from sdkgenerator.toolchain.generator import GenerationSettings

DEFAULT_CONFIG_FILE = "sdk-generator.yaml"

DEFAULT_SWIFT_VERSION = "5.8-RELEASE"
DEFAULT_LLD_VERSION = "16.0.4"
DEFAULT_UBUNTU_VERSION = "22.04"

_SECTIONS = {
    "swift": {"version", "branch"},
    "distribution": {"name", "version"},
    "host": {"os", "cpu", "macos_version"},
    "target": {"cpu"},
    "extraction": {"use_container", "container_image"},
    "mirrors": {f.name for f in fields(DistributionEndpoints)},
    "download": {"max_workers", "max_retries", "timeout"},
}
_SCALARS = {"lld_version", "source_root"}


@dataclass
class GeneratorConfig:
    """Complete generator configuration, before validation."""

    swift_version: str = DEFAULT_SWIFT_VERSION
    swift_branch: Optional[str] = None
    lld_version: str = DEFAULT_LLD_VERSION
    distribution_name: str = "ubuntu"
    distribution_version: str = DEFAULT_UBUNTU_VERSION
    build_cpu: Optional[str] = None  # None: this machine's architecture
    run_time_cpu: Optional[str] = None  # None: same as build_cpu
    host_os: str = "macos"
    macos_version: str = DEFAULT_MACOS_VERSION
    use_container: bool = False
    container_image: str = "ubuntu:22.04"
    source_root: Path = field(default_factory=Path.cwd)
    mirrors: DistributionEndpoints = field(default_factory=DistributionEndpoints)
    max_workers: int = 4
    max_retries: int = 3
    timeout: int = 30

    def with_overrides(self, **overrides: Any) -> "GeneratorConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> GenerationSettings:
        """
        Resolve every input into the immutable settings of a run.

        Performs no filesystem or network access.

        Raises:
            ConfigError: If a numeric limit is out of range
            UnsupportedArchitecture: If a CPU name is unknown
            UnknownDistributionVersion: If the distribution isn't supported
            UnsupportedHostOS: If the build host isn't macOS
            UnknownMacOSVersion: If the host macOS release isn't supported
            UnresolvableVersion: If a tool version is malformed
        """
        for name in ("max_workers", "max_retries", "timeout"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        if self.build_cpu:
            build_cpu = parse_architecture(self.build_cpu)
        else:
            build_cpu = detect_host_architecture()
        run_time_cpu = parse_architecture(self.run_time_cpu) if self.run_time_cpu else build_cpu

        return GenerationSettings(
            versions=ToolVersions(self.swift_version, self.lld_version, self.swift_branch),
            target=PlatformTarget(
                LinuxDistribution(self.distribution_name, self.distribution_version),
                run_time_cpu,
            ),
            build=BuildEnvironment(
                build_cpu, HostOS.parse(self.host_os), self.macos_version
            ),
            paths=PathsConfiguration(Path(self.source_root).expanduser().absolute()),
            endpoints=self.mirrors,
            use_container=self.use_container,
            container_image=self.container_image,
            max_workers=self.max_workers,
            max_retries=self.max_retries,
            timeout=self.timeout,
        )


def parse_config(config_path: Path) -> GeneratorConfig:
    """
    Parse sdk-generator.yaml configuration file.

    Args:
        config_path: Path to sdk-generator.yaml

    Returns:
        Parsed configuration; relative source_root values are resolved
        against the file's directory

    Raises:
        ConfigError: If the file is missing, malformed or has unknown keys
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}") from e

    if data is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    return _parse_and_validate(data, base_dir=config_path.parent)


def load_config(
    config_path: Optional[Union[str, Path]] = None, **overrides: Any
) -> GeneratorConfig:
    """
    Load configuration from a file (or defaults) and apply overrides.

    Without an explicit path, sdk-generator.yaml in the current directory is
    used when present.
    """
    if config_path is None and Path(DEFAULT_CONFIG_FILE).exists():
        config_path = Path(DEFAULT_CONFIG_FILE)

    config = parse_config(Path(config_path)) if config_path else GeneratorConfig()
    return config.with_overrides(**overrides)


def _parse_and_validate(data: dict, base_dir: Path) -> GeneratorConfig:
    """Parse and validate configuration data."""
    _check_keys(data)

    swift = _section(data, "swift")
    distribution = _section(data, "distribution")
    host = _section(data, "host")
    target = _section(data, "target")
    extraction = _section(data, "extraction")
    download = _section(data, "download")

    config = GeneratorConfig(
        swift_version=str(swift.get("version", DEFAULT_SWIFT_VERSION)),
        swift_branch=swift.get("branch"),
        lld_version=str(data.get("lld_version", DEFAULT_LLD_VERSION)),
        distribution_name=str(distribution.get("name", "ubuntu")),
        distribution_version=_parse_release_version(
            distribution.get("version", DEFAULT_UBUNTU_VERSION)
        ),
        build_cpu=host.get("cpu"),
        run_time_cpu=target.get("cpu"),
        host_os=str(host.get("os", "macos")),
        macos_version=str(host.get("macos_version", DEFAULT_MACOS_VERSION)),
        use_container=bool(extraction.get("use_container", False)),
        container_image=str(extraction.get("container_image", "ubuntu:22.04")),
        mirrors=DistributionEndpoints(**_section(data, "mirrors")),
        max_workers=download.get("max_workers", 4),
        max_retries=download.get("max_retries", 3),
        timeout=download.get("timeout", 30),
    )

    if "source_root" in data:
        config.source_root = base_dir / Path(str(data["source_root"])).expanduser()

    return config


def _check_keys(data: dict) -> None:
    for key, value in data.items():
        if key in _SCALARS:
            continue
        if key not in _SECTIONS:
            raise ConfigError(f"Unknown configuration key: {key}")
        if value is None:
            continue
        if not isinstance(value, dict):
            raise ConfigError(f"Section '{key}' must be a mapping")
        unknown = sorted(set(value) - _SECTIONS[key])
        if unknown:
            raise ConfigError(f"Unknown key(s) in '{key}': {', '.join(unknown)}")


def _section(data: dict, name: str) -> Dict[str, Any]:
    return data.get(name) or {}


def _parse_release_version(value: Any) -> str:
    """YAML reads an unquoted 22.04 as a float; restore the two-digit minor."""
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)
