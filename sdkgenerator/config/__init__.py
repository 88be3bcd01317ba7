"""Configuration module for the SDK generator.

This module provides YAML configuration parsing and validation for
sdk-generator.yaml.
"""

from sdkgenerator.core.exceptions import ConfigError
from sdkgenerator.config.parser import (
    DEFAULT_CONFIG_FILE,
    GeneratorConfig,
    load_config,
    parse_config,
)

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "GeneratorConfig",
    "load_config",
    "parse_config",
]
