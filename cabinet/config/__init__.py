"""YAML configuration loading and validation."""

from .loader import ConfigError, get_config_value, load_config
from .validator import ValidationError, validate_config

__all__ = ["ConfigError", "get_config_value", "load_config", "ValidationError", "validate_config"]
