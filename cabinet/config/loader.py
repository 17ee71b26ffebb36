"""Read cabinet.yaml into a plain dictionary.

Relative paths in the file are taken relative to the file's own directory,
so a config can sit next to its workspace and be used from anywhere.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Union

DEFAULT_CONFIG_NAME = "cabinet.yaml"

# Dot paths whose values are filesystem locations
PATH_KEYS = (
    'sources.workspace',
    'export.output_dir',
    'logging.file',
)


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and parse a configuration file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Configuration dictionary with PATH_KEYS made absolute

    Raises:
        ConfigError: If the file is missing, unreadable or not a YAML mapping
    """
    config_path = Path(config_path).expanduser().resolve()
    if not config_path.is_file():
        raise ConfigError(
            f"Configuration file not found: {config_path}\n"
            f"Copy cabinet.yaml.example to {DEFAULT_CONFIG_NAME} and configure it."
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path.name}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}")

    # An empty file means "all defaults"
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"{config_path.name} must contain a YAML mapping, got {type(config).__name__}")

    return resolve_paths(config, config_path.parent)


def resolve_paths(config: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
    """Anchor relative PATH_KEYS values at base_dir, in place."""
    for dotted in PATH_KEYS:
        *parents, key = dotted.split('.')
        section = get_config_value(config, '.'.join(parents))
        if not isinstance(section, dict):
            continue
        value = section.get(key)
        if isinstance(value, str) and value:
            path = Path(value).expanduser()
            section[key] = str(path if path.is_absolute() else base_dir / path)
    return config


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Look up a nested value by dot path ('export.formats').

    Missing keys and non-mapping intermediates both yield default.
    """
    value = config
    for key in path.split('.'):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value
