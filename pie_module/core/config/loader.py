"""
Configuration loader — reads pie-module.yml into the ModuleConfig model.

A missing file is not an error: the stock module configuration applies.
A present but broken file always is.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from pie_module.core.models.config import ModuleConfig

logger = logging.getLogger(__name__)

# Default config filename
MODULE_CONFIG_FILE = "pie-module.yml"


class ConfigError(Exception):
    """Raised when module configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for pie-module.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to pie-module.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / MODULE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> ModuleConfig:
    """Load and validate module configuration.

    Args:
        path: Explicit path to pie-module.yml. None means the stock
            configuration; callers that want discovery call
            find_config_file() first.

    Returns:
        Validated ModuleConfig.

    Raises:
        ConfigError: If an explicit file is missing or invalid.
    """
    if path is None:
        logger.debug("No %s, using stock configuration", MODULE_CONFIG_FILE)
        return ModuleConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading module config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "module" key or be flat
    module_data = dict(data["module"]) if isinstance(data.get("module"), dict) else data

    for key in ("version", "architectures", "build", "install"):
        if key in data and key not in module_data:
            module_data[key] = data[key]

    try:
        config = ModuleConfig.model_validate(module_data)
    except Exception as e:
        raise ConfigError(f"Invalid module configuration: {e}") from e

    logger.info(
        "Loaded module '%s' with %d architectures", config.name, len(config.architectures)
    )
    return config


def config_root(config_path: Path | None) -> Path:
    """Directory that relative build paths resolve against."""
    if config_path is None:
        return Path.cwd().resolve()
    return config_path.parent.resolve()
