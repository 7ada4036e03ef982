"""
Config check use case — validate pie-module.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pie_module.core.config.loader import (
    MODULE_CONFIG_FILE,
    ConfigError,
    config_root,
    load_config,
)
from pie_module.core.models.arch import KNOWN_ABIS
from pie_module.core.models.config import ModuleConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ModuleConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "name": self.config.name if self.config else None,
            "architectures": self.config.abis if self.config else [],
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate module configuration and report issues.

    Args:
        config_path: Path to pie-module.yml, or None to check the stock config.
    """
    result = ConfigCheckResult(config_path=config_path)

    if config_path is None:
        result.warnings.append(f"No {MODULE_CONFIG_FILE} found; using the stock configuration.")

    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    for arch in config.architectures:
        if arch.abi not in KNOWN_ABIS:
            result.warnings.append(
                f"ABI '{arch.abi}' is not a standard Android ABI "
                f"(declared {int(arch.bitness)}-bit)."
            )

    root = config_root(config_path)
    source_dir = root / config.build.source_dir
    if not (source_dir / "Cargo.toml").is_file():
        result.warnings.append(f"No Cargo.toml in source_dir: {source_dir}")

    if config.prefix != config.binary:
        result.warnings.append(
            f"Artifact prefix '{config.prefix}' differs from binary name '{config.binary}'."
        )

    result.valid = len(result.errors) == 0
    return result
