"""
Targets use case — the architecture table and what has been built for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pie_module.core.config.loader import ConfigError, config_root, load_config
from pie_module.core.models.arch import artifact_name


@dataclass
class TargetStatus:
    abi: str
    bitness: int
    api_level: int
    artifact: Path
    built: bool

    def to_dict(self) -> dict:
        return {
            "abi": self.abi,
            "bitness": self.bitness,
            "api_level": self.api_level,
            "artifact": str(self.artifact),
            "built": self.built,
        }


@dataclass
class TargetsResult:
    targets: list[TargetStatus] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {"targets": [t.to_dict() for t in self.targets]}


def list_targets(config_path: Path | None = None) -> TargetsResult:
    """List configured architectures and whether each artifact is staged."""
    result = TargetsResult()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    staging = config_root(config_path) / config.build.staging_dir
    for arch in config.architectures:
        artifact = staging / artifact_name(config.prefix, arch.abi)
        result.targets.append(
            TargetStatus(
                abi=arch.abi,
                bitness=int(arch.bitness),
                api_level=arch.api_level,
                artifact=artifact,
                built=artifact.is_file(),
            )
        )
    return result
