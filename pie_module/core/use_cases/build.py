"""
Build use case — cross-compile every configured architecture.

Loads configuration, wires the registry and env-script resolver, and
runs the Builder. Errors come back on the result, never as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pie_module.adapters.registry import AdapterRegistry, default_registry
from pie_module.core.config.loader import ConfigError, config_root, load_config
from pie_module.core.engine.builder import Builder, BuildReport
from pie_module.core.engine.errors import BuildError
from pie_module.core.engine.toolchain import EnvScriptResolver
from pie_module.core.models.config import ModuleConfig

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a build run."""

    report: BuildReport | None = None
    config: ModuleConfig | None = None
    root: Path | None = None
    staging_dir: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok}
        if self.error:
            result["error"] = self.error
        if self.staging_dir:
            result["staging_dir"] = str(self.staging_dir)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def create_builder(
    config: ModuleConfig,
    root: Path,
    registry: AdapterRegistry | None = None,
) -> Builder:
    """Assemble a Builder for ``config`` with paths resolved against ``root``."""
    settings = config.build
    source_dir = (root / settings.source_dir).resolve()
    registry = registry or default_registry()
    resolver = EnvScriptResolver(
        registry=registry,
        source_dir=source_dir,
        script_name=settings.env_script,
        script_url=settings.env_script_url,
    )
    return Builder(
        registry=registry,
        resolver=resolver,
        source_dir=source_dir,
        staging_dir=(root / settings.staging_dir).resolve(),
        prefix=config.prefix,
        binary=config.binary,
        profile=settings.profile,
        timeout=settings.timeout,
    )


def run_build(
    config_path: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> BuildResult:
    """Build all configured architectures, stopping at the first failure.

    Args:
        config_path: Path to pie-module.yml, or None for the stock config
            rooted at the working directory.
        registry: Optional pre-configured adapter registry.
    """
    result = BuildResult()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    root = config_root(config_path)
    result.config = config
    result.root = root
    result.staging_dir = (root / config.build.staging_dir).resolve()

    builder = create_builder(config, root, registry=registry)
    try:
        result.report = builder.build_all(config.architectures)
    except BuildError as e:
        logger.error("Build failed: %s", e)
        result.error = str(e)

    return result
