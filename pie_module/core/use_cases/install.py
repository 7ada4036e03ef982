"""
Install use case — provision the device from a staged module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pie_module.adapters.device.host import DeviceHost
from pie_module.core.config.loader import ConfigError, load_config
from pie_module.core.engine.errors import InstallAborted
from pie_module.core.engine.installer import Installer, InstallReport

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    report: InstallReport | None = None
    module_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok, "module_path": str(self.module_path)}
        if self.error:
            result["error"] = self.error
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_install(
    module_path: Path,
    host: DeviceHost,
    config_path: Path | None = None,
    data_root: Path | None = None,
    system_shellrc: Path | None = None,
) -> InstallResult:
    """Run the installer against ``module_path`` (MODPATH).

    Args:
        module_path: The module directory holding the staged artifacts.
        host: Device host primitives.
        config_path: Path to pie-module.yml, or None for the stock config.
        data_root: Override for the install data root.
        system_shellrc: Override for the system shell-rc to seed from.
    """
    result = InstallResult(module_path=module_path)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    installer = Installer(
        config=config,
        host=host,
        module_path=module_path,
        data_root=data_root,
        system_shellrc=system_shellrc,
    )
    try:
        result.report = installer.run()
    except InstallAborted as e:
        logger.error("Install aborted: %s", e)
        host.ui_print(f"! {e}")
        result.error = str(e)

    return result
