"""
Installer — provision the device at module-install time.

A strictly linear sequence with one gate:

    detect ABI → validate support (gate) → lay out directories →
    install binary → seed shell-rc → PATH export → library exports →
    remove staging → finalize permissions

Nothing is written before the gate passes. After it, any failure
aborts the install; there is no rollback beyond what the module
manager does on its own.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from pie_module.adapters.device.host import DeviceHost, HostError
from pie_module.core.engine import shellrc
from pie_module.core.engine.errors import InstallAborted
from pie_module.core.models.arch import Architecture, artifact_name
from pie_module.core.models.config import ModuleConfig

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Unsupported Architecture"


@dataclass
class InstallReport:
    """What an install run did."""

    abi: str = ""
    binary: Path | None = None
    directories: list[Path] = field(default_factory=list)
    shellrc: Path | None = None
    shellrc_seeded: bool = False
    lines_added: list[str] = field(default_factory=list)
    staging_removed: bool = False

    def to_dict(self) -> dict:
        return {
            "abi": self.abi,
            "binary": str(self.binary) if self.binary else None,
            "directories": [str(d) for d in self.directories],
            "shellrc": str(self.shellrc) if self.shellrc else None,
            "shellrc_seeded": self.shellrc_seeded,
            "lines_added": self.lines_added,
            "staging_removed": self.staging_removed,
        }


class Installer:
    """On-device provisioning driven by the module configuration.

    Args:
        config: Module configuration (architecture table + install settings).
        host: Module-manager primitives.
        module_path: The module's directory (MODPATH).
        data_root: Override for ``config.install.data_root``.
        system_shellrc: Override for ``config.install.system_shellrc``.
    """

    def __init__(
        self,
        config: ModuleConfig,
        host: DeviceHost,
        module_path: Path,
        data_root: Path | None = None,
        system_shellrc: Path | None = None,
    ):
        settings = config.install
        self._config = config
        self._host = host
        self.module_path = module_path
        self.data_root = data_root or Path(settings.data_root)
        self.system_shellrc = system_shellrc or Path(settings.system_shellrc)
        self.staging_dir = module_path / settings.staging_dir
        self.binary_dir = module_path / settings.binary_dir
        self.shellrc_path = module_path / settings.shellrc
        self.system_dir = module_path / settings.system_dir

    @property
    def bin_dir(self) -> Path:
        return self.data_root / "bin"

    def lib_dirs(self) -> list[Path]:
        """Candidate library directories, in export order."""
        return [self.data_root / "lib", self.data_root / "lib64"]

    # ── Steps ──────────────────────────────────────────────────────

    def detect_architecture(self) -> str:
        try:
            abi = self._host.get_prop(self._config.install.abi_property)
        except HostError as e:
            raise InstallAborted(f"Cannot detect architecture: {e}") from e
        logger.info("Device ABI: %s", abi or "<unset>")
        return abi

    def validate_support(self, abi: str) -> Architecture:
        """Gate: the ABI must be configured and have a staged artifact."""
        arch = self._config.get_architecture(abi) if abi else None
        artifact = self.staging_dir / artifact_name(self._config.prefix, abi)
        if arch is None or not artifact.is_file():
            logger.warning("No artifact for ABI %r at %s", abi, artifact)
            raise InstallAborted(UNSUPPORTED_MESSAGE)
        return arch

    def layout_directories(self, arch: Architecture) -> list[Path]:
        """Create bin/ and lib/, plus lib64/ on 64-bit ABIs."""
        dirs = [self.binary_dir, self.bin_dir, self.data_root / "lib"]
        if arch.is_64bit:
            dirs.append(self.data_root / "lib64")
        for d in dirs:
            d.mkdir(parents=True, exist_ok=True)
        return dirs

    def install_binary(self, arch: Architecture) -> Path:
        """Copy ``<prefix>-<abi>`` to the binary dir under its canonical name."""
        source = self.staging_dir / artifact_name(self._config.prefix, arch.abi)
        dest = self.binary_dir / self._config.binary
        shutil.copy2(source, dest)
        logger.info("Installed %s → %s", source.name, dest)
        return dest

    def seed_shell_rc(self) -> bool:
        """Start the module's shell-rc from the system one, when there is one."""
        if not self.system_shellrc.is_file():
            logger.debug("No system shell-rc at %s", self.system_shellrc)
            return False
        self.shellrc_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.system_shellrc, self.shellrc_path)
        return True

    def append_path_export(self) -> str | None:
        line = shellrc.path_export(str(self.bin_dir))
        added = shellrc.ensure_line_present(self.shellrc_path, line, marker=str(self.bin_dir))
        return line if added else None

    def append_library_path_exports(self, lib_dirs: list[Path] | None = None) -> list[str]:
        """One export per existing library dir, each checked on its own."""
        added = []
        for lib_dir in lib_dirs if lib_dirs is not None else self.lib_dirs():
            if not lib_dir.is_dir():
                continue
            line = shellrc.library_path_export(str(lib_dir))
            if shellrc.ensure_line_present(self.shellrc_path, line, marker=str(lib_dir)):
                added.append(line)
        return added

    def cleanup_staging(self) -> bool:
        if not self.staging_dir.exists():
            return False
        shutil.rmtree(self.staging_dir)
        return True

    def finalize_permissions(self) -> None:
        perms = self._config.install.permissions
        try:
            self._host.set_perm_recursive(
                self.system_dir, perms.uid, perms.gid, perms.dir_mode, perms.file_mode
            )
            # binaries stay executable under the 0644 file convention
            self._host.set_perm_recursive(
                self.binary_dir, perms.uid, perms.gid, perms.dir_mode, perms.binary_mode
            )
        except HostError as e:
            raise InstallAborted(str(e)) from e

    # ── Sequence ───────────────────────────────────────────────────

    def run(self) -> InstallReport:
        """Run every step in order.

        Raises:
            InstallAborted: On the unsupported-ABI gate or any later failure.
        """
        report = InstallReport(shellrc=self.shellrc_path)

        abi = self.detect_architecture()
        arch = self.validate_support(abi)
        report.abi = arch.abi
        self._host.ui_print(f"- Installing {self._config.name} for {arch.abi}")

        try:
            report.directories = self.layout_directories(arch)
            report.binary = self.install_binary(arch)
            report.shellrc_seeded = self.seed_shell_rc()

            path_line = self.append_path_export()
            if path_line:
                report.lines_added.append(path_line)
            report.lines_added.extend(self.append_library_path_exports())

            report.staging_removed = self.cleanup_staging()
        except OSError as e:
            raise InstallAborted(f"Install failed: {e}") from e

        self.finalize_permissions()
        self._host.ui_print("- Done")
        return report
