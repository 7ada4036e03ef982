"""
Toolchain resolution — turn (abi, api_level) into a ToolchainConfig.

The NDK environment comes from an external ``build_env.sh``. It is
fetched once per run, before the architecture loop, and then sourced
once per (abi, api_level); repeat lookups are served from memory.

The script's contract: given ``<abi> <api>`` it exports RUST_TARGET,
CC_ABS (absolute clang wrapper path) and AR. Anything else it exports
or changes (PATH, sysroot flags) is carried along as ``script_env``
and handed to cargo with the linker overrides.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import tempfile
import urllib.request
from pathlib import Path

from pie_module.adapters.registry import AdapterRegistry
from pie_module.core.engine.errors import ToolchainError
from pie_module.core.models.action import Action
from pie_module.core.models.arch import Architecture
from pie_module.core.models.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)

_REQUIRED_VARS = ("RUST_TARGET", "CC_ABS", "AR")

# Set by the shell itself, not by the script
_SHELL_VARS = frozenset({"PWD", "OLDPWD", "SHLVL", "_"})

_ENV_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


class EnvScriptResolver:
    """Memoized resolver backed by the env-setup script."""

    def __init__(
        self,
        registry: AdapterRegistry,
        source_dir: Path,
        script_name: str,
        script_url: str,
        fetch_timeout: int = 30,
    ):
        self._registry = registry
        self._source_dir = source_dir
        self._script = source_dir / script_name
        self._url = script_url
        self._fetch_timeout = fetch_timeout
        self._ready = False
        self._cache: dict[tuple[str, int], ToolchainConfig] = {}

    @property
    def script_path(self) -> Path:
        return self._script

    def ensure_script(self) -> Path:
        """Make sure the env script exists locally, fetching it if absent.

        Only the first call may touch the network.

        Raises:
            ToolchainError: If the download fails.
        """
        if self._ready:
            return self._script

        if self._script.is_file():
            logger.debug("Env script present: %s", self._script)
        else:
            logger.info("Fetching %s", self._url)
            self._download()

        self._ready = True
        return self._script

    def _download(self) -> None:
        self._script.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._script.parent, prefix=".env_", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                req = urllib.request.Request(self._url, headers={"User-Agent": "pie-module/0.1"})
                with urllib.request.urlopen(req, timeout=self._fetch_timeout) as resp:
                    out.write(resp.read())
            tmp.replace(self._script)
        except Exception as e:
            tmp.unlink(missing_ok=True)
            raise ToolchainError(f"Failed to fetch {self._url}: {e}") from e

    def resolve(self, arch: Architecture) -> ToolchainConfig:
        """Resolve the toolchain for one architecture.

        Identical inputs always yield the same (cached) config.

        Raises:
            ToolchainError: If the script fails or omits a variable.
        """
        key = (arch.abi, arch.api_level)
        if key in self._cache:
            return self._cache[key]

        self.ensure_script()

        command = (
            f"set -- {shlex.quote(arch.abi)} {arch.api_level} && "
            f". {shlex.quote(str(self._script))} >/dev/null && "
            "env"
        )
        action = Action(
            id=f"toolchain:{arch.abi}",
            name=f"Source env script for {arch.abi} (API {arch.api_level})",
            adapter="shell",
            params={"command": command, "cwd": str(self._source_dir)},
        )
        receipt = self._registry.execute_action(action, project_root=str(self._source_dir))
        if not receipt.ok:
            raise ToolchainError(
                f"Env script failed for {arch.abi}: {receipt.error}"
            )

        values = _parse_env(receipt.output)
        missing = [name for name in _REQUIRED_VARS if not values.get(name)]
        if missing:
            raise ToolchainError(
                f"Env script did not set {', '.join(missing)} for {arch.abi}"
            )

        config = ToolchainConfig(
            abi=arch.abi,
            api_level=arch.api_level,
            target_triple=values["RUST_TARGET"],
            linker=values["CC_ABS"],
            archiver=values["AR"],
            script_env=_script_changes(values),
        )
        logger.info("Toolchain for %s: %s", arch.abi, config.target_triple)
        self._cache[key] = config
        return config


def _parse_env(output: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in output.splitlines():
        match = _ENV_LINE.match(line)
        if match:
            values[match.group(1)] = match.group(2).strip()
    return values


def _script_changes(values: dict[str, str]) -> dict[str, str]:
    """Variables the script added or changed relative to our own environment."""
    return {
        name: value
        for name, value in values.items()
        if name not in _SHELL_VARS and os.environ.get(name) != value
    }
