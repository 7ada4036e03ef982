"""
Builder — cross-compile the binary once per architecture.

Flow:
    fetch env script (once) → for each architecture, in order:
        resolve toolchain → ensure rustup target → cargo build → collect

The run is all-or-nothing: the first failing step raises BuildError and
no later architecture is attempted. Artifacts land atomically, so a
failure never leaves a half-written ``<prefix>-<abi>`` behind.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from pie_module.adapters.registry import AdapterRegistry
from pie_module.core.engine.errors import BuildError, ToolchainError
from pie_module.core.engine.toolchain import EnvScriptResolver
from pie_module.core.models.action import Action, Receipt
from pie_module.core.models.arch import Architecture, artifact_name
from pie_module.core.models.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    """Artifacts produced by a successful run, keyed by ABI."""

    artifacts: dict[str, Path] = field(default_factory=dict)
    toolchains: dict[str, ToolchainConfig] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.artifacts)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "artifacts": {abi: str(p) for abi, p in self.artifacts.items()},
            "targets": {abi: tc.target_triple for abi, tc in self.toolchains.items()},
        }


class Builder:
    """Sequential multi-architecture build driver.

    Args:
        registry: Dispatches the rustup/cargo/env-script actions.
        resolver: Memoized env-script toolchain resolver.
        source_dir: Cargo project root.
        staging_dir: Where ``<prefix>-<abi>`` artifacts are collected.
        prefix: Artifact name prefix.
        binary: Cargo binary name.
        profile: Cargo profile directory name ("release").
        timeout: Seconds allowed per cargo invocation.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        resolver: EnvScriptResolver,
        source_dir: Path,
        staging_dir: Path,
        prefix: str = "pie",
        binary: str = "pie",
        profile: str = "release",
        timeout: int = 1800,
    ):
        self._registry = registry
        self._resolver = resolver
        self._source_dir = source_dir
        self._staging_dir = staging_dir
        self._prefix = prefix
        self._binary = binary
        self._profile = profile
        self._timeout = timeout

    # ── Steps ──────────────────────────────────────────────────────

    def resolve_toolchain(self, arch: Architecture) -> ToolchainConfig:
        return self._resolver.resolve(arch)

    def ensure_target_installed(self, target_triple: str) -> bool:
        """Add the rustup target unless already installed.

        Returns:
            True if the target had to be added.

        Raises:
            ToolchainError: If listing or adding the target fails.
        """
        listing = self._run(
            f"target-list:{target_triple}",
            ["rustup", "target", "list", "--installed"],
        )
        if listing.failed:
            raise ToolchainError(f"Cannot list rustup targets: {listing.error}")

        installed = {line.strip() for line in listing.output.splitlines()}
        if target_triple in installed:
            logger.debug("rustup target %s already installed", target_triple)
            return False

        logger.info("Adding rustup target %s", target_triple)
        added = self._run(
            f"target-add:{target_triple}",
            ["rustup", "target", "add", target_triple],
        )
        if added.failed:
            raise ToolchainError(f"rustup target add {target_triple} failed: {added.error}")
        return True

    def compile(self, toolchain: ToolchainConfig) -> Path:
        """Run ``cargo build`` for the toolchain's target; return the binary path.

        Raises:
            BuildError: If cargo fails or the binary is not where expected.
        """
        command = ["cargo", "build", "--target", toolchain.target_triple]
        if self._profile == "release":
            command.insert(2, "--release")
        else:
            command[2:2] = ["--profile", self._profile]

        receipt = self._run(
            f"compile:{toolchain.abi}",
            command,
            env=toolchain.cargo_env(),
            timeout=self._timeout,
        )
        if receipt.failed:
            raise BuildError(f"cargo build failed for {toolchain.abi}: {receipt.error}")

        # cargo writes the dev profile to target/<triple>/debug
        profile_dir = "debug" if self._profile == "dev" else self._profile
        binary = (
            self._source_dir / "target" / toolchain.target_triple / profile_dir / self._binary
        )
        if not binary.is_file():
            raise BuildError(f"cargo reported success but {binary} does not exist")
        return binary

    def collect(self, binary: Path, abi: str) -> Path:
        """Copy ``binary`` to ``<staging>/<prefix>-<abi>``, replacing any previous one."""
        self._staging_dir.mkdir(parents=True, exist_ok=True)
        dest = self._staging_dir / artifact_name(self._prefix, abi)

        fd, tmp_name = tempfile.mkstemp(dir=self._staging_dir, prefix=f".{dest.name}.", suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            shutil.copy2(binary, tmp)
            tmp.replace(dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise BuildError(f"Cannot collect {binary} into {dest}: {e}") from e

        logger.info("Collected %s", dest)
        return dest

    # ── Orchestration ──────────────────────────────────────────────

    def build_one(self, arch: Architecture, report: BuildReport) -> Path:
        toolchain = self.resolve_toolchain(arch)
        report.toolchains[arch.abi] = toolchain
        self.ensure_target_installed(toolchain.target_triple)
        binary = self.compile(toolchain)
        artifact = self.collect(binary, arch.abi)
        report.artifacts[arch.abi] = artifact
        return artifact

    def build_all(self, architectures: list[Architecture]) -> BuildReport:
        """Build every architecture in order; stop at the first failure.

        The env script is fetched before the loop so the network is hit
        at most once per run.
        """
        report = BuildReport()
        self._resolver.ensure_script()

        for arch in architectures:
            logger.info("Building %s (API %d)", arch.abi, arch.api_level)
            self.build_one(arch, report)

        return report

    def _run(
        self,
        action_id: str,
        command: list[str],
        env: dict[str, str] | None = None,
        timeout: int = 300,
    ) -> Receipt:
        action = Action(
            id=action_id,
            adapter="shell",
            params={
                "command": command,
                "cwd": str(self._source_dir),
                "env": env or {},
                "timeout": timeout,
            },
        )
        return self._registry.execute_action(action, project_root=str(self._source_dir))
