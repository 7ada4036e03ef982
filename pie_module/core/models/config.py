"""
Module configuration model — loaded from pie-module.yml.

Defaults reproduce the stock pie module: four Android ABIs at API 21,
artifacts staged as ``pie-<abi>``, and an install that targets the
andstore data root.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from pie_module.core.models.arch import Architecture, default_architectures

DEFAULT_ENV_SCRIPT_URL = (
    "https://raw.githubusercontent.com/andstore-org/andstore-repo/main/packages/build_env.sh"
)


class BuildSettings(BaseModel):
    """Host-side cross-compilation settings (paths relative to the config root)."""

    source_dir: str = "."
    staging_dir: str = "magisk_module/bins"
    env_script: str = "build_env.sh"
    env_script_url: str = DEFAULT_ENV_SCRIPT_URL
    profile: str = "release"
    timeout: int = 1800             # seconds per cargo invocation


class Permissions(BaseModel):
    """Arguments handed to the host's recursive permission primitive."""

    uid: int = 0
    gid: int = 0
    dir_mode: int = 0o755
    file_mode: int = 0o644
    binary_mode: int = 0o755


class InstallSettings(BaseModel):
    """On-device provisioning settings."""

    data_root: str = "/data/local/andstore"
    abi_property: str = "ro.product.cpu.abi"
    staging_dir: str = "bins"                  # relative to MODPATH
    system_dir: str = "system"                 # relative to MODPATH
    binary_dir: str = "system/bin"             # relative to MODPATH
    shellrc: str = "system/etc/mkshrc"         # relative to MODPATH
    system_shellrc: str = "/system/etc/mkshrc"
    permissions: Permissions = Field(default_factory=Permissions)


class ModuleConfig(BaseModel):
    """Root configuration for building and installing the module."""

    version: int = 1

    name: str = "pie"
    prefix: str = "pie"             # artifact name prefix
    binary: str = "pie"             # cargo binary name and installed name

    architectures: list[Architecture] = Field(default_factory=default_architectures)
    build: BuildSettings = Field(default_factory=BuildSettings)
    install: InstallSettings = Field(default_factory=InstallSettings)

    @field_validator("architectures")
    @classmethod
    def _unique_abis(cls, value: list[Architecture]) -> list[Architecture]:
        if not value:
            raise ValueError("at least one architecture is required")
        seen: set[str] = set()
        for arch in value:
            if arch.abi in seen:
                raise ValueError(f"duplicate ABI '{arch.abi}'")
            seen.add(arch.abi)
        return value

    def get_architecture(self, abi: str) -> Architecture | None:
        """Look up a configured architecture by ABI string."""
        for arch in self.architectures:
            if arch.abi == abi:
                return arch
        return None

    @property
    def abis(self) -> list[str]:
        return [a.abi for a in self.architectures]
