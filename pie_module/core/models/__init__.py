"""
Domain models — Pydantic types for the module builder and installer.

    from pie_module.core.models import Architecture, ModuleConfig, Receipt
"""

from pie_module.core.models.action import Action, Receipt
from pie_module.core.models.arch import (
    KNOWN_ABIS,
    Architecture,
    Bitness,
    artifact_name,
    default_architectures,
)
from pie_module.core.models.config import (
    BuildSettings,
    InstallSettings,
    ModuleConfig,
    Permissions,
)
from pie_module.core.models.toolchain import ToolchainConfig

__all__ = [
    "KNOWN_ABIS",
    "Action",
    "Architecture",
    "Bitness",
    "BuildSettings",
    "InstallSettings",
    "ModuleConfig",
    "Permissions",
    "Receipt",
    "ToolchainConfig",
    "artifact_name",
    "default_architectures",
]
