"""
Toolchain model — what one architecture compiles and links with.

Produced by the env-script resolver, consumed by the builder, and
discarded once the architecture's compile step is done.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ToolchainConfig(BaseModel):
    """Resolved compiler toolchain for an (abi, api_level) pair."""

    abi: str
    api_level: int
    target_triple: str
    linker: str                     # absolute path to the NDK clang wrapper
    archiver: str
    script_env: dict[str, str] = Field(default_factory=dict)  # other exports of the env script

    @property
    def env_key(self) -> str:
        """Triple in the form cargo expects inside env var names."""
        return self.target_triple.upper().replace("-", "_").replace(".", "_")

    def cargo_env(self) -> dict[str, str]:
        """The env script's exports plus overrides pointing cargo and cc-rs at this toolchain."""
        lower = self.target_triple.replace("-", "_")
        return {
            **self.script_env,
            f"CARGO_TARGET_{self.env_key}_LINKER": self.linker,
            f"CC_{lower}": self.linker,
            f"AR_{lower}": self.archiver,
        }
