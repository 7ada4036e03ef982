"""
Architecture model — the ABI table shared by the builder and installer.

Every ABI the installer may accept must be one the builder produced an
artifact for. Both sides read the same ordered list of Architecture
entries from the module configuration, so there is exactly one place
that decides what is supported.

Bitness is an explicit property of the ABI, never inferred from the
characters in its name.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, model_validator


class Bitness(int, Enum):
    """Word size of an ABI."""

    ARCH32 = 32
    ARCH64 = 64


# Android ABIs with a known word size
KNOWN_ABIS: dict[str, Bitness] = {
    "arm64-v8a": Bitness.ARCH64,
    "armeabi-v7a": Bitness.ARCH32,
    "x86": Bitness.ARCH32,
    "x86_64": Bitness.ARCH64,
}

DEFAULT_API_LEVEL = 21


def artifact_name(prefix: str, abi: str) -> str:
    """Name of the staged binary for one ABI: ``<prefix>-<abi>``."""
    return f"{prefix}-{abi}"


class Architecture(BaseModel):
    """One build/install target.

    ``bitness`` may be omitted for ABIs in KNOWN_ABIS; anything else
    must declare it.
    """

    abi: str
    api_level: int = DEFAULT_API_LEVEL
    bitness: Bitness | None = None

    @model_validator(mode="after")
    def _fill_bitness(self) -> Architecture:
        if not self.abi:
            raise ValueError("abi must not be empty")
        if self.bitness is None:
            known = KNOWN_ABIS.get(self.abi)
            if known is None:
                raise ValueError(
                    f"Unknown ABI '{self.abi}': declare 'bitness: 32' or 'bitness: 64'"
                )
            self.bitness = known
        if self.api_level < 1:
            raise ValueError(f"api_level must be positive, got {self.api_level}")
        return self

    @property
    def is_64bit(self) -> bool:
        return self.bitness is Bitness.ARCH64


def default_architectures() -> list[Architecture]:
    """The four ABIs shipped by default, in build order."""
    return [Architecture(abi=abi) for abi in KNOWN_ABIS]
