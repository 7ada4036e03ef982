"""Engine exceptions."""

from __future__ import annotations


class BuildError(Exception):
    """A build step failed; the whole run stops."""


class ToolchainError(BuildError):
    """The toolchain for an architecture could not be resolved or prepared."""


class InstallAborted(Exception):
    """The installer refused or failed to provision the device."""
