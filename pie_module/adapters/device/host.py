"""
Device host — the module manager's primitives as seen by the installer.

At module-install time the root manager provides a handful of
services: reading device properties, printing to the install log,
and recursively setting ownership and modes on the module tree.
The installer only talks to the device through this interface.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class HostError(Exception):
    """Raised when a host primitive cannot be carried out."""


class DeviceHost(ABC):
    """Abstract host collaborator."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Host identifier (e.g., 'magisk')."""

    @abstractmethod
    def get_prop(self, key: str) -> str:
        """Read a device property. Empty string when unset."""

    @abstractmethod
    def set_perm_recursive(
        self,
        path: Path,
        uid: int,
        gid: int,
        dir_mode: int,
        file_mode: int,
    ) -> None:
        """Apply owner/group and modes to every entry under ``path``."""

    @abstractmethod
    def ui_print(self, message: str) -> None:
        """Show a line in the install log."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class MagiskHost(DeviceHost):
    """The real device: ``getprop`` and direct chown/chmod.

    With ``echo`` off, install-log lines go to the logger instead of
    stdout, leaving stdout to machine-readable output.
    """

    def __init__(self, getprop: str = "getprop", timeout: int = 10, echo: bool = True):
        self._getprop = getprop
        self._timeout = timeout
        self._echo = echo

    @property
    def name(self) -> str:
        return "magisk"

    def get_prop(self, key: str) -> str:
        if shutil.which(self._getprop) is None:
            raise HostError(f"'{self._getprop}' not found; not running on a device?")
        try:
            result = subprocess.run(
                [self._getprop, key],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise HostError(f"Cannot read property {key}: {e}") from e
        return result.stdout.strip()

    def set_perm_recursive(
        self,
        path: Path,
        uid: int,
        gid: int,
        dir_mode: int,
        file_mode: int,
    ) -> None:
        logger.debug(
            "set_perm_recursive %s %d %d %o %o", path, uid, gid, dir_mode, file_mode
        )
        try:
            _apply(path, uid, gid, dir_mode)
            for root, dirs, files in os.walk(path):
                for d in dirs:
                    _apply(Path(root) / d, uid, gid, dir_mode)
                for f in files:
                    _apply(Path(root) / f, uid, gid, file_mode)
        except OSError as e:
            raise HostError(f"Cannot set permissions under {path}: {e}") from e

    def ui_print(self, message: str) -> None:
        if not self._echo:
            logger.info("%s", message)
            return
        sys.stdout.write(message + "\n")
        sys.stdout.flush()


def _apply(path: Path, uid: int, gid: int, mode: int) -> None:
    os.chown(path, uid, gid, follow_symlinks=False)
    if not path.is_symlink():
        os.chmod(path, mode)


@dataclass
class PermRequest:
    """A recorded set_perm_recursive call."""

    path: Path
    uid: int
    gid: int
    dir_mode: int
    file_mode: int


@dataclass
class StaticHost(DeviceHost):
    """Host with fixed properties, for rehearsing an install off-device.

    Permission requests are recorded rather than applied, since the
    rehearsal normally runs without root.
    """

    props: dict[str, str] = field(default_factory=dict)
    perm_requests: list[PermRequest] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    echo: bool = False

    @property
    def name(self) -> str:
        return "static"

    def get_prop(self, key: str) -> str:
        return self.props.get(key, "")

    def set_perm_recursive(
        self,
        path: Path,
        uid: int,
        gid: int,
        dir_mode: int,
        file_mode: int,
    ) -> None:
        self.perm_requests.append(PermRequest(path, uid, gid, dir_mode, file_mode))

    def ui_print(self, message: str) -> None:
        self.messages.append(message)
        if self.echo:
            sys.stdout.write(message + "\n")
