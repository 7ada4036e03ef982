"""
Shell-rc editing — idempotent export lines.

Lines are only ever appended, and only when no existing line already
refers to the same path. A path matches when it appears as a whole
token (split on ``:``, ``=``, quotes and whitespace), so ``.../lib``
is not satisfied by a line that mentions ``.../lib64``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"""[:=\s"';]+""")


def path_export(bin_dir: str) -> str:
    return f"export PATH=$PATH:{bin_dir}"


def library_path_export(lib_dir: str) -> str:
    return f"export LD_LIBRARY_PATH=$LD_LIBRARY_PATH:{lib_dir}"


def references(text: str, marker: str) -> bool:
    """Whether any line of ``text`` mentions ``marker`` as a whole token."""
    for line in text.splitlines():
        if marker in _TOKEN_SPLIT.split(line.strip()):
            return True
    return False


def ensure_line_present(path: Path, line: str, marker: str | None = None) -> bool:
    """Append ``line`` to ``path`` unless a line referencing ``marker`` exists.

    ``marker`` defaults to the line itself. The file and its parent
    directory are created when missing.

    Returns:
        True if the line was appended.
    """
    marker = marker or line
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("a+", encoding="utf-8") as fh:
        fh.seek(0)
        existing = fh.read()
        if references(existing, marker) or line in existing.splitlines():
            logger.debug("%s already references %s", path, marker)
            return False
        if existing and not existing.endswith("\n"):
            fh.write("\n")
        fh.write(line + "\n")

    logger.info("Appended to %s: %s", path, line)
    return True
