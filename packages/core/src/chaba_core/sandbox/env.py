"""Copy .env files from the main checkout into a review worktree.

Env files routinely hold credentials. Copying them is what makes a review
environment runnable, so chaba copies anyway but logs which variable names
look sensitive. It never blocks on them.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from chaba_core.paths import validate_path

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env"

_SENSITIVE_MARKERS = ("SECRET", "TOKEN", "PASSWORD", "PASSWD", "PRIVATE", "CREDENTIAL", "API_KEY", "ACCESS_KEY", "AUTH")
_ASSIGNMENT_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=")


def sensitive_variable_names(content: str) -> list[str]:
    """Return variable names assigned in ``content`` that look like secrets."""
    names = []
    for line in content.splitlines():
        match = _ASSIGNMENT_RE.match(line)
        if not match:
            continue
        name = match.group(1)
        upper = name.upper()
        if any(marker in upper for marker in _SENSITIVE_MARKERS) or upper.endswith("_KEY"):
            names.append(name)
    return names


def copy_env_files(src_dir: str | Path, dst_dir: str | Path, extra_names: list[str] | None = None) -> list[str]:
    """Copy ``.env`` plus ``extra_names`` from ``src_dir`` to ``dst_dir`` where present.

    Names are validated against both directories so a config entry like
    ``../../.ssh/id_rsa`` cannot read or write outside them. Returns the
    names that were copied.
    """
    names = [DEFAULT_ENV_FILE, *(n for n in extra_names or [] if n != DEFAULT_ENV_FILE)]
    copied = []

    for name in names:
        src = validate_path(name, src_dir)
        if not src.is_file():
            continue
        dst = validate_path(name, dst_dir)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
        copied.append(name)
        logger.info("Copied %s to review environment", name)

        sensitive = sensitive_variable_names(src.read_text(encoding="utf-8", errors="replace"))
        if sensitive:
            logger.warning(
                "%s contains variables that look sensitive (%s). Review environments share them with any agent run there.",
                name,
                ", ".join(sensitive),
            )

    if copied:
        logger.info("Copied %d environment file(s)", len(copied))
    return copied
