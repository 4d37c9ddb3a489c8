"""Path safety for review environment locations.

Every path chaba creates or deletes is checked here first. The primary
check is purely lexical, so it works for paths that do not exist yet (the
worktree directory is created after validation). A secondary check resolves
symlinks on the deepest ancestor that does exist, so a symlinked directory
inside the base cannot redirect a worktree outside it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath

from chaba_core.errors import PathValidationError

logger = logging.getLogger(__name__)


def normalize(path: str | os.PathLike) -> Path:
    """Collapse ``.``, ``..`` and repeated separators without touching the filesystem."""
    return Path(os.path.normpath(os.fspath(path)))


def validate_path(candidate: str | os.PathLike, base_dir: str | os.PathLike) -> Path:
    """Return the absolute, normalized form of ``candidate`` if it stays inside ``base_dir``.

    A relative candidate is interpreted relative to ``base_dir``. Raises
    PathValidationError when the candidate contains a ``..`` component, or
    when it ends up anywhere other than ``base_dir`` or below it.
    """
    raw = os.fspath(candidate)
    if not raw:
        raise PathValidationError("Path must not be empty")
    if ".." in PurePath(raw).parts:
        raise PathValidationError(f"Path must not contain '..' components: {raw}")

    base = normalize(Path(base_dir).expanduser().absolute())
    target = Path(raw).expanduser()
    if not target.is_absolute():
        target = base / target
    target = normalize(target)

    if not _is_within(target, base):
        raise PathValidationError(f"Path {target} is outside the allowed base directory {base}")

    _check_existing_ancestor(target, base)
    return target


def _is_within(path: Path, base: Path) -> bool:
    return path == base or base in path.parents


def _check_existing_ancestor(target: Path, base: Path) -> None:
    ancestor = target
    while not ancestor.exists():
        if ancestor.parent == ancestor:
            return
        ancestor = ancestor.parent

    # Only ancestors at or below the base are ours to police; the base itself
    # may legitimately live behind a symlink (e.g. /tmp on macOS).
    if not _is_within(ancestor, base):
        return

    real_base = base.resolve()
    real_ancestor = ancestor.resolve()
    if not _is_within(real_ancestor, real_base):
        logger.debug("Symlink escape: %s resolves to %s (base %s)", ancestor, real_ancestor, real_base)
        raise PathValidationError(f"Path {target} escapes {base} through a symlink at {ancestor}")
