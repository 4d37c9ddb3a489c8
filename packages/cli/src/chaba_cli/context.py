"""Builders shared by the commands.

The group callback only loads configuration and opens the state file;
anything that needs git is built here on demand so that commands like
``list`` and ``config`` work outside a repository.
"""

from __future__ import annotations

from pathlib import Path

import click

from chaba_core.git import GitOps
from chaba_core.worktree import WorktreeManager


def get_config(ctx: click.Context) -> dict:
    return ctx.obj["config"]


def build_manager(ctx: click.Context, require_repo: bool = True) -> WorktreeManager:
    """Return a WorktreeManager for the repository containing the current directory.

    With ``require_repo=False`` the manager can still read the store and
    inspect existing worktrees, which carry their own git metadata.
    """
    config = get_config(ctx)
    git = GitOps.discover() if require_repo else GitOps(Path.cwd())
    return WorktreeManager(
        config,
        git,
        ctx.obj["store"],
        confirm=lambda message: click.confirm(message, default=False),
    )
