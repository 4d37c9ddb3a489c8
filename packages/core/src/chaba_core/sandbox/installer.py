"""Dependency installation for a freshly created worktree.

Raises on failure; SandboxManager decides that a failed install is only
worth a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path

from chaba_core.errors import ExternalCommandError
from chaba_core.runner import CommandRunner
from chaba_core.sandbox.project import GO, NODE, PYTHON, RUST, ProjectType

logger = logging.getLogger(__name__)

# Package managers routinely take minutes on a cold cache.
INSTALL_TIMEOUT = 900


def install_commands(project_type: ProjectType) -> list[list[str]]:
    """Return the commands that install dependencies for ``project_type``, in order."""
    if project_type.kind == NODE:
        return [[project_type.package_manager or "npm", "install"]]
    if project_type.kind == RUST:
        return [["cargo", "build"]]
    if project_type.kind == PYTHON:
        commands = []
        if project_type.has_requirements:
            commands.append(["pip", "install", "-r", "requirements.txt"])
        if project_type.has_pyproject:
            commands.append(["pip", "install", "-e", "."])
        return commands
    if project_type.kind == GO:
        return [["go", "mod", "download"]]
    return []


def install_dependencies(path: str | Path, project_type: ProjectType, runner: CommandRunner | None = None) -> bool:
    """Install dependencies in ``path``. Returns False when there was nothing to install."""
    runner = runner or CommandRunner()
    commands = install_commands(project_type)
    if not commands:
        logger.info("No dependency installation for %s projects", project_type.describe())
        return False

    for argv in commands:
        logger.info("Running %s", " ".join(argv))
        result = runner.run(argv[0], argv[1:], path, timeout=INSTALL_TIMEOUT)
        if not result.ok:
            raise ExternalCommandError(" ".join(argv), result.stdout, result.stderr)
    return True
