"""Sandbox preparation for a freshly created review worktree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from chaba_core.errors import ChabaError, NoAvailablePortError
from chaba_core.ports import assign_port
from chaba_core.runner import CommandRunner
from chaba_core.sandbox.env import copy_env_files
from chaba_core.sandbox.installer import install_dependencies
from chaba_core.sandbox.project import UNKNOWN, ProjectType, detect_project_type

if TYPE_CHECKING:
    from chaba_store.models import StoreState

logger = logging.getLogger(__name__)


@dataclass
class SandboxInfo:
    project_type: ProjectType
    deps_installed: bool = False
    env_copied: bool = False


class SandboxManager:
    """Detects the project type, installs dependencies and copies env files.

    Every step is best effort: a review environment without dependencies is
    still useful for reading code, so failures are logged and setup goes on.
    """

    def __init__(self, config: dict, runner: CommandRunner | None = None):
        self.config = config
        self.runner = runner or CommandRunner()

    def setup(self, worktree: str | Path, main_worktree: str | Path) -> SandboxInfo:
        node_pm = self.config.get("node", {}).get("package_manager", "auto")
        project_type = detect_project_type(worktree, node_pm)
        info = SandboxInfo(project_type=project_type)
        logger.info("Detected project type: %s", project_type.describe())

        if self.config.get("auto_install_deps", True) and project_type.kind != UNKNOWN:
            try:
                info.deps_installed = install_dependencies(worktree, project_type, self.runner)
            except ChabaError as e:
                logger.warning("Dependency installation failed: %s", e)

        if self.config.get("copy_env_from_main", True):
            try:
                copied = copy_env_files(main_worktree, worktree, self.config.get("additional_env_files") or [])
                info.env_copied = bool(copied)
            except (ChabaError, OSError) as e:
                logger.warning("Copying environment files failed: %s", e)

        return info

    def assign_port(self, state: StoreState) -> int | None:
        """Pick a port for a new environment, or None when ports are disabled or exhausted."""
        port_config = self.config.get("port", {})
        if not port_config.get("enabled", True):
            return None
        try:
            return assign_port(state, port_config["range_start"], port_config["range_end"])
        except NoAvailablePortError as e:
            logger.warning("%s", e)
            return None
