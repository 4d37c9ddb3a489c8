"""Lifecycle of review environments: create, remove, list and inspect.

An environment is either Active (a record exists in the store) or Absent.
There are no intermediate persisted states. Creation persists the record
only after the worktree exists; sandbox steps that fail along the way are
recorded as False rather than aborting creation.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from github import GithubException

from chaba_core.errors import (
    ChabaError,
    EnvironmentNotFoundError,
    InvalidInputError,
    PathValidationError,
    WorktreeExistsError,
)
from chaba_core.gh.pull_request import get_pr_branch, get_repo
from chaba_core.git import GitOps, GitStats
from chaba_core.hooks import HookRunner
from chaba_core.paths import normalize, validate_path
from chaba_core.sandbox.manager import SandboxManager
from chaba_core.sandbox.project import UNKNOWN
from chaba_store.base import BaseStore
from chaba_store.models import AnalysisResult, EnvironmentRecord, StoreState

logger = logging.getLogger(__name__)

# Identifiers for raw branches live here, above any realistic PR number.
BRANCH_ID_MIN = 90000
BRANCH_ID_MAX = 99999

DEFAULT_REMOTE = "origin"


def hash_branch_name(branch: str) -> int:
    """Map a branch name to a stable identifier in [BRANCH_ID_MIN, BRANCH_ID_MAX]."""
    digest = hashlib.sha256(branch.encode("utf-8")).digest()
    span = BRANCH_ID_MAX - BRANCH_ID_MIN + 1
    return BRANCH_ID_MIN + int.from_bytes(digest[:8], "big") % span


@dataclass
class EnvironmentStatus:
    record: EnvironmentRecord
    exists: bool
    stats: Optional[GitStats] = None


class WorktreeManager:
    """Creates and removes review environments and keeps the store in step.

    Collaborators are injected so the lifecycle can be exercised without
    git, package managers or a real state file. ``confirm`` is asked before
    an existing directory is replaced without ``force``; by default nothing
    is replaced.
    """

    def __init__(
        self,
        config: dict,
        git: GitOps,
        store: BaseStore,
        sandbox: Optional[SandboxManager] = None,
        hooks: Optional[HookRunner] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.config = config
        self.git = git
        self.store = store
        self.sandbox = sandbox or SandboxManager(config.get("sandbox", {}), git.runner)
        self.hooks = hooks or HookRunner(config.get("hooks", {}), git.runner)
        self.confirm = confirm or (lambda _message: False)

    @property
    def base_dir(self) -> Path:
        return Path(self.config["worktree"]["base_dir"]).expanduser()

    # ------------------------------------------------------------------ #
    # Create / remove                                                      #
    # ------------------------------------------------------------------ #

    def create(
        self,
        pr_number: Optional[int] = None,
        branch: Optional[str] = None,
        force: bool = False,
        custom_path: Optional[str] = None,
    ) -> EnvironmentRecord:
        """Materialize a worktree for a PR or branch, set up its sandbox and record it."""
        identifier, branch_name = self._resolve_target(pr_number, branch)
        path = self._target_path(identifier, custom_path)

        if path.exists():
            self._clear_existing(path, force)

        path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Fetching branch: %s", branch_name)
        self.git.fetch(DEFAULT_REMOTE, branch_name)
        logger.info("Creating worktree at: %s", path)
        self.git.add_worktree(path, f"{DEFAULT_REMOTE}/{branch_name}")

        info = self.sandbox.setup(path, self.git.repo_root)
        record = EnvironmentRecord(
            identifier=identifier,
            branch=branch_name,
            path=str(path),
            project_type=info.project_type.describe() if info.project_type.kind != UNKNOWN else None,
            deps_installed=info.deps_installed,
            env_copied=info.env_copied,
        )

        def mutate(state: StoreState) -> None:
            # The replaced record's port must be reusable by its replacement.
            state.discard(identifier)
            record.assigned_port = self.sandbox.assign_port(state)
            state.upsert(record)

        self.store.transact(mutate)
        logger.info("Recorded review environment #%d", identifier)

        self.hooks.run_post_create(path, branch_name, identifier)
        return record

    def remove(self, identifier: int) -> None:
        """Remove the worktree for ``identifier`` and then its record.

        If git refuses to remove the worktree the record is kept. A record
        whose directory was deleted by hand is reconciled here: git's
        metadata is pruned and the record dropped.
        """
        record = self.store.load().find(identifier)
        if record is None:
            raise EnvironmentNotFoundError(identifier)

        path = Path(record.path)
        if path.exists():
            logger.info("Removing worktree at: %s", path)
            self.git.remove_worktree(path)
        else:
            logger.warning("Worktree %s no longer exists, pruning git metadata", path)
            self.git.prune_worktrees()

        self.store.transact(lambda state: state.discard(identifier))
        logger.info("Removed review environment #%d", identifier)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def list(self) -> list[EnvironmentRecord]:
        return list(self.store.load().records)

    def get(self, identifier: int) -> EnvironmentRecord:
        record = self.store.load().find(identifier)
        if record is None:
            raise EnvironmentNotFoundError(identifier)
        return record

    def status(self, identifier: int) -> EnvironmentStatus:
        record = self.get(identifier)
        path = Path(record.path)
        if not path.exists():
            return EnvironmentStatus(record=record, exists=False)
        return EnvironmentStatus(record=record, exists=True, stats=self.git.diff_stats(path))

    def stale(self) -> list[EnvironmentRecord]:
        """Records whose worktree directory has disappeared. Detection only."""
        return [r for r in self.list() if not Path(r.path).exists()]

    def record_analyses(self, identifier: int, analyses: list[AnalysisResult]) -> EnvironmentRecord:
        """Replace the stored agent analyses of an environment."""
        updated = {}

        def mutate(state: StoreState) -> None:
            record = state.find(identifier)
            if record is None:
                raise EnvironmentNotFoundError(identifier)
            record.agent_analyses = list(analyses)
            updated["record"] = record

        self.store.transact(mutate)
        return updated["record"]

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _resolve_target(self, pr_number: Optional[int], branch: Optional[str]) -> tuple[int, str]:
        if pr_number is not None and branch is None:
            return pr_number, self._pr_branch(pr_number)
        if branch is not None and pr_number is None:
            return hash_branch_name(branch), branch
        raise InvalidInputError("Specify exactly one of a PR number or a branch name")

    def _pr_branch(self, pr_number: int) -> str:
        token = self.config.get("github_token")
        slug = self.git.remote_slug(DEFAULT_REMOTE) if token else None
        if token and slug:
            try:
                return get_pr_branch(get_repo(slug, token), pr_number)
            except GithubException as e:
                logger.debug("GitHub API lookup failed (%s), falling back to gh", e)
        return self.git.pr_branch(pr_number)

    def _target_path(self, identifier: int, custom_path: Optional[str]) -> Path:
        base = self.base_dir
        if custom_path:
            candidate = custom_path
        else:
            candidate = self.config["worktree"]["naming_template"].replace("{pr}", str(identifier))
        path = validate_path(candidate, base)
        if path == normalize(base.absolute()):
            raise PathValidationError(f"Worktree path must be below {base}, not the base directory itself")
        return path

    def _clear_existing(self, path: Path, force: bool) -> None:
        if not force and not self.confirm(f"Worktree already exists at {path}. Remove and recreate it?"):
            raise WorktreeExistsError(path)

        logger.info("Removing existing worktree at: %s", path)
        try:
            self.git.remove_worktree(path)
        except ChabaError as e:
            logger.warning("git worktree remove failed for %s: %s", path, e)
        if path.exists():
            shutil.rmtree(path)
