"""Git and GitHub CLI operations used to materialize review worktrees."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from chaba_core.errors import (
    ExternalToolMissingError,
    GhCliError,
    GhCliNotFoundError,
    GitCommandError,
    NotInGitRepoError,
    PrNotFoundError,
)
from chaba_core.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

_PR_NOT_FOUND_MARKERS = ("Could not resolve to a PullRequest", "no pull requests found")
_CONFLICT_MARKERS = ("CONFLICT", "Automatic merge failed", "could not apply")
_DIFF_NUMBER_RE = re.compile(r"(\d+)\s+(file|insertion|deletion)")


@dataclass
class GitStats:
    """Change summary for a worktree."""

    files_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    commits_ahead: int = 0
    commits_behind: int = 0
    current_branch: str | None = None
    upstream: str | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.files_changed or self.lines_added or self.lines_deleted)


class GitOps:
    """Thin wrapper around the ``git`` and ``gh`` executables for one repository."""

    def __init__(self, repo_root: str | Path, runner: CommandRunner | None = None):
        self.repo_root = Path(repo_root)
        self.runner = runner or CommandRunner()

    @classmethod
    def discover(cls, cwd: str | Path = ".", runner: CommandRunner | None = None) -> GitOps:
        """Locate the repository containing ``cwd``."""
        runner = runner or CommandRunner()
        try:
            result = runner.run("git", ["rev-parse", "--show-toplevel"], cwd)
        except ExternalToolMissingError:
            raise ExternalToolMissingError("git", "Please install git")
        if not result.ok or not result.stdout.strip():
            raise NotInGitRepoError(Path(cwd).absolute())
        return cls(result.stdout.strip(), runner)

    # ------------------------------------------------------------------ #
    # Worktrees                                                            #
    # ------------------------------------------------------------------ #

    def fetch(self, remote: str, branch: str) -> None:
        self._git(["fetch", remote, branch])

    def add_worktree(self, path: str | Path, ref: str) -> None:
        self._git(["worktree", "add", str(path), ref])

    def remove_worktree(self, path: str | Path) -> None:
        self._git(["worktree", "remove", str(path), "--force"])

    def prune_worktrees(self) -> None:
        """Drop git's bookkeeping for worktrees whose directories are gone."""
        self._git(["worktree", "prune"])

    def list_worktrees(self) -> list[Path]:
        result = self._git(["worktree", "list", "--porcelain"])
        return [Path(line[len("worktree ") :].strip()) for line in result.stdout.splitlines() if line.startswith("worktree ")]

    # ------------------------------------------------------------------ #
    # Status                                                               #
    # ------------------------------------------------------------------ #

    def diff_stats(self, worktree: str | Path) -> GitStats:
        """Collect uncommitted-change and ahead/behind counts for a worktree.

        Each probe is independent; one failing (e.g. no upstream configured)
        leaves its fields at their defaults instead of failing the whole call.
        """
        stats = GitStats()

        branch = self.runner.run("git", ["rev-parse", "--abbrev-ref", "HEAD"], worktree)
        if branch.ok:
            stats.current_branch = branch.stdout.strip() or None

        if stats.current_branch:
            upstream = self.runner.run("git", ["rev-parse", "--abbrev-ref", f"{stats.current_branch}@{{upstream}}"], worktree)
            if upstream.ok:
                stats.upstream = upstream.stdout.strip() or None

        diff = self.runner.run("git", ["diff", "--stat"], worktree)
        if diff.ok and diff.stdout.strip():
            summary = diff.stdout.strip().splitlines()[-1]
            for count, kind in _DIFF_NUMBER_RE.findall(summary):
                if kind == "file":
                    stats.files_changed = int(count)
                elif kind == "insertion":
                    stats.lines_added = int(count)
                else:
                    stats.lines_deleted = int(count)

        if stats.upstream:
            stats.commits_ahead = self._count(worktree, f"{stats.upstream}..HEAD")
            stats.commits_behind = self._count(worktree, f"HEAD..{stats.upstream}")

        return stats

    def has_uncommitted_changes(self, worktree: str | Path) -> bool:
        result = self.runner.run("git", ["status", "--porcelain"], worktree)
        if not result.ok:
            raise GitCommandError("git status", result.stdout, result.stderr)
        return bool(result.stdout.strip())

    # ------------------------------------------------------------------ #
    # Branch updates                                                       #
    # ------------------------------------------------------------------ #

    def merge(self, worktree: str | Path, from_branch: str) -> None:
        self._update(worktree, ["merge", from_branch], "merge")

    def rebase(self, worktree: str | Path, onto_branch: str) -> None:
        self._update(worktree, ["rebase", onto_branch], "rebase")

    def _update(self, worktree: str | Path, args: list[str], action: str) -> None:
        if self.has_uncommitted_changes(worktree):
            raise GitCommandError(
                f"git {action}",
                message=f"Cannot {action}: worktree has uncommitted changes. Commit or stash them first.",
            )
        result = self.runner.run("git", args, worktree)
        if result.ok:
            return
        output = result.stderr + result.stdout
        if any(marker in output for marker in _CONFLICT_MARKERS):
            hint = "\nThen run: git rebase --continue" if action == "rebase" else ""
            raise GitCommandError(
                f"git {action}",
                result.stdout,
                result.stderr,
                message=f"{action.capitalize()} conflict detected. Resolve conflicts manually in the worktree:\n{worktree}{hint}",
            )
        raise GitCommandError(f"git {action}", result.stdout, result.stderr)

    # ------------------------------------------------------------------ #
    # GitHub                                                               #
    # ------------------------------------------------------------------ #

    def remote_slug(self, remote: str = "origin") -> str | None:
        """Return ``owner/name`` for a GitHub remote, or None."""
        result = self.runner.run("git", ["remote", "get-url", remote], self.repo_root)
        if not result.ok:
            return None
        url = result.stdout.strip()
        # https://github.com/owner/repo.git  →  owner/repo
        # git@github.com:owner/repo.git      →  owner/repo
        if "github.com" not in url:
            return None
        slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
        return slug if slug.count("/") == 1 else None

    def pr_branch(self, pr_number: int) -> str:
        """Resolve a PR's head branch with the GitHub CLI."""
        if shutil.which("gh") is None:
            raise GhCliNotFoundError()
        try:
            result = self.runner.run(
                "gh", ["pr", "view", str(pr_number), "--json", "headRefName", "-q", ".headRefName"], self.repo_root
            )
        except ExternalToolMissingError:
            raise GhCliNotFoundError()

        if not result.ok:
            if any(marker in result.stderr for marker in _PR_NOT_FOUND_MARKERS):
                raise PrNotFoundError(pr_number)
            raise GhCliError("gh pr view", result.stdout, result.stderr)

        branch = result.stdout.strip()
        if not branch:
            raise PrNotFoundError(pr_number)
        return branch

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _git(self, args: list[str]) -> CommandResult:
        result = self.runner.run("git", args, self.repo_root)
        if not result.ok:
            raise GitCommandError(f"git {' '.join(args[:2])}", result.stdout, result.stderr)
        return result

    def _count(self, worktree: str | Path, revision_range: str) -> int:
        result = self.runner.run("git", ["rev-list", "--count", revision_range], worktree)
        if not result.ok:
            return 0
        try:
            return int(result.stdout.strip())
        except ValueError:
            return 0
