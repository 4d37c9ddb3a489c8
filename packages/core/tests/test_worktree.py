"""Tests for the review environment lifecycle."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from github import GithubException

from chaba_core.errors import (
    EnvironmentNotFoundError,
    GitCommandError,
    InvalidInputError,
    PathValidationError,
    WorktreeExistsError,
)
from chaba_core.git import GitOps
from chaba_core.hooks import HookRunner
from chaba_core.runner import CommandRunner
from chaba_core.sandbox.manager import SandboxInfo, SandboxManager
from chaba_core.sandbox.project import NODE, UNKNOWN, ProjectType
from chaba_core.worktree import BRANCH_ID_MAX, BRANCH_ID_MIN, WorktreeManager, hash_branch_name
from chaba_store.file import FileStore
from chaba_store.models import AnalysisResult, EnvironmentRecord


@pytest.fixture
def git(tmp_path):
    git = MagicMock(spec=GitOps)
    git.repo_root = tmp_path / "repo"
    git.runner = MagicMock(spec=CommandRunner)
    git.pr_branch.return_value = "feature/login"
    git.remote_slug.return_value = "owner/repo"
    git.add_worktree.side_effect = lambda path, ref: Path(path).mkdir(parents=True)
    return git


@pytest.fixture
def sandbox():
    sandbox = MagicMock(spec=SandboxManager)
    sandbox.setup.return_value = SandboxInfo(ProjectType(NODE, package_manager="npm"), deps_installed=True)
    # Lowest port not already recorded, like the real allocator without the bind probe.
    sandbox.assign_port.side_effect = lambda state: min(set(range(3000, 4001)) - state.assigned_ports())
    return sandbox


@pytest.fixture
def store(tmp_path):
    return FileStore(tmp_path / "state.yaml")


@pytest.fixture
def manager(config, git, store, sandbox):
    return WorktreeManager(config, git, store, sandbox=sandbox, hooks=MagicMock(spec=HookRunner))


class TestHashBranchName:
    def test_deterministic(self):
        assert hash_branch_name("feature/login") == hash_branch_name("feature/login")

    @pytest.mark.parametrize("branch", ["", "main", "feature/ログイン", "a" * 500, "fix/#12 spaces"])
    def test_in_reserved_range(self, branch):
        assert BRANCH_ID_MIN <= hash_branch_name(branch) <= BRANCH_ID_MAX

    def test_different_branches_usually_differ(self):
        assert hash_branch_name("feature/a") != hash_branch_name("feature/b")


class TestCreate:
    def test_create_for_pr(self, manager, git, store, config):
        record = manager.create(pr_number=42)

        expected = Path(config["worktree"]["base_dir"]) / "pr-42"
        assert record.identifier == 42
        assert record.branch == "feature/login"
        assert record.path == str(expected)
        assert record.project_type == "Node.js (npm)"
        assert record.deps_installed is True
        assert record.assigned_port == 3000
        git.fetch.assert_called_once_with("origin", "feature/login")
        git.add_worktree.assert_called_once_with(expected, "origin/feature/login")
        assert store.load().find(42) == record

    def test_create_for_branch_uses_hash(self, manager, git):
        record = manager.create(branch="feature/x")
        assert record.identifier == hash_branch_name("feature/x")
        assert record.path.endswith(f"pr-{record.identifier}")
        git.pr_branch.assert_not_called()

    @pytest.mark.parametrize("kwargs", [{}, {"pr_number": 1, "branch": "b"}])
    def test_requires_exactly_one_target(self, manager, kwargs):
        with pytest.raises(InvalidInputError):
            manager.create(**kwargs)

    def test_second_environment_gets_next_port(self, manager):
        manager.create(pr_number=1)
        assert manager.create(pr_number=2).assigned_port == 3001

    def test_unknown_project_type_is_not_recorded(self, manager, sandbox):
        sandbox.setup.return_value = SandboxInfo(ProjectType(UNKNOWN))
        assert manager.create(pr_number=3).project_type is None

    def test_traversal_in_custom_path_rejected(self, manager, git):
        with pytest.raises(PathValidationError):
            manager.create(pr_number=1, custom_path="../../etc")
        git.fetch.assert_not_called()

    def test_base_dir_itself_rejected(self, manager, config):
        with pytest.raises(PathValidationError):
            manager.create(pr_number=1, custom_path=config["worktree"]["base_dir"])

    def test_custom_path_inside_base(self, manager, config):
        record = manager.create(pr_number=1, custom_path="team/pr-one")
        assert record.path == str(Path(config["worktree"]["base_dir"]) / "team" / "pr-one")

    def test_existing_path_without_force_raises(self, manager, config, git):
        (Path(config["worktree"]["base_dir"]) / "pr-5").mkdir(parents=True)
        with pytest.raises(WorktreeExistsError):
            manager.create(pr_number=5)
        git.remove_worktree.assert_not_called()

    def test_existing_path_replaced_when_confirmed(self, config, git, store, sandbox):
        existing = Path(config["worktree"]["base_dir"]) / "pr-5"
        existing.mkdir(parents=True)
        (existing / "stale.txt").write_text("old")
        manager = WorktreeManager(
            config, git, store, sandbox=sandbox, hooks=MagicMock(spec=HookRunner), confirm=lambda _: True
        )

        manager.create(pr_number=5)

        git.remove_worktree.assert_called_once_with(existing)
        assert not (existing / "stale.txt").exists()

    def test_force_survives_failed_worktree_remove(self, manager, config, git):
        existing = Path(config["worktree"]["base_dir"]) / "pr-5"
        existing.mkdir(parents=True)
        git.remove_worktree.side_effect = GitCommandError("git worktree", stderr="not a working tree")

        record = manager.create(pr_number=5, force=True)

        assert record.identifier == 5

    def test_recreate_reuses_own_port(self, manager, config):
        manager.create(pr_number=5)
        record = manager.create(pr_number=5, force=True)
        assert record.assigned_port == 3000
        assert len(manager.list()) == 1

    def test_hook_started_after_record_saved(self, config, git, store, sandbox):
        seen = []
        hooks = MagicMock(spec=HookRunner)
        hooks.run_post_create.side_effect = lambda path, branch, identifier: seen.append(store.load().find(identifier))
        manager = WorktreeManager(config, git, store, sandbox=sandbox, hooks=hooks)

        manager.create(pr_number=8)

        assert len(seen) == 1
        assert seen[0] is not None

    def test_fetch_failure_records_nothing(self, manager, git, store):
        git.fetch.side_effect = GitCommandError("git fetch", stderr="couldn't find remote ref")
        with pytest.raises(GitCommandError):
            manager.create(pr_number=9)
        assert store.load().records == []


class TestPrBranchResolution:
    def test_uses_github_api_with_token(self, manager, config, git, mocker):
        config["github_token"] = "tok"
        mocker.patch("chaba_core.worktree.get_repo")
        get_branch = mocker.patch("chaba_core.worktree.get_pr_branch", return_value="api-branch")

        assert manager.create(pr_number=4).branch == "api-branch"
        get_branch.assert_called_once()
        git.pr_branch.assert_not_called()

    def test_falls_back_to_gh_on_api_error(self, manager, config, git, mocker):
        config["github_token"] = "tok"
        mocker.patch("chaba_core.worktree.get_repo", side_effect=GithubException(401, {"message": "Bad creds"}, None))

        assert manager.create(pr_number=4).branch == "feature/login"
        git.pr_branch.assert_called_once_with(4)

    def test_no_token_uses_gh(self, manager, git, mocker):
        get_repo = mocker.patch("chaba_core.worktree.get_repo")
        manager.create(pr_number=4)
        get_repo.assert_not_called()
        git.remote_slug.assert_not_called()


class TestRemove:
    def test_remove_absent_identifier(self, manager, git, store):
        with pytest.raises(EnvironmentNotFoundError):
            manager.remove(123)
        git.remove_worktree.assert_not_called()
        git.prune_worktrees.assert_not_called()
        assert not store.path.exists()

    def test_remove_existing(self, manager, git, store):
        record = manager.create(pr_number=1)
        manager.remove(1)
        git.remove_worktree.assert_called_once_with(Path(record.path))
        assert store.load().find(1) is None

    def test_failed_git_remove_keeps_record(self, manager, git, store):
        manager.create(pr_number=1)
        git.remove_worktree.side_effect = GitCommandError("git worktree", stderr="locked")
        with pytest.raises(GitCommandError):
            manager.remove(1)
        assert store.load().find(1) is not None

    def test_missing_directory_is_pruned(self, manager, git, store):
        store.add_record(EnvironmentRecord(identifier=2, branch="b", path="/nonexistent/pr-2"))
        manager.remove(2)
        git.prune_worktrees.assert_called_once()
        git.remove_worktree.assert_not_called()
        assert store.load().find(2) is None


class TestQueries:
    def test_stale_and_status(self, manager, git, store):
        live = manager.create(pr_number=1)
        store.add_record(EnvironmentRecord(identifier=2, branch="b", path="/nonexistent/pr-2"))

        assert [r.identifier for r in manager.stale()] == [2]
        assert manager.status(2).exists is False
        status = manager.status(1)
        assert status.exists is True
        git.diff_stats.assert_called_once_with(Path(live.path))

    def test_status_unknown(self, manager):
        with pytest.raises(EnvironmentNotFoundError):
            manager.status(77)

    def test_record_analyses(self, manager, store):
        manager.create(pr_number=1)
        analysis = AnalysisResult(agent_name="claude")

        manager.record_analyses(1, [analysis])

        assert store.load().find(1).agent_analyses == [analysis]

    def test_record_analyses_unknown(self, manager):
        with pytest.raises(EnvironmentNotFoundError):
            manager.record_analyses(1, [])
