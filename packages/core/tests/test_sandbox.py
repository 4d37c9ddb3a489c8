"""Tests for project detection, dependency install, env copy and SandboxManager."""

import logging
from unittest.mock import MagicMock

import pytest

from chaba_core.errors import ExternalCommandError, PathValidationError
from chaba_core.runner import CommandResult, CommandRunner
from chaba_core.sandbox.env import copy_env_files, sensitive_variable_names
from chaba_core.sandbox.installer import install_commands, install_dependencies
from chaba_core.sandbox.manager import SandboxManager
from chaba_core.sandbox.project import GO, NODE, PYTHON, RUST, UNKNOWN, ProjectType, detect_project_type
from chaba_store.models import EnvironmentRecord, StoreState


def _runner(returncode=0, stderr=""):
    runner = MagicMock(spec=CommandRunner)
    runner.run.return_value = CommandResult([], returncode, "", stderr)
    return runner


# ---------------------------------------------------------------------------
# Project detection
# ---------------------------------------------------------------------------


class TestDetectProjectType:
    @pytest.mark.parametrize(
        "lockfile, manager",
        [("bun.lockb", "bun"), ("pnpm-lock.yaml", "pnpm"), ("yarn.lock", "yarn"), (None, "npm")],
    )
    def test_node_package_manager_from_lockfile(self, tmp_path, lockfile, manager):
        (tmp_path / "package.json").write_text("{}")
        if lockfile:
            (tmp_path / lockfile).write_text("")
        assert detect_project_type(tmp_path) == ProjectType(NODE, package_manager=manager)

    def test_node_override(self, tmp_path):
        (tmp_path / "package.json").write_text("{}")
        (tmp_path / "yarn.lock").write_text("")
        assert detect_project_type(tmp_path, "pnpm").package_manager == "pnpm"

    def test_rust(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("")
        assert detect_project_type(tmp_path).kind == RUST

    def test_python(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("")
        project = detect_project_type(tmp_path)
        assert project.kind == PYTHON
        assert project.has_pyproject and not project.has_requirements

    def test_go(self, tmp_path):
        (tmp_path / "go.mod").write_text("")
        assert detect_project_type(tmp_path).kind == GO

    def test_unknown(self, tmp_path):
        assert detect_project_type(tmp_path).describe() == "Unknown"


# ---------------------------------------------------------------------------
# Installer
# ---------------------------------------------------------------------------


class TestInstaller:
    def test_python_runs_both_installs(self):
        commands = install_commands(ProjectType(PYTHON, has_requirements=True, has_pyproject=True))
        assert commands == [["pip", "install", "-r", "requirements.txt"], ["pip", "install", "-e", "."]]

    def test_node_uses_package_manager(self, tmp_path):
        runner = _runner()
        assert install_dependencies(tmp_path, ProjectType(NODE, package_manager="pnpm"), runner) is True
        assert runner.run.call_args.args[:2] == ("pnpm", ["install"])

    def test_unknown_installs_nothing(self, tmp_path):
        runner = _runner()
        assert install_dependencies(tmp_path, ProjectType(UNKNOWN), runner) is False
        runner.run.assert_not_called()

    def test_failure_raises(self, tmp_path):
        with pytest.raises(ExternalCommandError, match="cargo build"):
            install_dependencies(tmp_path, ProjectType(RUST), _runner(101, "error[E0432]"))


# ---------------------------------------------------------------------------
# Env files
# ---------------------------------------------------------------------------


class TestCopyEnvFiles:
    def test_copies_present_files_only(self, tmp_path):
        src, dst = tmp_path / "main", tmp_path / "review"
        src.mkdir()
        dst.mkdir()
        (src / ".env").write_text("PORT=3000\n")
        (src / ".env.test").write_text("X=1\n")

        copied = copy_env_files(src, dst, [".env.local", ".env.test"])

        assert copied == [".env", ".env.test"]
        assert (dst / ".env").read_text() == "PORT=3000\n"
        assert not (dst / ".env.local").exists()

    def test_traversal_in_name_rejected(self, tmp_path):
        with pytest.raises(PathValidationError):
            copy_env_files(tmp_path, tmp_path / "review", ["../secrets"])

    def test_sensitive_names_warn_but_copy(self, tmp_path, caplog):
        src, dst = tmp_path / "main", tmp_path / "review"
        src.mkdir()
        dst.mkdir()
        (src / ".env").write_text("API_KEY=abc\nexport DB_PASSWORD=x\nPORT=3000\n")

        with caplog.at_level(logging.WARNING, logger="chaba_core.sandbox.env"):
            copied = copy_env_files(src, dst)

        assert copied == [".env"]
        assert "API_KEY" in caplog.text
        assert "DB_PASSWORD" in caplog.text
        assert "PORT" not in caplog.text

    def test_sensitive_variable_names(self):
        content = "# comment\nGITHUB_TOKEN=x\nAWS_SECRET_ACCESS_KEY=y\nNODE_ENV=dev\nnot an assignment\n"
        assert sensitive_variable_names(content) == ["GITHUB_TOKEN", "AWS_SECRET_ACCESS_KEY"]


# ---------------------------------------------------------------------------
# SandboxManager
# ---------------------------------------------------------------------------


class TestSandboxManager:
    def test_setup_reports_each_step(self, tmp_path, config):
        main, review = tmp_path / "main", tmp_path / "review"
        main.mkdir()
        review.mkdir()
        (review / "package.json").write_text("{}")
        (main / ".env").write_text("PORT=1\n")

        info = SandboxManager(config["sandbox"], _runner()).setup(review, main)

        assert info.project_type.kind == NODE
        assert info.deps_installed is True
        assert info.env_copied is True

    def test_install_failure_is_not_fatal(self, tmp_path, config, caplog):
        (tmp_path / "Cargo.toml").write_text("")

        with caplog.at_level(logging.WARNING):
            info = SandboxManager(config["sandbox"], _runner(1, "boom")).setup(tmp_path, tmp_path / "missing")

        assert info.deps_installed is False
        assert info.env_copied is False
        assert "Dependency installation failed" in caplog.text

    def test_steps_can_be_disabled(self, tmp_path, config):
        (tmp_path / "Cargo.toml").write_text("")
        (tmp_path / ".env").write_text("A=1\n")
        config["sandbox"]["auto_install_deps"] = False
        config["sandbox"]["copy_env_from_main"] = False
        runner = _runner()

        info = SandboxManager(config["sandbox"], runner).setup(tmp_path, tmp_path)

        runner.run.assert_not_called()
        assert not info.deps_installed and not info.env_copied

    def test_assign_port(self, config, mocker):
        mocker.patch("chaba_core.ports.is_port_free", return_value=True)
        state = StoreState(records=[EnvironmentRecord(1, "b", "/r/1", assigned_port=3000)])
        assert SandboxManager(config["sandbox"]).assign_port(state) == 3001

    def test_assign_port_disabled(self, config):
        config["sandbox"]["port"]["enabled"] = False
        assert SandboxManager(config["sandbox"]).assign_port(StoreState()) is None

    def test_assign_port_exhausted_returns_none(self, config, mocker):
        mocker.patch("chaba_core.ports.is_port_free", return_value=False)
        assert SandboxManager(config["sandbox"]).assign_port(StoreState()) is None
