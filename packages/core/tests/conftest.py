"""Shared fixtures for chaba_core tests."""

from __future__ import annotations

import copy

import pytest

from chaba_core.config import DEFAULT_CONFIG


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run with an empty HOME and cwd so no real chaba.yaml or state file is picked up."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("CHABA_CONFIG", raising=False)
    monkeypatch.delenv("CHABA_STATE_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config(tmp_path):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["worktree"]["base_dir"] = str(tmp_path / "reviews")
    cfg["state_path"] = str(tmp_path / "state.yaml")
    return cfg

