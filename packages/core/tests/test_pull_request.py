"""Tests for GitHub pull request helper functions."""

from unittest.mock import MagicMock

import pytest
from github import GithubException

from chaba_core.errors import PrNotFoundError
from chaba_core.gh.pull_request import get_pr_branch


class TestGetPrBranch:
    def test_returns_head_ref(self):
        repo = MagicMock()
        repo.get_pull.return_value.head.ref = "feature/login"
        assert get_pr_branch(repo, 12) == "feature/login"
        repo.get_pull.assert_called_once_with(12)

    def test_404_becomes_pr_not_found(self):
        repo = MagicMock()
        repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(PrNotFoundError):
            get_pr_branch(repo, 12)

    def test_other_errors_propagate(self):
        repo = MagicMock()
        repo.get_pull.side_effect = GithubException(500, {"message": "boom"}, None)
        with pytest.raises(GithubException):
            get_pr_branch(repo, 12)

    def test_empty_head_ref_is_not_found(self):
        repo = MagicMock()
        repo.get_pull.return_value.head.ref = ""
        with pytest.raises(PrNotFoundError):
            get_pr_branch(repo, 12)
