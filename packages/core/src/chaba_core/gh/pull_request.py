from __future__ import annotations

from github import Github, GithubException

from chaba_core.errors import PrNotFoundError


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pr_branch(repo, pr_number: int) -> str:
    """Return the head branch name of a pull request via the GitHub API.

    A 404 becomes PrNotFoundError; any other GithubException propagates so
    the caller can fall back to the gh CLI.
    """
    try:
        pr = get_pull(repo, pr_number)
    except GithubException as e:
        if e.status == 404:
            raise PrNotFoundError(pr_number) from e
        raise
    branch = pr.head.ref
    if not branch:
        raise PrNotFoundError(pr_number)
    return branch
