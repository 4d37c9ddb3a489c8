"""GitHub token resolution with gh CLI fallback.

Only PR lookups need a token, and only when the GitHub API is used instead
of ``gh pr view``. Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable
  2. `gh auth token` (GitHub CLI session)
"""

from __future__ import annotations

import logging
import os

from chaba_core.errors import ChabaError
from chaba_core.runner import CommandRunner

logger = logging.getLogger(__name__)

_GH_TOKEN_TIMEOUT = 5


def resolve_github_token(runner: CommandRunner | None = None) -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    runner = runner or CommandRunner()
    try:
        result = runner.run("gh", ["auth", "token"], os.getcwd(), timeout=_GH_TOKEN_TIMEOUT)
    except ChabaError as e:
        logger.debug("gh auth token unavailable: %s", e)
        return None

    if result.ok and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None
