"""Error taxonomy for chaba operations.

Validation and not-found errors abort the requested operation and are shown
to the user verbatim. Best-effort steps (dependency install, env copy, port
assignment, hooks, individual agents) catch these themselves and downgrade
them to a log line.
"""

from __future__ import annotations

from pathlib import Path

from chaba_store.errors import StateConflictError, StateIOError, StateSerializationError, StoreError

__all__ = [
    "AgentExecutionError",
    "AgentTimeoutError",
    "AlreadyExistsError",
    "ChabaError",
    "ConfigError",
    "EnvironmentNotFoundError",
    "ExternalCommandError",
    "ExternalToolMissingError",
    "GhCliError",
    "GhCliNotFoundError",
    "GitCommandError",
    "InvalidInputError",
    "NoAvailablePortError",
    "NotFoundError",
    "NotInGitRepoError",
    "OperationTimeoutError",
    "PathValidationError",
    "PrNotFoundError",
    "StateConflictError",
    "StateIOError",
    "StateSerializationError",
    "StoreError",
    "ValidationError",
    "WorktreeExistsError",
]


class ChabaError(Exception):
    """Base class for every error chaba raises outside the state store."""


# --- not found ---------------------------------------------------------------


class NotFoundError(ChabaError):
    pass


class PrNotFoundError(NotFoundError):
    def __init__(self, pr_number: int):
        self.pr_number = pr_number
        super().__init__(f"Pull request #{pr_number} not found")


class EnvironmentNotFoundError(NotFoundError):
    def __init__(self, identifier: int):
        self.identifier = identifier
        super().__init__(f"No review environment found for #{identifier}")


# --- already exists ----------------------------------------------------------


class AlreadyExistsError(ChabaError):
    pass


class WorktreeExistsError(AlreadyExistsError):
    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Worktree already exists at {path}. Use --force to overwrite.")


# --- validation --------------------------------------------------------------


class ValidationError(ChabaError):
    pass


class PathValidationError(ValidationError):
    pass


class ConfigError(ValidationError):
    pass


class InvalidInputError(ValidationError):
    pass


class NotInGitRepoError(ValidationError):
    def __init__(self, path: Path | str | None = None):
        where = f" ({path})" if path else ""
        super().__init__(
            f"Not in a git repository{where}. Please run this command from within a git repository."
        )


class NoAvailablePortError(ChabaError):
    def __init__(self, range_start: int, range_end: int):
        self.range_start = range_start
        self.range_end = range_end
        super().__init__(
            f"No available port in range {range_start}-{range_end}. Try cleaning up old review environments."
        )


# --- external tools ----------------------------------------------------------


class ExternalToolMissingError(ChabaError):
    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        message = f"Required command not found: {tool}"
        if hint:
            message += f". {hint}"
        super().__init__(message)


class GhCliNotFoundError(ExternalToolMissingError):
    def __init__(self):
        super().__init__("gh", "Please install the GitHub CLI: https://cli.github.com")


class ExternalCommandError(ChabaError):
    """An external command exited non-zero. Carries its captured output."""

    def __init__(self, command: str, stdout: str = "", stderr: str = "", message: str | None = None):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message or f"{command} failed: {stderr.strip() or stdout.strip() or 'no output'}")


class GitCommandError(ExternalCommandError):
    pass


class GhCliError(ExternalCommandError):
    pass


class AgentExecutionError(ExternalCommandError):
    def __init__(self, agent: str, stdout: str = "", stderr: str = ""):
        self.agent = agent
        super().__init__(
            agent,
            stdout,
            stderr,
            message=f"Agent {agent} exited with an error: {stderr.strip() or stdout.strip() or 'no output'}",
        )


# --- timeouts ----------------------------------------------------------------


class OperationTimeoutError(ChabaError):
    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"{operation} timed out after {seconds:g} seconds")


class AgentTimeoutError(OperationTimeoutError):
    def __init__(self, agent: str, seconds: float):
        self.agent = agent
        super().__init__(f"Agent {agent}", seconds)
