"""User-configured shell hooks."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from pathlib import Path

from chaba_core.errors import ChabaError
from chaba_core.runner import CommandRunner

logger = logging.getLogger(__name__)


class HookRunner:
    """Starts ``hooks.post_create`` as a detached process after an environment is created.

    The hook sees CHABA_WORKTREE_PATH, CHABA_BRANCH and CHABA_PR. It runs in
    its own session with output appended to ``hooks.log_file``, so it keeps
    going after chaba exits (a dev server, for instance). Its outcome never
    affects the create operation; failures are logged only.
    """

    def __init__(self, config: dict, runner: CommandRunner | None = None):
        self.config = config or {}
        self.runner = runner or CommandRunner()

    @property
    def log_file(self) -> Path | None:
        log_file = self.config.get("log_file")
        return Path(log_file).expanduser() if log_file else None

    def run_post_create(self, path: str | Path, branch: str, identifier: int) -> subprocess.Popen | None:
        command = self.config.get("post_create")
        if not command:
            return None

        env = dict(os.environ)
        env.update(
            {
                "CHABA_WORKTREE_PATH": str(path),
                "CHABA_BRANCH": branch,
                "CHABA_PR": str(identifier),
            }
        )
        try:
            proc = self.runner.spawn("sh", ["-c", command], path, env=env, output=self.log_file)
        except ChabaError as e:
            logger.warning("post_create hook could not start: %s", e)
            return None

        logger.info("Started post_create hook (pid %d), output: %s", proc.pid, self.log_file or "discarded")
        # Reports the exit status while chaba is still running; the hook itself does not depend on it.
        threading.Thread(target=self._watch, args=(proc,), name=f"chaba-hook-{identifier}", daemon=True).start()
        return proc

    def _watch(self, proc: subprocess.Popen) -> None:
        returncode = proc.wait()
        if returncode == 0:
            logger.info("post_create hook finished")
        else:
            logger.warning("post_create hook exited with %d (see %s)", returncode, self.log_file or "no log file")
