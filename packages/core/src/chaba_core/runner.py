"""Subprocess execution shared by git, installers, hooks and agents.

Everything that shells out goes through a CommandRunner so tests can inject
a stub instead of spawning real processes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path

from chaba_core.errors import ExternalCommandError, ExternalToolMissingError, OperationTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external programs with captured output.

    run() is blocking and used for git, gh and package managers.
    spawn() starts a detached process for hooks and does not wait for it.
    run_async() is used for agents: cancelling the awaiting task kills the
    child's whole process group before the cancellation propagates, so a
    timed-out agent never outlives chaba.
    """

    def run(
        self,
        program: str,
        args: list[str],
        cwd: str | Path,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        argv = [program, *args]
        logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd)
        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                errors="replace",
                stdin=subprocess.DEVNULL,
                timeout=timeout,
                env=env,
            )
        except FileNotFoundError:
            raise ExternalToolMissingError(program)
        except OSError as e:
            raise ExternalCommandError(" ".join(argv), message=f"Could not start {program}: {e}")
        except subprocess.TimeoutExpired:
            raise OperationTimeoutError(" ".join(argv), timeout or 0)
        return CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")

    async def run_async(
        self,
        program: str,
        args: list[str],
        cwd: str | Path,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        argv = [program, *args]
        logger.debug("Starting %s (cwd=%s)", program, cwd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except FileNotFoundError:
            raise ExternalToolMissingError(program)
        except OSError as e:
            raise ExternalCommandError(" ".join(argv), message=f"Could not start {program}: {e}")

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            _kill_process_group(proc)
            await proc.wait()
            logger.debug("Killed %s (pid %d) after cancellation", program, proc.pid)
            raise

        return CommandResult(
            argv,
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def spawn(
        self,
        program: str,
        args: list[str],
        cwd: str | Path,
        env: dict[str, str] | None = None,
        output: str | Path | None = None,
    ) -> subprocess.Popen:
        """Start a program that keeps running after chaba exits.

        The child gets its own session and no pipes back to this process.
        Its stdout and stderr are appended to ``output``, or discarded when
        ``output`` is None.
        """
        argv = [program, *args]
        logger.debug("Spawning %s (cwd=%s)", " ".join(argv), cwd)
        try:
            if output is None:
                return self._popen(argv, cwd, env, subprocess.DEVNULL)
            log_path = Path(output)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "ab") as log:
                return self._popen(argv, cwd, env, log)
        except FileNotFoundError:
            raise ExternalToolMissingError(program)
        except OSError as e:
            raise ExternalCommandError(" ".join(argv), message=f"Could not start {program}: {e}")

    @staticmethod
    def _popen(argv: list[str], cwd: str | Path, env: dict[str, str] | None, stdout) -> subprocess.Popen:
        return subprocess.Popen(
            argv,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=stdout,
            stderr=subprocess.STDOUT,
            env=env,
            start_new_session=True,
        )


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        proc.kill()
