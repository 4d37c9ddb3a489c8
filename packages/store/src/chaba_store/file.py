"""FileStore: the per-user YAML state file shared by every chaba process.

Concurrency model:
- Readers take a shared flock on the state file for the duration of a read.
- save() is optimistic: it re-reads the on-disk version and refuses to write
  if it differs from the version the caller loaded (StateConflictError).
- The accepted state is written to a temp file in the same directory (so the
  final rename stays on one filesystem), locked exclusively while written,
  chmod 600, then renamed over the target. Readers therefore see either the
  old file or the new one, never a partial write.
- The version check and the rename run under an exclusive lock on a sidecar
  ``<name>.lock`` file, so two writers holding the same version cannot both
  pass the check.

POSIX only (fcntl).
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator

import yaml

from chaba_store.base import BaseStore
from chaba_store.errors import StateConflictError, StateIOError, StateSerializationError
from chaba_store.models import AnalysisResult, Category, EnvironmentRecord, Finding, Severity, StoreState

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = Path("~/.chaba/state.yaml")
_FILE_MODE = 0o600

_CATEGORY_ALIASES = {
    "bestpractice": Category.BEST_PRACTICE,
    "best_practice": Category.BEST_PRACTICE,
    "codequality": Category.CODE_QUALITY,
    "code_quality": Category.CODE_QUALITY,
}


class FileStore(BaseStore):
    """Stores all environment records in a single YAML file.

    The default location is ``~/.chaba/state.yaml``. Configure via
    chaba.yaml ``state_path`` or the ``CHABA_STATE_PATH`` environment
    variable.
    """

    def __init__(self, path: str | Path = DEFAULT_STATE_PATH):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoreState:
        content = self._read_shared()
        if content is None:
            return StoreState()
        return self._parse(content)

    def save(self, state: StoreState) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateIOError(f"Cannot create state directory {self._path.parent}: {e}") from e

        with self._commit_lock():
            content = self._read_shared()
            if content is not None:
                on_disk = self._parse(content).version
                if on_disk != state.version:
                    raise StateConflictError(expected=state.version, actual=on_disk)

            new_version = state.version + 1
            self._write_atomic(self._dump(state, new_version))
            state.version = new_version

        logger.debug("Saved state version %d to %s", state.version, self._path)

    # ------------------------------------------------------------------ #
    # File handling                                                        #
    # ------------------------------------------------------------------ #

    def _read_shared(self) -> str | None:
        """Read the state file under a shared lock, or return None if it does not exist."""
        try:
            with open(self._path, encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    return f.read()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateIOError(f"Cannot read state file {self._path}: {e}") from e

    @contextlib.contextmanager
    def _commit_lock(self) -> Iterator[None]:
        # The sidecar is never unlinked: removing a lock file while another
        # process waits on it would let both proceed.
        lock_path = self._path.with_name(self._path.name + ".lock")
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR, _FILE_MODE)
        except OSError as e:
            raise StateIOError(f"Cannot open lock file {lock_path}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _write_atomic(self, content: str) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
                os.fchmod(f.fileno(), _FILE_MODE)
                os.replace(tmp_path, self._path)
        except OSError as e:
            _unlink_quietly(tmp_path)
            raise StateIOError(f"Cannot write state file {self._path}: {e}") from e
        except BaseException:
            _unlink_quietly(tmp_path)
            raise

    # ------------------------------------------------------------------ #
    # Serialization                                                        #
    # ------------------------------------------------------------------ #

    def _parse(self, content: str) -> StoreState:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StateSerializationError(f"State file {self._path} is not valid YAML: {e}") from e

        if data is None:
            return StoreState()
        if not isinstance(data, dict):
            raise StateSerializationError(f"State file {self._path} must contain a mapping at the top level.")

        # "reviews" is the key written by earlier releases.
        raw_records = data.get("records", data.get("reviews")) or []
        try:
            return StoreState(
                version=int(data.get("version", 0) or 0),
                records=[self._record_from_dict(r) for r in raw_records],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateSerializationError(f"State file {self._path} has a malformed record: {e!r}") from e

    def _dump(self, state: StoreState, version: int) -> str:
        data = {"version": version, "records": [self._record_to_dict(r) for r in state.records]}
        try:
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as e:
            raise StateSerializationError(f"Cannot serialize state: {e}") from e

    @staticmethod
    def _record_to_dict(record: EnvironmentRecord) -> dict:
        d: dict[str, Any] = {
            "identifier": record.identifier,
            "branch": record.branch,
            "path": record.path,
            "created_at": record.created_at,
            "deps_installed": record.deps_installed,
            "env_copied": record.env_copied,
        }
        if record.assigned_port is not None:
            d["assigned_port"] = record.assigned_port
        if record.project_type is not None:
            d["project_type"] = record.project_type
        if record.agent_analyses:
            d["agent_analyses"] = [FileStore._analysis_to_dict(a) for a in record.agent_analyses]
        return d

    @staticmethod
    def _record_from_dict(d: dict) -> EnvironmentRecord:
        identifier = d["identifier"] if "identifier" in d else d["pr_number"]
        path = d["path"] if "path" in d else d["worktree_path"]
        port = d.get("assigned_port", d.get("port"))
        return EnvironmentRecord(
            identifier=int(identifier),
            branch=str(d["branch"]),
            path=str(path),
            created_at=_timestamp(d.get("created_at")),
            assigned_port=int(port) if port is not None else None,
            project_type=d.get("project_type"),
            deps_installed=bool(d.get("deps_installed", False)),
            env_copied=bool(d.get("env_copied", False)),
            agent_analyses=[FileStore._analysis_from_dict(a) for a in d.get("agent_analyses") or []],
        )

    @staticmethod
    def _analysis_to_dict(analysis: AnalysisResult) -> dict:
        d: dict[str, Any] = {"agent_name": analysis.agent_name, "timestamp": analysis.timestamp}
        if analysis.score is not None:
            d["score"] = analysis.score
        d["findings"] = [
            {
                k: v
                for k, v in {
                    "severity": f.severity.value,
                    "category": f.category.value,
                    "title": f.title,
                    "description": f.description,
                    "file": f.file,
                    "line": f.line,
                    "suggestion": f.suggestion,
                }.items()
                if v is not None
            }
            for f in analysis.findings
        ]
        if analysis.raw_output is not None:
            d["raw_output"] = analysis.raw_output
        return d

    @staticmethod
    def _analysis_from_dict(d: dict) -> AnalysisResult:
        analysis = AnalysisResult(
            agent_name=str(d.get("agent_name", d.get("agent", ""))),
            timestamp=_timestamp(d.get("timestamp")),
            findings=[
                Finding(
                    severity=_severity(f.get("severity")),
                    category=_category(f.get("category")),
                    title=str(f.get("title", "")),
                    description=str(f.get("description", "")),
                    file=f.get("file"),
                    line=int(f["line"]) if f.get("line") is not None else None,
                    suggestion=f.get("suggestion"),
                )
                for f in d.get("findings") or []
            ],
            raw_output=d.get("raw_output"),
        )
        if d.get("score") is not None:
            analysis.set_score(d["score"])
        return analysis


def _timestamp(value: Any) -> str:
    # Unquoted timestamps in hand-edited files come back from YAML as datetimes.
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None:
        return ""
    return str(value)


def _severity(value: Any) -> Severity:
    try:
        return Severity(str(value).lower())
    except ValueError:
        return Severity.INFO


def _category(value: Any) -> Category:
    key = str(value).lower()
    if key in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[key]
    try:
        return Category(key)
    except ValueError:
        return Category.OTHER


def _unlink_quietly(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)
