"""Persisted data models for review environments.

Decoupled from chaba_core so the store layer can be used independently:
the store only knows how to carry these records to and from disk, not how
they are produced.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Severity(str, Enum):
    """Severity of a finding, most to least severe."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Category(str, Enum):
    SECURITY = "security"
    PERFORMANCE = "performance"
    BEST_PRACTICE = "best-practice"
    CODE_QUALITY = "code-quality"
    ARCHITECTURE = "architecture"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    OTHER = "other"


SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO]

SCORE_MIN = 0.0
SCORE_MAX = 5.0


@dataclass
class Finding:
    """One discrete observation produced by a review agent."""

    severity: Severity
    category: Category
    title: str
    description: str = ""
    file: str | None = None
    line: int | None = None
    suggestion: str | None = None


@dataclass
class AnalysisResult:
    """Output of one agent run against one environment.

    ``raw_output`` keeps the agent's full stdout whenever parsing could not
    produce a real finding, so a human always has something to read.
    """

    agent_name: str
    timestamp: str = field(default_factory=utc_now_iso)  # ISO-8601 UTC timestamp
    score: float | None = None
    findings: list[Finding] = field(default_factory=list)
    raw_output: str | None = None

    def set_score(self, score: float) -> None:
        """Clamp into [SCORE_MIN, SCORE_MAX]. NaN is not a score and leaves it unset."""
        score = float(score)
        if math.isnan(score):
            self.score = None
            return
        self.score = min(max(score, SCORE_MIN), SCORE_MAX)

    def count_by_severity(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    def count_by_category(self, category: Category) -> int:
        return sum(1 for f in self.findings if f.category == category)

    def critical_findings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity in (Severity.CRITICAL, Severity.HIGH)]


@dataclass
class EnvironmentRecord:
    """The persisted description of one provisioned review workspace.

    ``identifier`` is either a real PR number or a stable hash of a branch
    name (see chaba_core.worktree.hash_branch_name). ``created_at``,
    ``project_type`` and the sandbox booleans are written once at creation.
    """

    identifier: int
    branch: str
    path: str
    created_at: str = field(default_factory=utc_now_iso)  # ISO-8601 UTC timestamp
    assigned_port: int | None = None
    project_type: str | None = None
    deps_installed: bool = False
    env_copied: bool = False
    agent_analyses: list[AnalysisResult] = field(default_factory=list)


@dataclass
class StoreState:
    """Snapshot of every live environment plus the version it was read at.

    ``version`` is the optimistic-lock token: a save is accepted only when
    the file on disk still carries the same version.
    """

    version: int = 0
    records: list[EnvironmentRecord] = field(default_factory=list)

    def find(self, identifier: int) -> EnvironmentRecord | None:
        for record in self.records:
            if record.identifier == identifier:
                return record
        return None

    def upsert(self, record: EnvironmentRecord) -> None:
        """Insert a record, replacing any existing one with the same identifier."""
        self.discard(record.identifier)
        self.records.append(record)

    def discard(self, identifier: int) -> EnvironmentRecord | None:
        existing = self.find(identifier)
        if existing is not None:
            self.records = [r for r in self.records if r.identifier != identifier]
        return existing

    def assigned_ports(self) -> set[int]:
        return {r.assigned_port for r in self.records if r.assigned_port is not None}
