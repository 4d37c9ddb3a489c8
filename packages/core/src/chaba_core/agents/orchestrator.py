"""Run a set of review agents against one environment.

Each agent is an independent subprocess wrapped in its own timeout. In
parallel mode all of them start at once and results are collected as they
complete; in sequential mode they run one after another in configured
order. A failing agent never fails the review: failures are collected in
the report next to the successful analyses.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from chaba_core.agents import get_agent
from chaba_core.errors import AgentTimeoutError, ChabaError
from chaba_core.runner import CommandRunner
from chaba_store.models import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass
class AgentFailure:
    agent: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.agent}: {self.error}"


@dataclass
class AgentRunReport:
    analyses: list[AnalysisResult] = field(default_factory=list)
    failures: list[AgentFailure] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.analyses


class AgentOrchestrator:
    def __init__(self, config: dict, runner: CommandRunner | None = None):
        self.config = config
        self.runner = runner or CommandRunner()

    @property
    def timeout(self) -> float:
        return self.config.get("timeout", 600)

    def agents_for(self, thorough: bool) -> list[str]:
        key = "thorough_agents" if thorough else "default_agents"
        return list(self.config.get(key) or [])

    async def run_agent(self, name: str, identifier: int, cwd: str | Path, timeout: float) -> AnalysisResult:
        """Run one agent. Unknown names raise ConfigError before anything is spawned."""
        agent = get_agent(name)
        try:
            return await asyncio.wait_for(agent.run(identifier, cwd, self.runner), timeout)
        except asyncio.TimeoutError:
            raise AgentTimeoutError(name, timeout)

    async def run_review(self, identifier: int, cwd: str | Path, thorough: bool = False) -> AgentRunReport:
        if not self.config.get("enabled", True):
            logger.info("Agents are disabled in the configuration")
            return AgentRunReport()

        names = self.agents_for(thorough)
        if not names:
            return AgentRunReport()

        if self.config.get("parallel", True):
            report = await self._run_parallel(names, identifier, cwd)
        else:
            report = await self._run_sequential(names, identifier, cwd)
        self._log_summary(report)
        return report

    async def _run_parallel(self, names: list[str], identifier: int, cwd: str | Path) -> AgentRunReport:
        report = AgentRunReport()
        tasks = [asyncio.ensure_future(self._attempt(name, identifier, cwd)) for name in names]
        for next_done in asyncio.as_completed(tasks):
            name, analysis, error = await next_done
            self._collect(report, name, analysis, error)
        return report

    async def _run_sequential(self, names: list[str], identifier: int, cwd: str | Path) -> AgentRunReport:
        report = AgentRunReport()
        for name in names:
            logger.info("Running %s analysis...", name)
            self._collect(report, *await self._attempt(name, identifier, cwd))
        return report

    async def _attempt(self, name: str, identifier: int, cwd: str | Path):
        try:
            return name, await self.run_agent(name, identifier, cwd, self.timeout), None
        except ChabaError as e:
            return name, None, e
        except Exception as e:
            logger.debug("%s raised an unexpected error", name, exc_info=True)
            return name, None, e

    def _collect(self, report: AgentRunReport, name: str, analysis: AnalysisResult | None, error: Exception | None):
        if error is not None:
            logger.warning("%s failed: %s", name, error)
            report.failures.append(AgentFailure(name, error))
        else:
            logger.info("%s completed analysis", name)
            report.analyses.append(analysis)

    def _log_summary(self, report: AgentRunReport) -> None:
        if report.all_failed:
            logger.error(
                "All agents failed to complete analysis. Check that the agent CLI tools are installed "
                "(claude, codex, gemini), network connectivity, and the agent timeout setting (current: %ss).",
                self.timeout,
            )
        elif report.failures:
            logger.warning("%d agent(s) failed, %d succeeded", len(report.failures), len(report.analyses))
