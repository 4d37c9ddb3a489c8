"""Base agent implementing the Template Method pattern.

All agents share the same run algorithm:
    run() → build_prompt() → build_args() → runner.run_async() → parse_output()

Subclasses supply only the executable, its argument template and the
review focus that goes into the prompt. Timeouts are applied by the
orchestrator, which cancels run() and thereby kills the agent's process.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from chaba_core.agents.parser import parse_output
from chaba_core.errors import AgentExecutionError
from chaba_core.runner import CommandRunner
from chaba_store.models import AnalysisResult

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    NAME: str = ""
    PROGRAM: str = ""
    FOCUS: str = "code quality, security and performance"

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def run(self, identifier: int, cwd: str | Path, runner: CommandRunner) -> AnalysisResult:
        """Run the agent in ``cwd`` and parse what it printed.

        A non-zero exit raises AgentExecutionError carrying both streams.
        """
        prompt = self.build_prompt(identifier)
        result = await runner.run_async(self.PROGRAM, self.build_args(prompt), cwd)
        if not result.ok:
            raise AgentExecutionError(self.NAME, result.stdout, result.stderr)
        logger.debug("%s produced %d bytes of output", self.NAME, len(result.stdout))
        return parse_output(self.NAME, result.stdout)

    # ------------------------------------------------------------------ #
    # Abstract                                                             #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def build_args(self, prompt: str) -> list[str]:
        """Return the command-line arguments for one non-interactive review run."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def build_prompt(self, identifier: int) -> str:
        return f"""Review the changes of PR #{identifier} in this repository, focusing on {self.FOCUS}.

Respond with only a JSON object:

{{
  "score": <overall quality from 0.0 to 5.0>,
  "findings": [
    {{
      "severity": "<critical|high|medium|low|info>",
      "category": "<security|performance|best-practice|code-quality|architecture|testing|documentation|other>",
      "title": "<one-line summary>",
      "description": "<what is wrong and why it matters>",
      "file": "<path relative to the repository root, optional>",
      "line": <line number, optional>,
      "suggestion": "<concrete fix, optional>"
    }}
  ]
}}

If there are no issues, return an empty findings list."""
