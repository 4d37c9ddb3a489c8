from __future__ import annotations

from chaba_core.agents.base import BaseAgent


class ClaudeAgent(BaseAgent):
    NAME = "claude"
    PROGRAM = "claude"
    MODEL = "sonnet"

    def build_args(self, prompt: str) -> list[str]:
        return ["--model", self.MODEL, "--yes", prompt]
