from __future__ import annotations

from chaba_core.agents.base import BaseAgent


class GeminiAgent(BaseAgent):
    NAME = "gemini"
    PROGRAM = "gemini"
    MODEL = "gemini-2.5-pro"
    FOCUS = "architecture, design patterns and extensibility"

    def build_args(self, prompt: str) -> list[str]:
        return ["-m", self.MODEL, "-s", "-y", "-p", prompt]
