from __future__ import annotations

from chaba_core.agents.base import BaseAgent


class CodexAgent(BaseAgent):
    NAME = "codex"
    PROGRAM = "codex"
    FOCUS = "bugs, security problems and best-practice violations"

    def build_args(self, prompt: str) -> list[str]:
        # read-only sandbox: the review must not modify the worktree
        return ["exec", "--full-auto", "--sandbox", "read-only", prompt]
