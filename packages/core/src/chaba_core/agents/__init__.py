"""Review agents and the closed registry that dispatches to them."""

from __future__ import annotations

from enum import Enum

from chaba_core.agents.base import BaseAgent
from chaba_core.agents.claude import ClaudeAgent
from chaba_core.agents.codex import CodexAgent
from chaba_core.agents.gemini import GeminiAgent
from chaba_core.errors import ConfigError


class AgentKind(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"


_AGENTS: dict[AgentKind, type[BaseAgent]] = {
    AgentKind.CLAUDE: ClaudeAgent,
    AgentKind.CODEX: CodexAgent,
    AgentKind.GEMINI: GeminiAgent,
}


def get_agent(name: str) -> BaseAgent:
    """Return the agent registered under ``name``. Unknown names are a ConfigError."""
    try:
        kind = AgentKind(name.strip().lower())
    except ValueError:
        supported = ", ".join(k.value for k in AgentKind)
        raise ConfigError(f"Unknown agent: {name!r}. Supported agents: {supported}")
    return _AGENTS[kind]()
