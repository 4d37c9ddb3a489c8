"""Project type detection from marker files in a worktree."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

NODE = "node"
RUST = "rust"
PYTHON = "python"
GO = "go"
UNKNOWN = "unknown"

NODE_PACKAGE_MANAGERS = ("npm", "yarn", "pnpm", "bun")

# Checked in order; the first lockfile present wins.
_NODE_LOCKFILES = (
    ("bun.lockb", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
)


@dataclass(frozen=True)
class ProjectType:
    kind: str
    package_manager: str | None = None  # Node.js only
    has_requirements: bool = False  # Python only
    has_pyproject: bool = False  # Python only

    def describe(self) -> str:
        if self.kind == NODE:
            return f"Node.js ({self.package_manager})"
        return {RUST: "Rust", PYTHON: "Python", GO: "Go"}.get(self.kind, "Unknown")


def detect_project_type(path: str | Path, node_package_manager: str = "auto") -> ProjectType:
    """Detect the project type of ``path``.

    ``node_package_manager`` overrides lockfile detection for Node.js
    projects unless it is ``"auto"``.
    """
    root = Path(path)

    if (root / "package.json").exists():
        if node_package_manager in NODE_PACKAGE_MANAGERS:
            pm = node_package_manager
        else:
            pm = _detect_node_package_manager(root)
        return ProjectType(NODE, package_manager=pm)

    if (root / "Cargo.toml").exists():
        return ProjectType(RUST)

    has_requirements = (root / "requirements.txt").exists()
    has_pyproject = (root / "pyproject.toml").exists()
    if has_requirements or has_pyproject:
        return ProjectType(PYTHON, has_requirements=has_requirements, has_pyproject=has_pyproject)

    if (root / "go.mod").exists():
        return ProjectType(GO)

    return ProjectType(UNKNOWN)


def _detect_node_package_manager(root: Path) -> str:
    for lockfile, pm in _NODE_LOCKFILES:
        if (root / lockfile).exists():
            return pm
    return "npm"
