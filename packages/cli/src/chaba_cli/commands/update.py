"""merge and rebase commands: bring a review worktree up to date."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from chaba_cli.context import build_manager
from chaba_core.git import GitOps

console = Console()


def _worktree(ctx, identifier: int) -> Path:
    record = build_manager(ctx, require_repo=False).get(identifier)
    path = Path(record.path)
    if not path.exists():
        raise click.ClickException(
            f"Worktree {path} no longer exists. Run 'chaba cleanup --pr {identifier}' to forget it."
        )
    return path


@click.command("merge")
@click.option("--pr", "identifier", type=int, required=True, help="PR number (or branch identifier).")
@click.option("--from", "from_branch", required=True, help="Branch to merge into the review worktree.")
@click.pass_context
def merge_cmd(ctx, identifier: int, from_branch: str):
    """Merge another branch into a review worktree."""
    path = _worktree(ctx, identifier)
    GitOps(path).merge(path, from_branch)
    console.print(f"[green]✓[/green] Merged {escape(from_branch)} into #{identifier}")


@click.command("rebase")
@click.option("--pr", "identifier", type=int, required=True, help="PR number (or branch identifier).")
@click.option("--onto", "onto_branch", required=True, help="Branch to rebase the review worktree onto.")
@click.pass_context
def rebase_cmd(ctx, identifier: int, onto_branch: str):
    """Rebase a review worktree onto another branch."""
    path = _worktree(ctx, identifier)
    GitOps(path).rebase(path, onto_branch)
    console.print(f"[green]✓[/green] Rebased #{identifier} onto {escape(onto_branch)}")
