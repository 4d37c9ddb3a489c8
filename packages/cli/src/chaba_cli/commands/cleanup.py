"""cleanup command: remove a review environment."""

from __future__ import annotations

import click
from rich.console import Console

from chaba_cli.context import build_manager

console = Console()


@click.command("cleanup")
@click.option("--pr", "identifier", type=int, required=True, help="PR number (or branch identifier) to remove.")
@click.option("--force", "-f", "--yes", "-y", "force", is_flag=True, help="Remove without confirmation.")
@click.pass_context
def cleanup_cmd(ctx, identifier: int, force: bool):
    """Remove a review environment's worktree and forget it."""
    manager = build_manager(ctx)
    record = manager.get(identifier)

    if not force:
        click.confirm(f"Remove review environment #{identifier} at {record.path}?", default=False, abort=True)

    manager.remove(identifier)
    console.print(f"[green]✓[/green] Removed review environment #{identifier}")
