"""list command: show all review environments."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chaba_cli.context import build_manager

console = Console()


@click.command("list")
@click.pass_context
def list_cmd(ctx):
    """List active review environments."""
    manager = build_manager(ctx, require_repo=False)
    records = manager.list()
    if not records:
        console.print("[yellow]No active review environments.[/yellow]")
        return

    table = Table(title="Review Environments", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=7)
    table.add_column("Branch", max_width=30)
    table.add_column("Path")
    table.add_column("Port", justify="right", width=6)
    table.add_column("Changes", width=14)
    table.add_column("Commits", width=9)
    table.add_column("Created", width=19)

    stale = []
    for record in sorted(records, key=lambda r: r.identifier):
        status = manager.status(record.identifier)
        if not status.exists:
            stale.append(record)
            changes, commits = "[red]MISSING[/red]", ""
        else:
            stats = status.stats
            changes = f"+{stats.lines_added} -{stats.lines_deleted}" if stats.has_changes else "[dim]clean[/dim]"
            commits = f"↑{stats.commits_ahead} ↓{stats.commits_behind}" if stats.upstream else ""
        table.add_row(
            f"#{record.identifier}",
            escape(record.branch),
            escape(record.path),
            str(record.assigned_port) if record.assigned_port is not None else "",
            changes,
            commits,
            record.created_at[:19].replace("T", " "),
        )

    console.print(table)
    for record in stale:
        console.print(
            f"[yellow]Worktree for #{record.identifier} no longer exists. "
            f"Run 'chaba cleanup --pr {record.identifier}' to forget it.[/yellow]"
        )
