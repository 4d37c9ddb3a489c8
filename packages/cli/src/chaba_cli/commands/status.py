"""status command: one environment in detail."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from chaba_cli.context import build_manager

console = Console()


@click.command("status")
@click.option("--pr", "identifier", type=int, required=True, help="PR number (or branch identifier).")
@click.pass_context
def status_cmd(ctx, identifier: int):
    """Show the state of a review environment."""
    status = build_manager(ctx, require_repo=False).status(identifier)
    record = status.record

    console.print(f"\n[bold]Review environment #{record.identifier}[/bold]")
    console.print(f"  Branch:   {escape(record.branch)}")
    console.print(f"  Path:     {escape(record.path)}")
    console.print(f"  Created:  {record.created_at[:19].replace('T', ' ')}")
    if record.project_type:
        console.print(f"  Project:  {escape(record.project_type)}")
    console.print(f"  Deps:     {'installed' if record.deps_installed else 'not installed'}")
    console.print(f"  Env:      {'copied' if record.env_copied else 'not copied'}")
    if record.assigned_port is not None:
        console.print(f"  Port:     {record.assigned_port}")

    if not status.exists:
        console.print(
            f"\n[red]Worktree directory is missing.[/red] Run 'chaba cleanup --pr {record.identifier}' to forget it."
        )
        return

    stats = status.stats
    console.print("\n[bold]Git[/bold]")
    if stats.current_branch:
        console.print(f"  Checked out: {escape(stats.current_branch)}")
    if stats.has_changes:
        console.print(
            f"  Uncommitted: {stats.files_changed} file(s), +{stats.lines_added} -{stats.lines_deleted}"
        )
    else:
        console.print("  Uncommitted: none")
    if stats.upstream:
        console.print(f"  Upstream:    {escape(stats.upstream)} (ahead {stats.commits_ahead}, behind {stats.commits_behind})")

    if record.agent_analyses:
        console.print("\n[bold]Agent analyses[/bold]")
        for analysis in record.agent_analyses:
            score = f" score {analysis.score:.1f}" if analysis.score is not None else ""
            console.print(f"  {escape(analysis.agent_name)}: {len(analysis.findings)} finding(s){score}")
