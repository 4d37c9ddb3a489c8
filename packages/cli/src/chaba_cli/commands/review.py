"""review command: create a review environment for a PR or branch."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from chaba_cli.context import build_manager, get_config
from chaba_core.agents.orchestrator import AgentOrchestrator, AgentRunReport

console = Console()


@click.command("review")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--branch", default=None, help="Branch name, for work that has no PR yet.")
@click.option("--force", "-f", is_flag=True, help="Replace an existing worktree without asking.")
@click.option("--worktree", "worktree_path", default=None, help="Custom worktree location inside the base directory.")
@click.option("--with-agent", is_flag=True, help="Run the default AI agents after setup.")
@click.option("--thorough", is_flag=True, help="Run the thorough agent set (implies --with-agent).")
@click.pass_context
def review_cmd(
    ctx,
    pr_number: int | None,
    branch: str | None,
    force: bool,
    worktree_path: str | None,
    with_agent: bool,
    thorough: bool,
):
    """Create a review environment for a pull request or branch.

    Fetches the branch into its own git worktree, installs dependencies,
    copies .env files and assigns a dev-server port.

    \b
    Examples:
      chaba review --pr 123
      chaba review --branch feature/login --with-agent
    """
    if (pr_number is None) == (branch is None):
        raise click.UsageError("Specify exactly one of --pr or --branch.")

    config = get_config(ctx)
    if pr_number is not None and "github_token" not in config:
        from chaba_cli.auth import resolve_github_token

        token = resolve_github_token()
        if token:
            config["github_token"] = token

    manager = build_manager(ctx)

    console.print("\n[bold]chaba[/bold] - Creating review environment...\n")
    record = manager.create(pr_number=pr_number, branch=branch, force=force, custom_path=worktree_path)

    console.print(f"[green]✓[/green] Fetched branch: {escape(record.branch)}")
    console.print(f"[green]✓[/green] Created worktree at: {escape(record.path)}")
    if record.project_type:
        console.print(f"[green]✓[/green] Detected project type: {escape(record.project_type)}")
    if record.deps_installed:
        console.print("[green]✓[/green] Dependencies installed")
    if record.env_copied:
        console.print("[green]✓[/green] Environment files copied")
    if record.assigned_port is not None:
        console.print(f"[green]✓[/green] Assigned port: {record.assigned_port}")

    agents_config = config["agents"]
    if with_agent or thorough:
        run_agents = True
    elif agents_config.get("enabled", True):
        run_agents = click.confirm("Run AI agent analysis?", default=False)
    else:
        run_agents = False

    if run_agents:
        report = _run_agents(agents_config, record.identifier, record.path, thorough)
        if report.analyses:
            manager.record_analyses(record.identifier, report.analyses)
            console.print(f"[green]✓[/green] Completed analysis with {len(report.analyses)} agent(s)")
            console.print(f"\nRun 'chaba agent-result --pr {record.identifier}' to view detailed results")

    console.print("\n[bold green]Ready to review![/bold green]")
    console.print("\nTo start reviewing:")
    console.print(f"  cd {escape(record.path)}")
    if record.assigned_port is not None:
        console.print(f"  # Start dev server on port {record.assigned_port}")


def _run_agents(agents_config: dict, identifier: int, path: str, thorough: bool) -> AgentRunReport:
    orchestrator = AgentOrchestrator(agents_config)
    console.print("\nRunning AI agent analysis...")
    with console.status("Waiting for agents..."):
        report = asyncio.run(orchestrator.run_review(identifier, path, thorough))

    for failure in report.failures:
        console.print(f"[red]✗[/red] {escape(str(failure))}")
    if report.all_failed:
        console.print("[yellow]All agents failed. Check that the agent CLIs are installed and the timeout is long enough.[/yellow]")
    return report
