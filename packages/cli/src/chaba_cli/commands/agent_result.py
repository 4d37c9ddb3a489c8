"""agent-result command: findings from AI agent runs."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chaba_cli.context import build_manager
from chaba_store.models import SEVERITY_ORDER, Category, Severity

console = Console()

_SEVERITY_STYLE = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}


@click.command("agent-result")
@click.option("--pr", "identifier", type=int, required=True, help="PR number (or branch identifier).")
@click.option("--raw", is_flag=True, help="Also print each agent's raw output.")
@click.pass_context
def agent_result_cmd(ctx, identifier: int, raw: bool):
    """Show AI agent findings for a review environment."""
    record = build_manager(ctx, require_repo=False).get(identifier)
    if not record.agent_analyses:
        console.print(
            f"[yellow]No agent analyses for #{identifier}. Run 'chaba review --pr {identifier} --with-agent'.[/yellow]"
        )
        return

    categories = Counter()
    for analysis in record.agent_analyses:
        score = f" (score {analysis.score:.1f}/5.0)" if analysis.score is not None else ""
        console.print(f"\n[bold cyan]{escape(analysis.agent_name)}[/bold cyan]{score}  [dim]{analysis.timestamp[:19]}[/dim]")

        for severity in SEVERITY_ORDER:
            findings = [f for f in analysis.findings if f.severity == severity]
            if not findings:
                continue
            style = _SEVERITY_STYLE[severity]
            console.print(f"  [{style}]{severity.value.upper()} ({len(findings)})[/{style}]")
            for finding in findings:
                location = ""
                if finding.file:
                    location = f" [dim]{escape(finding.file)}{':' + str(finding.line) if finding.line else ''}[/dim]"
                console.print(f"    • {escape(finding.title)}{location}", highlight=False)
                if finding.description:
                    console.print(f"      {escape(finding.description)}", highlight=False)
                if finding.suggestion:
                    console.print(f"      [green]→ {escape(finding.suggestion)}[/green]", highlight=False)

        for category in Category:
            categories[category] += analysis.count_by_category(category)

        if raw and analysis.raw_output:
            console.print("  [dim]--- raw output ---[/dim]")
            console.print(analysis.raw_output, markup=False, highlight=False)

    table = Table(title="Findings by category", show_header=True, header_style="bold cyan")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for category, count in categories.items():
        if count:
            table.add_row(category.value, str(count))
    console.print()
    console.print(table)
