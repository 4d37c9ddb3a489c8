"""config command: write an example chaba.yaml."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from chaba_core.config import LOCAL_CONFIG_NAME, USER_CONFIG_PATH, example_config

console = Console()


@click.command("config")
@click.option("--local", is_flag=True, help=f"Write ./{LOCAL_CONFIG_NAME} instead of the user config.")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file.")
def config_cmd(local: bool, force: bool):
    """Write a chaba.yaml containing the default settings."""
    path = Path(LOCAL_CONFIG_NAME) if local else USER_CONFIG_PATH.expanduser()
    if path.exists() and not force:
        raise click.UsageError(f"{path} already exists. Use --force to overwrite.")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(example_config())
    console.print(f"[green]✓[/green] Wrote {escape(str(path))}")
