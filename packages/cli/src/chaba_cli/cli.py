"""CLI entry point for chaba.

Commands:
  review        create a review environment for a PR or branch
  cleanup       remove a review environment
  list          show all review environments
  status        show one environment in detail
  agent-result  show AI agent findings for an environment
  config        write an example chaba.yaml
  merge/rebase  update a review worktree from another branch
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from chaba_cli.commands.agent_result import agent_result_cmd
from chaba_cli.commands.cleanup import cleanup_cmd
from chaba_cli.commands.config import config_cmd
from chaba_cli.commands.list import list_cmd
from chaba_cli.commands.review import review_cmd
from chaba_cli.commands.status import status_cmd
from chaba_cli.commands.update import merge_cmd, rebase_cmd
from chaba_core.errors import ChabaError
from chaba_store.errors import StoreError

console = Console()
err_console = Console(stderr=True)


class ChabaGroup(click.Group):
    """Turns chaba's own errors into clean one-line CLI failures."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (ChabaError, StoreError) as e:
            raise click.ClickException(str(e)) from e


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )


def _build_store(config: dict):
    from chaba_store.file import FileStore

    return FileStore(config["state_path"])


@click.group(cls=ChabaGroup)
@click.version_option(
    version=importlib.metadata.version("chaba"),
    prog_name="chaba",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    help="Path to chaba.yaml. Defaults to $CHABA_CONFIG, ./chaba.yaml, then ~/.config/chaba/chaba.yaml.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """Disposable, sandboxed review environments for pull requests."""
    from chaba_core.config import load_config

    _setup_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)
    ctx.obj["config"] = config
    ctx.obj["store"] = _build_store(config)


main.add_command(review_cmd)
main.add_command(cleanup_cmd)
main.add_command(list_cmd)
main.add_command(status_cmd)
main.add_command(agent_result_cmd)
main.add_command(config_cmd)
main.add_command(merge_cmd)
main.add_command(rebase_cmd)
