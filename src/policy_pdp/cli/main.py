"""Main CLI entry point for policy-pdp.

Defines the CLI group and registers all subcommands.

Commands:
    policy     - Policy management (validate, add, list, export, import)
    assign     - Grant policies to a user
    evaluate   - Decide an access request
    conflicts  - List conflicting policy pairs
    report     - Policy effectiveness report

Global options (before the command):
    --state PATH    JSON state snapshot (default: platform data dir)
    --config PATH   AppConfig JSON (default: built-in defaults)
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys
from pathlib import Path

import click

from policy_pdp import __version__

from .commands.analytics import conflicts, report
from .commands.assign import assign
from .commands.evaluate import evaluate
from .commands.policy import policy
from .runtime import CliSettings


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  pdp --state state.json policy add policies.json
  pdp --state state.json assign alice read-documents
  pdp --state state.json evaluate alice documents/report read --trace

Config file (--config) example:
  {"engine": {"default_deny_all": true, "max_condition_complexity": 20},
   "logging": {"log_dir": "~/.local/state/policy-pdp", "log_level": "INFO"}}
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--state",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="PDP_STATE",
    help="State snapshot file (env: PDP_STATE)",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="PDP_CONFIG",
    help="Configuration file (env: PDP_CONFIG)",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, state: Path | None, config: Path | None) -> None:
    """pdp: Policy Decision Point administration and evaluation."""
    if version:
        click.echo(f"policy-pdp {__version__}")
        sys.exit(0)
    ctx.obj = CliSettings.from_options(state, config)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(assign)
cli.add_command(conflicts)
cli.add_command(evaluate)
cli.add_command(policy)
cli.add_command(report)


def main() -> None:
    """CLI entry point."""
    cli()
