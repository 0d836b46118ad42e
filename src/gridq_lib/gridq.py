# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import sys

import click
from click_help_colors import HelpColorsGroup

from gridq_lib.cancel.cli import cancel
from gridq_lib.copy.cli import copy
from gridq_lib.queues.cli import queues
from gridq_lib.status.cli import status
from gridq_lib.submit.cli import submit

__version__ = "0.1.0"

# support both --help and -h
_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    cls=HelpColorsGroup,
    help_options_color="bright_blue",
    invoke_without_command=True,
    context_settings=_CONTEXT_SETTINGS,
)
@click.option(
    "--version",
    is_flag=True,
    help="Print the current version of gridq and exit.",
)
@click.pass_context
def cli(ctx: click.Context, version: bool):
    """
    Run any gridq command.

    gridq submits jobs to local processes, remote machines over ssh, and Slurm,
    TORQUE or Grid Engine batch systems through one interface, and copies files.
    """
    if version:
        print(__version__)
        sys.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        sys.exit(0)


cli.add_command(submit)
cli.add_command(status)
cli.add_command(cancel)
cli.add_command(queues)
cli.add_command(copy)
