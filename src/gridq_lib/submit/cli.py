# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import sys
from typing import NoReturn

import click
from click_option_group import optgroup
from rich.console import Console

from gridq_lib.core.click_format import (
    GNUHelpColorsCommand,
    parse_assignments,
    scheduler_options,
)
from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError
from gridq_lib.core.logger import get_logger
from gridq_lib.engine import Engine
from gridq_lib.status.presenter import StatusPresenter

from .factory import SubmitterFactory
from .submitter import Submitter

logger = get_logger(__name__)


@click.command(
    short_help="Submit a job to a scheduler.",
    help=f"""Submit a job to a scheduler.

{click.style("COMMAND", fg="green")}   The executable to run followed by its arguments,
or the path to a YAML job description file.

Separate the command from the options of `{CFG.binary_name} submit` with '--'.
Options given on the command line override the values from the job description file.

The identifier of the submitted job is printed to standard output.""",
    cls=GNUHelpColorsCommand,
    help_options_color="bright_blue",
)
@click.argument(
    "command",
    nargs=-1,
    type=click.UNPROCESSED,
    metavar=click.style("COMMAND", fg="green"),
)
@scheduler_options
@optgroup.group(f"{click.style('Job', fg='yellow')}")
@optgroup.option(
    "--file",
    "-f",
    type=str,
    default=None,
    help="Path to a YAML job description file.",
)
@optgroup.option(
    "--queue", "-q", type=str, default=None, help="Name of the queue to submit to."
)
@optgroup.option(
    "--workdir",
    "-w",
    type=str,
    default=None,
    help="Working directory of the job.",
)
@optgroup.option("--nodes", type=int, default=None, help="Number of nodes.")
@optgroup.option(
    "--ppn", type=int, default=None, help="Number of processes started on each node."
)
@optgroup.option(
    "--max-runtime",
    type=int,
    default=None,
    help="Maximal run time of the job in minutes.",
)
@optgroup.option("--stdin", type=str, default=None, help="File to read input from.")
@optgroup.option("--stdout", type=str, default=None, help="File to write output to.")
@optgroup.option(
    "--stderr", type=str, default=None, help="File to write error output to."
)
@optgroup.option(
    "--env",
    "-e",
    type=str,
    multiple=True,
    help="Environment variable of the job as 'KEY=VALUE'. Can be repeated.",
)
@optgroup.option(
    "--job-option",
    "-o",
    type=str,
    multiple=True,
    help="Scheduler-specific job option as 'KEY=VALUE', e.g., 'job.script=run.sh'. Can be repeated.",
)
@optgroup.group(f"{click.style('Waiting', fg='yellow')}")
@optgroup.option("--wait", is_flag=True, help="Wait until the job finishes.")
@optgroup.option(
    "--timeout",
    type=int,
    default=0,
    help="Maximal time to wait for the job in milliseconds. 0 waits indefinitely.",
)
def submit(
    command: tuple[str, ...],
    adaptor: str | None,
    location: str | None,
    prop: tuple[str, ...],
    file: str | None,
    queue: str | None,
    workdir: str | None,
    nodes: int | None,
    ppn: int | None,
    max_runtime: int | None,
    stdin: str | None,
    stdout: str | None,
    stderr: str | None,
    env: tuple[str, ...],
    job_option: tuple[str, ...],
    wait: bool,
    timeout: int,
) -> NoReturn:
    try:
        factory = SubmitterFactory(
            command,
            file,
            queue_name=queue,
            working_directory=workdir,
            node_count=nodes,
            processes_per_node=ppn,
            max_runtime=max_runtime,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            environment=parse_assignments(env, "environment variable"),
            job_options=parse_assignments(job_option, "job option"),
        )
        description = factory.makeDescription()

        with Engine() as engine:
            scheduler = engine.newScheduler(adaptor, location, None, parse_assignments(prop))
            submitter = Submitter(scheduler, description)

            job = submitter.submit()
            print(job.getIdentifier())

            if not submitter.mustWait(wait):
                sys.exit(0)

            status = submitter.wait(job, timeout)
            Console(markup=False).print(
                StatusPresenter([status]).createStatusPanel()
            )

        sys.exit(CFG.exit_codes.job_failed if Submitter.failed(status) else 0)
    except GridQError as e:
        logger.error(e)
        sys.exit(CFG.exit_codes.default)
    except Exception as e:
        logger.critical(e, exc_info=True, stack_info=True)
        sys.exit(CFG.exit_codes.unexpected_error)
