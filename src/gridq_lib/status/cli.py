# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import sys
from typing import NoReturn

import click
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
from gridq_lib.jobs import Job

from .presenter import StatusPresenter

logger = get_logger(__name__)


@click.command(
    short_help="Display the status of jobs.",
    help=f"""Display the status of jobs of a scheduler.

{click.style("JOB_ID", fg="green")}   Identifiers of the jobs. If none are given,
all jobs in the queues of the scheduler are shown.""",
    cls=GNUHelpColorsCommand,
    help_options_color="bright_blue",
)
@click.argument(
    "job_ids", nargs=-1, type=str, metavar=click.style("JOB_ID", fg="green")
)
@scheduler_options
@click.option(
    "--queue",
    "-q",
    type=str,
    multiple=True,
    help="Only show jobs of this queue. Can be repeated.",
)
@click.option("--yaml", is_flag=True, help="Output job statuses in YAML format.")
def status(
    job_ids: tuple[str, ...],
    adaptor: str | None,
    location: str | None,
    prop: tuple[str, ...],
    queue: tuple[str, ...],
    yaml: bool,
) -> NoReturn:
    try:
        with Engine() as engine:
            scheduler = engine.newScheduler(adaptor, location, None, parse_assignments(prop))

            if job_ids:
                jobs = [Job(scheduler, job_id) for job_id in job_ids]
            else:
                jobs = scheduler.getJobs(*queue)

            if not jobs:
                logger.info("No jobs found.")
                sys.exit(0)

            statuses = [s for s in scheduler.getJobStatuses(*jobs) if s is not None]

        presenter = StatusPresenter(statuses)
        if yaml:
            presenter.dumpYaml()
        else:
            Console(record=False, markup=False).print(presenter.createStatusPanel())

        sys.exit(0)
    except GridQError as e:
        logger.error(e)
        print()
        sys.exit(CFG.exit_codes.default)
    except Exception as e:
        logger.critical(e, exc_info=True, stack_info=True)
        print()
        sys.exit(CFG.exit_codes.unexpected_error)
