# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import sys
from typing import NoReturn

import click
from rich.console import Console

from gridq_lib.batch import Scheduler
from gridq_lib.core.click_format import (
    GNUHelpColorsCommand,
    parse_assignments,
    scheduler_options,
)
from gridq_lib.core.common import yes_or_no_prompt
from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError, NoSuchJobError
from gridq_lib.core.error_handlers import (
    handle_general_error,
    handle_no_such_job_error,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.repeater import Repeater
from gridq_lib.engine import Engine

from .canceller import Canceller

logger = get_logger(__name__)
console = Console()


@click.command(
    short_help="Cancel jobs.",
    help=f"""Cancel jobs of a scheduler.

{click.style("JOB_ID", fg="green")}   Identifiers of the jobs to cancel.

By default, `{CFG.binary_name} cancel` prompts for confirmation before cancelling a job.
Jobs that have already finished are skipped.""",
    cls=GNUHelpColorsCommand,
    help_options_color="bright_blue",
)
@click.argument(
    "job_ids",
    nargs=-1,
    required=True,
    type=str,
    metavar=click.style("JOB_ID", fg="green"),
)
@scheduler_options
@click.option("-y", "--yes", is_flag=True, help="Cancel the jobs without confirmation.")
def cancel(
    job_ids: tuple[str, ...],
    adaptor: str | None,
    location: str | None,
    prop: tuple[str, ...],
    yes: bool = False,
) -> NoReturn:
    try:
        with Engine() as engine:
            scheduler = engine.newScheduler(adaptor, location, None, parse_assignments(prop))

            repeater = Repeater(list(job_ids), cancel_job, scheduler, yes)
            repeater.onException(NoSuchJobError, handle_no_such_job_error)
            repeater.onException(GridQError, handle_general_error)
            repeater.run()

        print()
        sys.exit(0)
    # GridQErrors of individual jobs are caught by Repeater
    except GridQError as e:
        logger.error(e)
        sys.exit(CFG.exit_codes.default)
    except Exception as e:
        logger.critical(e, exc_info=True, stack_info=True)
        sys.exit(CFG.exit_codes.unexpected_error)


def cancel_job(job_id: str, scheduler: Scheduler, yes: bool) -> None:
    """
    Cancel a single job after an optional confirmation.

    Raises:
        NoSuchJobError: If the job is unknown to the scheduler.
        GridQError: If the job cannot be cancelled.
    """
    canceller = Canceller(scheduler, job_id)
    canceller.printInfo(console)

    if canceller.isFinished():
        logger.info(f"Job '{job_id}' has already finished.")
        return

    if yes or yes_or_no_prompt("Do you want to cancel the job?"):
        status = canceller.cancel()
        logger.info(f"Cancelled the job '{job_id}' ({status.getState()}).")
    else:
        logger.info("Operation aborted.")
