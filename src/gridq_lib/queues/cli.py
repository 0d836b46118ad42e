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

from .presenter import QueuesPresenter

logger = get_logger(__name__)


@click.command(
    short_help="Display the queues of a scheduler.",
    help=f"""Display the status of the queues of a scheduler.

{click.style("QUEUE", fg="green")}   Names of the queues to show. If none are given, all queues are shown.

The default queue of the scheduler is marked with '*'.""",
    cls=GNUHelpColorsCommand,
    help_options_color="bright_blue",
)
@click.argument(
    "queue_names", nargs=-1, type=str, metavar=click.style("QUEUE", fg="green")
)
@scheduler_options
@click.option("--yaml", is_flag=True, help="Output queue statuses in YAML format.")
def queues(
    queue_names: tuple[str, ...],
    adaptor: str | None,
    location: str | None,
    prop: tuple[str, ...],
    yaml: bool,
) -> NoReturn:
    try:
        with Engine() as engine:
            scheduler = engine.newScheduler(adaptor, location, None, parse_assignments(prop))
            statuses = scheduler.getQueueStatuses(*queue_names)
            presenter = QueuesPresenter(statuses, scheduler.getDefaultQueueName())
            title = f"QUEUES OF {scheduler.getAdaptorName().upper()} {scheduler.getLocation()}"

        if yaml:
            presenter.dumpYaml()
        else:
            console = Console(record=False, markup=False)
            console.print(presenter.createQueuesInfoPanel(title.strip()))
        sys.exit(0)
    except GridQError as e:
        logger.error(e)
        print()
        sys.exit(CFG.exit_codes.default)
    except Exception as e:
        logger.critical(e, exc_info=True, stack_info=True)
        print()
        sys.exit(CFG.exit_codes.unexpected_error)
