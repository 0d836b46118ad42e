# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Handlers for errors raised while a command processes several jobs.

The handlers are registered with a `Repeater`. They report the error and
terminate the command once the operation has failed for every job.
"""

import sys

from .config import CFG
from .error import NoSuchJobError
from .logger import get_logger
from .repeater import Repeater

logger = get_logger(__name__)


def handle_no_such_job_error(
    exception: BaseException,
    metadata: Repeater,
) -> None:
    """
    Handle jobs that are unknown to the scheduler.
    """
    # a single unknown job is an error
    if len(metadata.items) == 1:
        logger.error(exception)
        print()
        sys.exit(CFG.exit_codes.default)

    logger.warning(exception)

    if metadata.allFailed(NoSuchJobError):
        logger.error("None of the jobs is known to the scheduler.\n")
        sys.exit(CFG.exit_codes.default)


def handle_general_error(
    exception: BaseException,
    metadata: Repeater,
) -> None:
    """
    Handle general gridq errors that occur during an operation on a job.
    """
    logger.error(exception)

    if metadata.allFailed():
        print()
        sys.exit(CFG.exit_codes.default)
