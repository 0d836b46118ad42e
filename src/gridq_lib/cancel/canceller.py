# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from rich.console import Console

from gridq_lib.batch import Scheduler
from gridq_lib.core.error import JobCanceledError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import Job, JobStatus
from gridq_lib.status.presenter import StatusPresenter

logger = get_logger(__name__)


class Canceller:
    """
    Cancels a single job of a scheduler.
    """

    def __init__(self, scheduler: Scheduler, job_id: str):
        self._scheduler = scheduler
        self._job = Job(scheduler, job_id)
        self._status: JobStatus | None = None

    def getJobId(self) -> str:
        return self._job.getIdentifier()

    def printInfo(self, console: Console) -> None:
        """
        Print the current status of the job.

        Raises:
            NoSuchJobError: If the job is unknown to the scheduler.
        """
        self._status = self._scheduler.getJobStatus(self._job)
        console.print(StatusPresenter([self._status]).createStatusPanel())

    def isFinished(self) -> bool:
        """Return True if the job was already observed as finished."""
        return self._status is not None and self._status.isDone()

    def cancel(self) -> JobStatus:
        """
        Cancel the job and return its status.

        Raises:
            NoSuchJobError: If the job is unknown to the scheduler.
            GridQError: If the job cannot be cancelled.
        """
        status = self._scheduler.cancelJob(self._job)

        # cancellation itself is reported in the status and is not a failure here
        if status.hasException() and not isinstance(
            status.getException(), JobCanceledError
        ):
            logger.warning(
                f"Job '{self.getJobId()}' reported an error: {status.getException()}"
            )

        return status
