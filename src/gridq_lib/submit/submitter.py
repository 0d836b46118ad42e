# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from gridq_lib.batch import Scheduler
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import Job, JobDescription, JobStatus

logger = get_logger(__name__)


class Submitter:
    """
    Submits a job to a scheduler and waits for it.
    """

    def __init__(self, scheduler: Scheduler, description: JobDescription):
        self._scheduler = scheduler
        self._description = description

    def mustWait(self, wait: bool) -> bool:
        """
        Return True if the job has to be waited for.

        Jobs of embedded schedulers are killed once gridq exits,
        so they are always waited for.
        """
        if not wait and self._scheduler.isEmbedded():
            logger.warning(
                f"Jobs of the '{self._scheduler.getAdaptorName()}' adaptor do not outlive gridq. "
                "Waiting for the job to finish."
            )
            return True

        return wait

    def submit(self) -> Job:
        """
        Submit the job.

        Raises:
            GridQError: If the job cannot be submitted.
        """
        job = self._scheduler.submitJob(self._description)
        logger.info(f"Submitted job '{job.getIdentifier()}'.")
        return job

    def wait(self, job: Job, timeout: int) -> JobStatus:
        """
        Wait until the job is done or the timeout (in milliseconds) expires.
        """
        logger.info(f"Waiting for job '{job.getIdentifier()}'.")
        status = self._scheduler.waitUntilDone(job, timeout)

        if not status.isDone():
            logger.warning(
                f"Job '{job.getIdentifier()}' is still '{status.getState()}' after {timeout} ms."
            )

        return status

    @staticmethod
    def failed(status: JobStatus) -> bool:
        """Return True if a finished job failed or was killed."""
        return status.isDone() and (
            status.hasException() or (status.getExitCode() or 0) != 0
        )
