# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from gridq_lib.core.error import NoSuchSchedulerError
from gridq_lib.core.logger import get_logger
from gridq_lib.files.filesystem import FileSystem
from gridq_lib.jobs import Job, JobDescription, JobStatus, QueueStatus

from ..scheduler import Scheduler
from .connection import SchedulerConnection

logger = get_logger(__name__)


class ScriptingScheduler(Scheduler):
    """
    Scheduler backed by the command-line tools of a batch system.

    All operations are delegated to a `SchedulerConnection`. Jobs are never
    online: they keep running in the batch system after the scheduler is closed.
    """

    def __init__(self, connection: SchedulerConnection):
        super().__init__(
            connection.getUniqueId(),
            connection.getAdaptorName(),
            connection.getLocation(),
            connection.getCredential(),
            connection.getProperties(),
        )
        self._connection = connection
        connection.attach(self)

    def getConnection(self) -> SchedulerConnection:
        return self._connection

    def getFileSystem(self) -> FileSystem:
        """Return the file system of the machine running the batch system."""
        return self._connection.getFileSystem()

    def isEmbedded(self) -> bool:
        return False

    def supportsInteractive(self) -> bool:
        return False

    def supportsBatch(self) -> bool:
        return True

    def getQueueNames(self) -> list[str]:
        self._checkOpen()
        return self._connection.getQueueNames()

    def getDefaultQueueName(self) -> str | None:
        self._checkOpen()
        return self._connection.getDefaultQueueName()

    def getJobs(self, *queue_names: str) -> list[Job]:
        self._checkOpen()
        return self._connection.getJobs(*queue_names)

    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        self._checkOpen()
        return self._connection.getQueueStatus(queue_name)

    def getQueueStatuses(self, *queue_names: str) -> list[QueueStatus]:
        self._checkOpen()
        return self._connection.getQueueStatuses(*queue_names)

    def submitJob(self, description: JobDescription) -> Job:
        self._checkOpen()
        job = self._connection.submitJob(description)
        logger.debug(f"Submitted job '{job.getIdentifier()}' to '{self._adaptor_name}'.")
        return job

    def cancelJob(self, job: Job) -> JobStatus:
        self._checkOpen()
        return self._connection.cancelJob(job)

    def getJobStatus(self, job: Job) -> JobStatus:
        self._checkOpen()
        return self._connection.getJobStatus(job)

    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        self._checkOpen()
        return self._connection.getJobStatuses(*jobs)

    def waitUntilDone(self, job: Job, timeout: int) -> JobStatus:
        self._checkOpen()
        return self._connection.waitUntilDone(job, timeout)

    def waitUntilRunning(self, job: Job, timeout: int) -> JobStatus:
        self._checkOpen()
        return self._connection.waitUntilRunning(job, timeout)

    def isOpen(self) -> bool:
        return self._connection.isOpen()

    def close(self) -> None:
        self._connection.close()

    def _checkOpen(self) -> None:
        if not self._connection.isOpen():
            raise NoSuchSchedulerError(
                f"Scheduler '{self._unique_id}' is closed.", self._adaptor_name
            )
