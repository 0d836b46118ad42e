# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from abc import ABC, abstractmethod
from typing import Self

from gridq_lib.core.properties import Properties
from gridq_lib.credentials import Credential
from gridq_lib.jobs import Job, JobDescription, JobStatus, QueueStatus


class Scheduler(ABC):
    """
    Abstract base class of a scheduler, i.e., one backend endpoint able to run jobs.

    A scheduler is created once per `Engine.newScheduler` call and must be closed
    explicitly, which releases all resources held by the backend
    (kills online jobs, closes connections). Schedulers can be used as context managers.

    Single-job operations raise errors on the calling thread. Batch status queries
    never raise for an individual job; the error is embedded in the status instead.
    """

    def __init__(
        self,
        unique_id: str,
        adaptor_name: str,
        location: str,
        credential: Credential,
        properties: Properties,
    ):
        self._unique_id = unique_id
        self._adaptor_name = adaptor_name
        self._location = location
        self._credential = credential
        self._properties = properties

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self._unique_id!r}, adaptor={self._adaptor_name!r}, "
            f"location={self._location!r})"
        )

    def getUniqueId(self) -> str:
        return self._unique_id

    def getAdaptorName(self) -> str:
        return self._adaptor_name

    def getLocation(self) -> str:
        return self._location

    def getCredential(self) -> Credential:
        return self._credential

    def getProperties(self) -> Properties:
        return self._properties

    @abstractmethod
    def isEmbedded(self) -> bool:
        """Return True if the scheduler runs inside this process (jobs are online)."""

    @abstractmethod
    def supportsInteractive(self) -> bool:
        """Return True if the scheduler can run interactive jobs."""

    @abstractmethod
    def supportsBatch(self) -> bool:
        """Return True if the scheduler can run batch jobs."""

    @abstractmethod
    def getQueueNames(self) -> list[str]:
        """Return the names of all queues of the scheduler."""

    @abstractmethod
    def getDefaultQueueName(self) -> str | None:
        """Return the name of the queue used when a job description names none."""

    @abstractmethod
    def getJobs(self, *queue_names: str) -> list[Job]:
        """
        Return the jobs in the given queues (all queues if none are given).

        Raises:
            NoSuchQueueError: If any of the queues does not exist.
        """

    @abstractmethod
    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        """
        Return the status of a queue.

        Raises:
            NoSuchQueueError: If the queue does not exist.
        """

    @abstractmethod
    def getQueueStatuses(self, *queue_names: str) -> list[QueueStatus]:
        """
        Return the statuses of the given queues (all queues if none are given).

        Errors for individual queues are embedded in the statuses.
        """

    @abstractmethod
    def submitJob(self, description: JobDescription) -> Job:
        """
        Submit a job. Never waits for the job to start.

        Raises:
            IncompleteJobDescriptionError: If the description lacks the executable.
            InvalidJobDescriptionError: If the description is invalid.
            NoSuchQueueError: If the requested queue does not exist.
        """

    @abstractmethod
    def cancelJob(self, job: Job) -> JobStatus:
        """
        Cancel a job and return its status.

        Raises:
            NoSuchJobError: If the job is unknown to this scheduler.
        """

    @abstractmethod
    def getJobStatus(self, job: Job) -> JobStatus:
        """
        Return the status of a job.

        Raises:
            NoSuchJobError: If the job is unknown to this scheduler.
        """

    @abstractmethod
    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        """
        Return the statuses of several jobs.

        The result has one entry per input; a None job results in a None status,
        an unknown job in a status with an embedded NoSuchJobError.
        """

    @abstractmethod
    def waitUntilDone(self, job: Job, timeout: int) -> JobStatus:
        """
        Wait until the job is done or the timeout (in milliseconds) expires.

        A timeout of 0 means no deadline. Returns the last observed status.
        """

    @abstractmethod
    def waitUntilRunning(self, job: Job, timeout: int) -> JobStatus:
        """
        Wait until the job is running (or done) or the timeout (in milliseconds) expires.

        A timeout of 0 means no deadline. Returns the last observed status.
        """

    @abstractmethod
    def isOpen(self) -> bool:
        """Return True if the scheduler has not been closed yet."""

    @abstractmethod
    def close(self) -> None:
        """Release all resources of the scheduler."""
