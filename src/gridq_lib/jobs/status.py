# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .job import Job

if TYPE_CHECKING:
    from gridq_lib.batch.scheduler import Scheduler


@dataclass(frozen=True)
class JobStatus:
    """
    Snapshot of the status of a job.

    A new status is created on every poll. Errors that occurred while the job
    was executed, or while its status was retrieved as part of a batch query,
    are embedded in `exception` rather than raised; always check `hasException`.
    """

    # The job this status belongs to.
    job: Job

    # Textual state of the job as reported by the scheduler.
    state: str

    # Exit code of the job, if known.
    exit_code: int | None = None

    # Error associated with the job, if any.
    exception: Exception | None = None

    # Is the job running?
    running: bool = False

    # Has the job finished?
    done: bool = False

    # Additional information reported by the scheduler.
    scheduler_specific_info: dict[str, str] = field(default_factory=dict)

    def getJob(self) -> Job:
        return self.job

    def getState(self) -> str:
        return self.state

    def getExitCode(self) -> int | None:
        return self.exit_code

    def getException(self) -> Exception | None:
        return self.exception

    def hasException(self) -> bool:
        return self.exception is not None

    def isRunning(self) -> bool:
        return self.running

    def isDone(self) -> bool:
        return self.done

    def maybeThrowException(self) -> None:
        """Raise the embedded exception, if there is one."""
        if self.exception is not None:
            raise self.exception


@dataclass(frozen=True)
class QueueStatus:
    """
    Snapshot of the status of a queue.
    """

    # The scheduler the queue belongs to.
    scheduler: "Scheduler"

    # Name of the queue.
    queue_name: str

    # Error associated with the query, if any.
    exception: Exception | None = None

    # Additional information reported by the scheduler.
    scheduler_specific_info: dict[str, str] = field(default_factory=dict)

    def getQueueName(self) -> str:
        return self.queue_name

    def getException(self) -> Exception | None:
        return self.exception

    def hasException(self) -> bool:
        return self.exception is not None
