# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections import deque
from dataclasses import dataclass, field

from gridq_lib.core.error import GridQError
from gridq_lib.jobs import Job, JobDescription, JobState

from .launcher import LaunchedProcess


@dataclass(eq=False)
class QueuedJob:
    """Bookkeeping record of a job handled by the job queue scheduler."""

    job: Job
    description: JobDescription
    queue_name: str
    state: JobState = JobState.PENDING
    process: LaunchedProcess | None = None
    exit_code: int | None = None
    exception: Exception | None = None
    # monotonic time at which the job was started
    started: float = 0.0

    def isDone(self) -> bool:
        return self.state.isDone()


@dataclass
class JobQueue:
    """
    A named FIFO queue with an optional limit on concurrently running jobs.

    A limit of 0 means the queue may run any number of jobs at once.
    """

    name: str
    max_concurrent: int
    pending: deque[QueuedJob] = field(default_factory=deque)
    running: list[QueuedJob] = field(default_factory=list)

    def __post_init__(self):
        if self.max_concurrent < 0:
            raise GridQError(
                f"Maximal number of concurrent jobs in queue '{self.name}' cannot be negative."
            )

    def hasCapacity(self) -> bool:
        """Return True if another job may be started in this queue."""
        return self.max_concurrent == 0 or len(self.running) < self.max_concurrent

    def isUnlimited(self) -> bool:
        return self.max_concurrent == 0

    def enqueue(self, record: QueuedJob) -> None:
        self.pending.append(record)

    def dequeue(self) -> QueuedJob | None:
        """Move the oldest pending job into the running set and return it."""
        if not self.pending or not self.hasCapacity():
            return None

        record = self.pending.popleft()
        self.running.append(record)
        return record

    def remove(self, record: QueuedJob) -> bool:
        """Remove the job from the queue. Returns False if the job was not present."""
        if record in self.pending:
            self.pending.remove(record)
            return True

        if record in self.running:
            self.running.remove(record)
            return True

        return False

    def jobs(self) -> list[Job]:
        return [r.job for r in self.running] + [r.job for r in self.pending]
