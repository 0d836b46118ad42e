# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
In-process scheduler emulating a batch system with named job queues.

`JobQueueScheduler` keeps three queues:

- `single` runs one job at a time (the default queue),
- `multi` runs up to a configurable number of jobs at once,
- `unlimited` runs every submitted job immediately.

Jobs are started by a `ProcessLauncher` from a single background poller thread.
All bookkeeping is guarded by one condition variable, which is also used
to wake the poller on new submissions and to notify waiting callers about
state changes.
"""

import threading
import time
from collections import deque

from gridq_lib.core.common import milliseconds_to_seconds
from gridq_lib.core.error import (
    GridQError,
    InvalidJobDescriptionError,
    InvalidPropertyError,
    JobCanceledError,
    NoSuchJobError,
    NoSuchQueueError,
    NoSuchSchedulerError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import Credential
from gridq_lib.jobs import (
    Job,
    JobDescription,
    JobState,
    JobStatus,
    QueueStatus,
    verify_job_description,
)

from ..scheduler import Scheduler
from .launcher import ProcessLauncher, Streams
from .queues import JobQueue, QueuedJob

logger = get_logger(__name__)


class JobQueueScheduler(Scheduler):
    """
    Scheduler running jobs as processes started by a process launcher.

    All jobs are online: closing the scheduler kills every running job
    and discards every pending one.
    """

    SINGLE_QUEUE = "single"
    MULTI_QUEUE = "multi"
    UNLIMITED_QUEUE = "unlimited"

    def __init__(
        self,
        unique_id: str,
        adaptor_name: str,
        location: str,
        credential: Credential,
        properties: Properties,
        launcher: ProcessLauncher,
        workdir: str,
        multi_max_concurrent: int,
        polling_delay: int,
        history_size: int,
        supports_interactive: bool = True,
    ):
        """
        Initialize the scheduler and start its poller thread.

        Args:
            launcher (ProcessLauncher): Launcher used to start the jobs.
            workdir (str): Directory against which relative working directories are resolved.
            multi_max_concurrent (int): Maximal number of running jobs in the 'multi' queue.
            polling_delay (int): Delay between checks of running jobs in milliseconds.
            history_size (int): Number of finished jobs kept for status queries.
                -1 means unlimited.
            supports_interactive (bool): Can the scheduler run interactive jobs?

        Raises:
            InvalidPropertyError: If any of the numeric settings is invalid.
        """
        super().__init__(unique_id, adaptor_name, location, credential, properties)

        if multi_max_concurrent < 1:
            raise InvalidPropertyError(
                f"Maximal number of concurrent jobs must be positive, not '{multi_max_concurrent}'.",
                adaptor_name,
            )

        if polling_delay < 1:
            raise InvalidPropertyError(
                f"Polling delay must be positive, not '{polling_delay}'.", adaptor_name
            )

        if history_size < -1:
            raise InvalidPropertyError(
                f"History size must be non-negative or -1 (unlimited), not '{history_size}'.",
                adaptor_name,
            )

        self._launcher = launcher
        self._workdir = workdir
        self._polling_delay = milliseconds_to_seconds(polling_delay)
        self._history_size = history_size
        self._supports_interactive = supports_interactive

        self._queues: dict[str, JobQueue] = {
            JobQueueScheduler.SINGLE_QUEUE: JobQueue(JobQueueScheduler.SINGLE_QUEUE, 1),
            JobQueueScheduler.MULTI_QUEUE: JobQueue(
                JobQueueScheduler.MULTI_QUEUE, multi_max_concurrent
            ),
            JobQueueScheduler.UNLIMITED_QUEUE: JobQueue(
                JobQueueScheduler.UNLIMITED_QUEUE, 0
            ),
        }

        # every job known to the scheduler, including the finished ones
        self._records: dict[str, QueuedJob] = {}
        # identifiers of finished jobs in the order of completion
        self._history: deque[str] = deque()
        # interactive jobs bypass the queues
        self._interactive: list[QueuedJob] = []

        self._counter = 0
        self._open = True
        self._condition = threading.Condition()

        self._poller = threading.Thread(
            target=self._pollLoop, name=f"{adaptor_name} scheduler poller", daemon=True
        )
        self._poller.start()

        logger.debug(
            f"Started job queue scheduler '{unique_id}' (multi: {multi_max_concurrent}, "
            f"polling delay: {polling_delay} ms, history: {history_size})."
        )

    def isEmbedded(self) -> bool:
        return True

    def supportsInteractive(self) -> bool:
        return self._supports_interactive

    def supportsBatch(self) -> bool:
        return True

    def getQueueNames(self) -> list[str]:
        return list(self._queues)

    def getDefaultQueueName(self) -> str:
        return JobQueueScheduler.SINGLE_QUEUE

    def getJobs(self, *queue_names: str) -> list[Job]:
        with self._condition:
            self._checkOpen()
            queues = self._getQueues(queue_names)
            jobs = [job for queue in queues for job in queue.jobs()]
            if not queue_names:
                jobs.extend(record.job for record in self._interactive)
            return jobs

    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        with self._condition:
            self._checkOpen()
            (queue,) = self._getQueues((queue_name,))
            return self._queueStatusOf(queue)

    def getQueueStatuses(self, *queue_names: str) -> list[QueueStatus]:
        names = queue_names or tuple(self._queues)
        statuses = []
        with self._condition:
            self._checkOpen()
            for name in names:
                if queue := self._queues.get(name):
                    statuses.append(self._queueStatusOf(queue))
                else:
                    statuses.append(
                        QueueStatus(
                            self,
                            name,
                            exception=NoSuchQueueError(
                                f"Queue '{name}' does not exist.", self._adaptor_name
                            ),
                        )
                    )

        return statuses

    def submitJob(self, description: JobDescription) -> Job:
        verify_job_description(description, self._adaptor_name)

        if description.interactive:
            raise InvalidJobDescriptionError(
                "Interactive jobs must be submitted using 'submitInteractiveJob'.",
                self._adaptor_name,
            )

        description = description.copy()
        queue_name = description.queue_name or self.getDefaultQueueName()

        with self._condition:
            self._checkOpen()
            (queue,) = self._getQueues((queue_name,))

            job = Job(self, self._nextIdentifier(), description, online=True)
            record = QueuedJob(job, description, queue_name)
            self._records[job.getIdentifier()] = record
            queue.enqueue(record)
            logger.debug(f"Job '{job.getIdentifier()}' enqueued in '{queue_name}'.")

            # wake the poller to start the job
            self._condition.notify_all()

        return job

    def submitInteractiveJob(self, description: JobDescription) -> tuple[Job, Streams]:
        """
        Start an interactive job immediately and return its standard streams.

        Interactive jobs bypass the queues and are never pending.

        Raises:
            InvalidJobDescriptionError: If the scheduler does not support
                interactive jobs or the description is invalid.
            CommandNotFoundError: If the executable cannot be started.
        """
        if not self._supports_interactive:
            raise InvalidJobDescriptionError(
                "Interactive jobs are not supported.", self._adaptor_name
            )

        verify_job_description(description, self._adaptor_name)
        description = description.copy()
        description.interactive = True

        with self._condition:
            self._checkOpen()
            job = Job(self, self._nextIdentifier(), description, interactive=True)
            process = self._launcher.start(description, self._workdir, interactive=True)

            record = QueuedJob(
                job, description, "", state=JobState.RUNNING, process=process
            )
            record.started = time.monotonic()
            self._records[job.getIdentifier()] = record
            self._interactive.append(record)
            self._condition.notify_all()

        logger.debug(f"Started interactive job '{job.getIdentifier()}'.")
        return job, process.getStreams(job.getIdentifier())

    def cancelJob(self, job: Job) -> JobStatus:
        with self._condition:
            self._checkOpen()
            record = self._getRecord(job)

            if record.isDone():
                logger.debug(f"Job '{job.getIdentifier()}' is already finished.")
                return self._statusOf(record)

            if record.state == JobState.PENDING:
                logger.debug(f"Removing pending job '{job.getIdentifier()}'.")
            else:
                logger.debug(f"Killing running job '{job.getIdentifier()}'.")
                record.process.destroy()  # ty: ignore[possibly-missing-attribute]

            self._detach(record)
            self._finish(
                record,
                JobState.KILLED,
                JobCanceledError("Job killed by user.", self._adaptor_name),
            )
            self._condition.notify_all()
            return self._statusOf(record)

    def getJobStatus(self, job: Job) -> JobStatus:
        with self._condition:
            self._checkOpen()
            return self._statusOf(self._getRecord(job))

    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        statuses: list[JobStatus | None] = []
        with self._condition:
            self._checkOpen()
            for job in jobs:
                if job is None:
                    statuses.append(None)
                    continue

                try:
                    statuses.append(self._statusOf(self._getRecord(job)))
                except NoSuchJobError as e:
                    statuses.append(
                        JobStatus(job, str(JobState.UNKNOWN), exception=e, done=True)
                    )

        return statuses

    def waitUntilDone(self, job: Job, timeout: int) -> JobStatus:
        return self._waitFor(job, timeout, lambda r: r.isDone())

    def waitUntilRunning(self, job: Job, timeout: int) -> JobStatus:
        return self._waitFor(
            job, timeout, lambda r: r.state == JobState.RUNNING or r.isDone()
        )

    def isOpen(self) -> bool:
        with self._condition:
            return self._open

    def close(self) -> None:
        with self._condition:
            if not self._open:
                return

            self._open = False
            logger.debug(f"Closing job queue scheduler '{self._unique_id}'.")

            for record in list(self._records.values()):
                if record.isDone():
                    continue

                if record.state == JobState.RUNNING:
                    record.process.destroy()  # ty: ignore[possibly-missing-attribute]

                self._detach(record)
                self._finish(
                    record,
                    JobState.KILLED,
                    JobCanceledError("Scheduler closed.", self._adaptor_name),
                )

            self._condition.notify_all()

        self._poller.join()

    def _pollLoop(self) -> None:
        with self._condition:
            while self._open:
                try:
                    self._advance()
                except Exception as e:
                    # a failed pass is retried on the next wake
                    logger.error(f"Unexpected error in the job queue poller: {e}")

                self._condition.notify_all()
                self._condition.wait(self._polling_delay)

        logger.debug(f"Poller of scheduler '{self._unique_id}' stopped.")

    def _advance(self) -> None:
        """Collect finished jobs and start pending ones. Requires the lock."""
        for record in list(self._interactive):
            self._checkRunning(record)

        for queue in self._queues.values():
            for record in list(queue.running):
                self._checkRunning(record)

            while (record := queue.dequeue()) is not None:
                self._launch(record)

    def _checkRunning(self, record: QueuedJob) -> None:
        process = record.process
        if process is None:
            return

        if not process.isAlive():
            record.exit_code = process.exitValue()
            logger.debug(
                f"Job '{record.job.getIdentifier()}' finished with exit code '{record.exit_code}'."
            )
            self._detach(record)
            self._finish(record, JobState.DONE)
            return

        max_runtime = record.description.max_runtime * 60
        if time.monotonic() - record.started > max_runtime:
            logger.debug(
                f"Job '{record.job.getIdentifier()}' exceeded its maximal runtime."
            )
            process.destroy()
            self._detach(record)
            self._finish(
                record,
                JobState.KILLED,
                JobCanceledError(
                    f"Job exceeded its maximal runtime of {record.description.max_runtime} minutes.",
                    self._adaptor_name,
                ),
            )

    def _launch(self, record: QueuedJob) -> None:
        logger.debug(f"Starting job '{record.job.getIdentifier()}'.")
        try:
            record.process = self._launcher.start(record.description, self._workdir)
        except GridQError as e:
            logger.debug(f"Could not start job '{record.job.getIdentifier()}': {e}")
            self._detach(record)
            self._finish(record, JobState.ERROR, e)
            return

        record.state = JobState.RUNNING
        record.started = time.monotonic()

    def _detach(self, record: QueuedJob) -> None:
        if record in self._interactive:
            self._interactive.remove(record)
            return

        if queue := self._queues.get(record.queue_name):
            queue.remove(record)

    def _finish(
        self, record: QueuedJob, state: JobState, exception: Exception | None = None
    ) -> None:
        """Move the job into a terminal state and trim the history. Requires the lock."""
        record.state = state
        record.exception = exception
        self._history.append(record.job.getIdentifier())

        if self._history_size == -1:
            return

        while len(self._history) > self._history_size:
            evicted = self._history.popleft()
            self._records.pop(evicted, None)
            logger.debug(f"Removed job '{evicted}' from history.")

    def _waitFor(self, job: Job, timeout: int, predicate) -> JobStatus:
        if timeout < 0:
            raise GridQError(
                f"Illegal timeout '{timeout}'. Must be non-negative.",
                self._adaptor_name,
            )

        deadline = (
            None
            if timeout == 0
            else time.monotonic() + milliseconds_to_seconds(timeout)
        )

        with self._condition:
            self._checkOpen()
            record = self._getRecord(job)

            while not predicate(record) and self._open:
                if deadline is None:
                    self._condition.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._condition.wait(remaining)

            return self._statusOf(record)

    def _statusOf(self, record: QueuedJob) -> JobStatus:
        return JobStatus(
            record.job,
            str(record.state),
            exit_code=record.exit_code,
            exception=record.exception,
            running=record.state == JobState.RUNNING,
            done=record.isDone(),
            scheduler_specific_info={"queue": record.queue_name}
            if record.queue_name
            else {},
        )

    def _queueStatusOf(self, queue: JobQueue) -> QueueStatus:
        return QueueStatus(
            self,
            queue.name,
            scheduler_specific_info={
                "max_concurrent": "unlimited"
                if queue.isUnlimited()
                else str(queue.max_concurrent),
                "running": str(len(queue.running)),
                "pending": str(len(queue.pending)),
            },
        )

    def _getQueues(self, names: tuple[str, ...]) -> list[JobQueue]:
        if not names:
            return list(self._queues.values())

        if missing := [name for name in names if name not in self._queues]:
            raise NoSuchQueueError(
                f"Queue(s) do not exist: {', '.join(missing)}.", self._adaptor_name
            )

        return [self._queues[name] for name in names]

    def _getRecord(self, job: Job) -> QueuedJob:
        record = self._records.get(job.getIdentifier())
        if record is None or job.getScheduler().getUniqueId() != self._unique_id:
            raise NoSuchJobError(
                f"Job '{job.getIdentifier()}' does not exist.", self._adaptor_name
            )

        return record

    def _nextIdentifier(self) -> str:
        self._counter += 1
        return f"{self._adaptor_name}-{self._counter}"

    def _checkOpen(self) -> None:
        if not self._open:
            raise NoSuchSchedulerError(
                f"Scheduler '{self._unique_id}' is closed.", self._adaptor_name
            )
