# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Connection to a TORQUE batch system.

TORQUE forgets finished jobs quickly and offers no accounting tool, so the
connection remembers when it last saw each job. A job that disappeared from
`qstat` within the accounting grace time is reported as done with an unknown
state instead of as an unknown job.
"""

import threading
import time
from collections.abc import Mapping

from gridq_lib.core.common import milliseconds_to_seconds
from gridq_lib.core.error import (
    CommandFailedError,
    GridQError,
    InvalidJobDescriptionError,
    JobCanceledError,
    NoSuchJobError,
    NoSuchQueueError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import PropertyDescription
from gridq_lib.credentials import Credential
from gridq_lib.jobs import (
    Job,
    JobDescription,
    JobStatus,
    QueueStatus,
    verify_job_options,
)

from ..scripting.connection import SchedulerConnection
from ..scripting.parser import parse_dump_blocks, parse_job_id_from_line
from ..scripting.transport import Transport
from ..slurm.script import resolve_path
from .script import generate_torque_script

logger = get_logger(__name__)

ADAPTOR_NAME = "torque"

JOB_OPTION_JOB_SCRIPT = "job.script"
VALID_JOB_OPTIONS = [JOB_OPTION_JOB_SCRIPT]

DONE_STATE = "C"
RUNNING_STATE = "R"

# exit code of qdel for a job that is already finishing
QDEL_BAD_STATE = 170


def job_status_from_qstat_info(
    info: dict[str, dict[str, str]], job: Job
) -> JobStatus | None:
    """
    Return the status of a job listed by 'qstat -f', or None if it is not listed.

    Raises:
        GridQError: If the job info lacks the state or has an invalid exit status.
    """
    job_info = info.get(job.getIdentifier())
    if job_info is None:
        return None

    state = job_info.get("job_state")
    if state is None:
        raise GridQError(
            f"Invalid job info. Info of job '{job.getIdentifier()}' does not contain its state.",
            ADAPTOR_NAME,
        )

    exit_code = None
    if (raw := job_info.get("exit_status")) is not None:
        try:
            exit_code = int(raw)
        except ValueError as e:
            raise GridQError(
                f"Job exit status '{raw}' is not a number.", ADAPTOR_NAME
            ) from e

    done = state == DONE_STATE
    exception = None
    # negative exit statuses are reported by TORQUE itself when it could not run the job
    if done and exit_code is not None and exit_code < 0:
        exception = GridQError(
            f"Job failed with exit status '{exit_code}'.", ADAPTOR_NAME
        )

    return JobStatus(
        job,
        state,
        exit_code=exit_code,
        exception=exception,
        running=state == RUNNING_STATE,
        done=done,
        scheduler_specific_info=job_info,
    )


class TorqueSchedulerConnection(SchedulerConnection):
    """Connection to a TORQUE batch system controlled by `qsub`, `qstat`, and `qdel`."""

    def __init__(
        self,
        unique_id: str,
        location: str | None,
        credential: Credential,
        properties: Mapping[str, str] | None,
        valid_properties: list[PropertyDescription],
        grace_time_property: str,
        transport: Transport | None = None,
    ):
        super().__init__(
            unique_id,
            ADAPTOR_NAME,
            ["torque", "local", "ssh"],
            location,
            credential,
            properties,
            valid_properties,
            transport,
        )

        self._lock = threading.Lock()
        self._last_seen: dict[str, float] = {}
        self._deleted: set[str] = set()

        try:
            self._grace_time = milliseconds_to_seconds(
                self.getProperties().getLong(grace_time_property) or 0
            )
            self._queue_names = list(self._queryQueues())
        except GridQError:
            self.close()
            raise

    def getQueueNames(self) -> list[str]:
        return list(self._queue_names)

    def getDefaultQueueName(self) -> str | None:
        # decided by the server
        return None

    def verifyJobDescription(self, description: JobDescription) -> None:
        verify_job_options(description.job_options, VALID_JOB_OPTIONS, ADAPTOR_NAME)

        if description.interactive:
            raise InvalidJobDescriptionError(
                "Adaptor does not support interactive jobs.", ADAPTOR_NAME
            )

        if description.job_options.get(JOB_OPTION_JOB_SCRIPT) is not None:
            return

        super().verifyJobDescription(description)

    def submitJob(self, description: JobDescription) -> Job:
        self.verifyJobDescription(description)
        description = description.copy()

        if description.queue_name is not None:
            self.checkQueueNames([description.queue_name])

        if script_file := description.job_options.get(JOB_OPTION_JOB_SCRIPT):
            output = self.runCheckedCommand(
                None, "qsub", resolve_path(self.getEntryPath(), script_file)
            )
        else:
            self.checkWorkingDirectory(description.working_directory)
            script = generate_torque_script(description, self.getEntryPath())
            output = self.runCheckedCommand(script, "qsub")

        identifier = parse_job_id_from_line(output, ADAPTOR_NAME, "")
        self._updateSeen([identifier])

        logger.debug(f"Submitted TORQUE job '{identifier}'.")
        return Job(self.getScheduler(), identifier, description)

    def cancelJob(self, job: Job) -> JobStatus:
        identifier = job.getIdentifier()
        runner = self.runCommand(None, "qdel", identifier)

        if runner.getExitCode() == 0:
            with self._lock:
                self._deleted.add(identifier)
        elif runner.getExitCode() != QDEL_BAD_STATE:
            raise CommandFailedError(
                f"Could not run command qdel for job '{identifier}': {runner}",
                ADAPTOR_NAME,
                exit_code=runner.getExitCode(),
                stdout=runner.getStdout(),
                stderr=runner.getStderr(),
            )

        return self.getJobStatus(job)

    def getJobs(self, *queue_names: str) -> list[Job]:
        if queue_names:
            self.checkQueueNames(queue_names)

        identifiers: list[str] = []
        for args in [[name] for name in queue_names] or [[]]:
            output = self.runCheckedCommand(None, "qstat", "-f", *args)
            info = parse_dump_blocks(output, "Job Id")
            self._updateSeen(info.keys())
            identifiers.extend(info.keys())

        return [Job(self.getScheduler(), identifier) for identifier in identifiers]

    def getJobStatus(self, job: Job) -> JobStatus:
        status = self._statusOf(self._qstatInfo(), job)

        if status is None:
            raise NoSuchJobError(
                f"Job '{job.getIdentifier()}' not found on server.", ADAPTOR_NAME
            )

        return status

    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        info = self._qstatInfo()

        result: list[JobStatus | None] = []
        for job in jobs:
            if job is None:
                result.append(None)
                continue

            status = self._statusOf(info, job)
            if status is None:
                status = JobStatus(
                    job,
                    "UNKNOWN",
                    exception=NoSuchJobError(
                        f"Job '{job.getIdentifier()}' not found on server.", ADAPTOR_NAME
                    ),
                    done=True,
                )
            result.append(status)

        return result

    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        info = self._queryQueues(queue_name).get(queue_name)

        if not info:
            raise NoSuchQueueError(
                f"Cannot get status of queue '{queue_name}' from server.", ADAPTOR_NAME
            )

        return QueueStatus(self.getScheduler(), queue_name, scheduler_specific_info=info)

    def getQueueStatuses(self, *queue_names: str | None) -> list[QueueStatus | None]:
        targets = queue_names or tuple(self._queue_names)
        requested = [name for name in targets if name is not None]

        try:
            info = self._queryQueues(*requested)
        except CommandFailedError as e:
            logger.debug(f"Failed to get the status of queues {requested}: {e}")
            info = {}

        result: list[QueueStatus | None] = []
        for name in targets:
            if name is None:
                result.append(None)
            elif queue_info := info.get(name):
                result.append(
                    QueueStatus(
                        self.getScheduler(), name, scheduler_specific_info=queue_info
                    )
                )
            else:
                result.append(
                    QueueStatus(
                        self.getScheduler(),
                        name,
                        exception=NoSuchQueueError(
                            f"Cannot get status of queue '{name}' from server.",
                            ADAPTOR_NAME,
                        ),
                    )
                )

        return result

    def _queryQueues(self, *queue_names: str) -> dict[str, dict[str, str]]:
        output = self.runCheckedCommand(None, "qstat", "-Q", "-f", *queue_names)
        return parse_dump_blocks(output, "Queue")

    def _qstatInfo(self) -> dict[str, dict[str, str]]:
        runner = self.runCommand(None, "qstat", "-f")

        if runner.getExitCode() != 0:
            logger.debug(f"Failed to get job status: {runner}")
            return {}

        info = parse_dump_blocks(runner.getStdout(), "Job Id")
        self._updateSeen(info.keys())
        return info

    def _statusOf(self, info: dict[str, dict[str, str]], job: Job) -> JobStatus | None:
        identifier = job.getIdentifier()
        status = job_status_from_qstat_info(info, job)

        if status is None:
            if self._wasDeleted(identifier):
                return JobStatus(
                    job,
                    "KILLED",
                    exception=JobCanceledError(
                        f"Job '{identifier}' deleted by user.", ADAPTOR_NAME
                    ),
                    done=True,
                )

            if self._recentlySeen(identifier):
                return JobStatus(job, "UNKNOWN", done=True)

            return None

        if status.isDone() and self._wasDeleted(identifier):
            return JobStatus(
                job,
                "KILLED",
                exit_code=status.getExitCode(),
                exception=JobCanceledError(
                    f"Job '{identifier}' deleted by user.", ADAPTOR_NAME
                ),
                done=True,
                scheduler_specific_info=status.scheduler_specific_info,
            )

        return status

    def _updateSeen(self, identifiers) -> None:
        now = time.monotonic()
        with self._lock:
            for identifier in identifiers:
                self._last_seen[identifier] = now

            expired = [
                identifier
                for identifier, seen in self._last_seen.items()
                if now - seen > self._grace_time
            ]
            for identifier in expired:
                del self._last_seen[identifier]

    def _recentlySeen(self, identifier: str) -> bool:
        with self._lock:
            seen = self._last_seen.get(identifier)
            return seen is not None and time.monotonic() - seen <= self._grace_time

    def _wasDeleted(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._deleted
