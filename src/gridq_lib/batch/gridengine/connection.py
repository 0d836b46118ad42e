# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Connection to a Grid Engine batch system.

Running and pending jobs are listed by `qstat -xml`, finished jobs by `qacct`.
A job may vanish from `qstat` some time before `qacct` knows about it, so a
job that was seen recently is reported as not done with an unknown state
during the accounting grace time. Jobs deleted before they started never
reach `qacct`; the connection remembers them and reports them as killed.
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
from ..scripting.parser import (
    WHITESPACE_REGEX,
    parse_job_id_from_line,
    parse_key_value_lines,
    verify_job_info,
)
from ..scripting.transport import Transport
from ..slurm.script import resolve_path
from .cluster import GridEngineSetup
from .parser import ADAPTOR_NAME, GridEngineXmlParser
from .script import (
    JOB_OPTION_JOB_SCRIPT,
    JOB_OPTION_PARALLEL_ENVIRONMENT,
    JOB_OPTION_PARALLEL_SLOTS,
    JOB_OPTION_RESOURCES,
    generate_gridengine_script,
)

logger = get_logger(__name__)

VALID_JOB_OPTIONS = [
    JOB_OPTION_JOB_SCRIPT,
    JOB_OPTION_PARALLEL_ENVIRONMENT,
    JOB_OPTION_PARALLEL_SLOTS,
    JOB_OPTION_RESOURCES,
]

QACCT_HEADER = "=============================================================="


def job_status_from_qstat_info(
    info: dict[str, dict[str, str]], job: Job
) -> JobStatus | None:
    """
    Return the status of a job listed by 'qstat -xml', or None if it is not listed.

    A job in an error state ('Eqw') is reported as done with an exception.

    Raises:
        GridQError: If the job info lacks the job number or the state.
    """
    job_info = info.get(job.getIdentifier())
    if job_info is None:
        return None

    verify_job_info(job_info, job, ADAPTOR_NAME, "JB_job_number", "state", "long_state")

    long_state = job_info["long_state"]
    state_code = job_info["state"]

    exception = None
    if "E" in state_code:
        exception = GridQError(f"Job reports error state: {state_code}", ADAPTOR_NAME)

    return JobStatus(
        job,
        long_state,
        exception=exception,
        running=long_state == "running",
        done=exception is not None,
        scheduler_specific_info=job_info,
    )


def job_status_from_qacct_info(info: dict[str, str] | None, job: Job) -> JobStatus | None:
    """
    Return the status of a finished job reported by 'qacct -j', or None without info.

    Raises:
        GridQError: If the info lacks a mandatory field or the exit status is not a number.
    """
    if info is None:
        return None

    verify_job_info(info, job, ADAPTOR_NAME, "jobnumber", "exit_status", "failed")

    raw = info["exit_status"]
    try:
        exit_code = int(raw)
    except ValueError as e:
        raise GridQError(
            f"Cannot parse exit code of job '{job.getIdentifier()}' from '{raw}'.",
            ADAPTOR_NAME,
        ) from e

    failed = info["failed"]
    exception = None
    if failed == "0":
        pass
    # 100 is the failure code of jobs killed by a signal
    elif failed.startswith("100"):
        exception = JobCanceledError("Job killed by signal.", ADAPTOR_NAME)
    else:
        exception = GridQError(f"Job reports error: {failed}", ADAPTOR_NAME)

    return JobStatus(
        job,
        "done",
        exit_code=exit_code,
        exception=exception,
        done=True,
        scheduler_specific_info=info,
    )


class GridEngineSchedulerConnection(SchedulerConnection):
    """Connection to a Grid Engine batch system controlled by `qsub`, `qstat`, `qacct`, and `qdel`."""

    def __init__(
        self,
        unique_id: str,
        location: str | None,
        credential: Credential,
        properties: Mapping[str, str] | None,
        valid_properties: list[PropertyDescription],
        ignore_version_property: str,
        grace_time_property: str,
        transport: Transport | None = None,
    ):
        super().__init__(
            unique_id,
            ADAPTOR_NAME,
            ["gridengine", "sge", "local", "ssh"],
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
            self._parser = GridEngineXmlParser(
                bool(self.getProperties().getBoolean(ignore_version_property))
            )
            self._grace_time = milliseconds_to_seconds(
                self.getProperties().getLong(grace_time_property) or 0
            )
            # checks the version of the server
            self._queryQueues()
            self._setup = GridEngineSetup(self)
        except GridQError:
            self.close()
            raise

    def getQueueNames(self) -> list[str]:
        return self._setup.getQueueNames()

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

        if description.node_count == 1:
            return

        options = description.job_options
        if JOB_OPTION_PARALLEL_ENVIRONMENT not in options:
            raise InvalidJobDescriptionError(
                "Parallel job requested but mandatory parallel.environment option not specified.",
                ADAPTOR_NAME,
            )

        if description.queue_name is None and JOB_OPTION_PARALLEL_SLOTS not in options:
            raise InvalidJobDescriptionError(
                "Parallel job requested but neither queue nor number of slots specified "
                "(at least one is required).",
                ADAPTOR_NAME,
            )

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
            script = generate_gridengine_script(
                description, self.getEntryPath(), self._setup
            )
            output = self.runCheckedCommand(script, "qsub")

        identifier = parse_job_id_from_line(output, ADAPTOR_NAME, "Your job")
        self._updateSeen([identifier])

        logger.debug(f"Submitted Grid Engine job '{identifier}'.")
        return Job(self.getScheduler(), identifier, description)

    def cancelJob(self, job: Job) -> JobStatus:
        self._delete(job.getIdentifier())
        return self.getJobStatus(job)

    def getJobs(self, *queue_names: str) -> list[Job]:
        if queue_names:
            self.checkQueueNames(queue_names)

        identifiers: list[str] = []
        for args in [["-q", name] for name in queue_names] or [[]]:
            runner = self.runCommand(None, "qstat", "-xml", *args)

            if runner.getExitCode() == 1:
                raise NoSuchQueueError(
                    f"Failed to get jobs of queue '{args[-1]}': {runner.getStderr().strip()}",
                    ADAPTOR_NAME,
                )
            if runner.getExitCode() != 0:
                raise CommandFailedError(
                    f"Failed to get jobs: {runner}",
                    ADAPTOR_NAME,
                    exit_code=runner.getExitCode(),
                    stdout=runner.getStdout(),
                    stderr=runner.getStderr(),
                )

            info = self._parser.parseJobInfos(runner.getStdout())
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
        info = self._queryQueues().get(queue_name)

        if info is None:
            raise NoSuchQueueError(
                f"Cannot get status of queue '{queue_name}' from server.", ADAPTOR_NAME
            )

        return QueueStatus(self.getScheduler(), queue_name, scheduler_specific_info=info)

    def getQueueStatuses(self, *queue_names: str | None) -> list[QueueStatus | None]:
        targets = queue_names or tuple(self.getQueueNames())

        try:
            info = self._queryQueues()
        except CommandFailedError as e:
            logger.debug(f"Failed to get the status of queues: {e}")
            info = {}

        result: list[QueueStatus | None] = []
        for name in targets:
            if name is None:
                result.append(None)
            elif (queue_info := info.get(name)) is not None:
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

    def _queryQueues(self) -> dict[str, dict[str, str]]:
        output = self.runCheckedCommand(None, "qstat", "-g", "c", "-xml")
        return self._parser.parseQueueInfos(output)

    def _delete(self, identifier: str) -> None:
        output = self.runCheckedCommand(None, "qdel", identifier)

        if f"has registered the job {identifier} for deletion" in output:
            # a running job takes a while to reach the accounting
            self._updateSeen([identifier])
        elif f"has deleted job {identifier}" in output:
            with self._lock:
                self._deleted.add(identifier)
        else:
            raise GridQError(
                f"Unexpected output of qdel for job '{identifier}': '{output.strip()}'.",
                ADAPTOR_NAME,
            )

    def _qstatInfo(self) -> dict[str, dict[str, str]]:
        runner = self.runCommand(None, "qstat", "-xml")

        if runner.getExitCode() != 0:
            logger.debug(f"Failed to get job status: {runner}")
            return {}

        info = self._parser.parseJobInfos(runner.getStdout())
        self._updateSeen(info.keys())
        return info

    def _qacctInfo(self, identifier: str) -> dict[str, str] | None:
        runner = self.runCommand(None, "qacct", "-j", identifier)

        if runner.getExitCode() != 0:
            logger.debug(f"Failed to get accounting info: {runner}")
            return None

        return parse_key_value_lines(
            runner.getStdout(), WHITESPACE_REGEX, ADAPTOR_NAME, QACCT_HEADER
        )

    def _statusOf(self, info: dict[str, dict[str, str]], job: Job) -> JobStatus | None:
        identifier = job.getIdentifier()
        status = job_status_from_qstat_info(info, job)

        # jobs in an error state stay queued forever
        if status is not None and status.hasException():
            logger.debug(f"Deleting job '{identifier}' in error state: {status.getException()}")
            self._delete(identifier)
            status = None

        if status is None:
            status = job_status_from_qacct_info(self._qacctInfo(identifier), job)

        if status is None and self._wasDeleted(identifier):
            return JobStatus(
                job,
                "KILLED",
                exception=JobCanceledError(
                    f"Job '{identifier}' deleted by user while still pending.",
                    ADAPTOR_NAME,
                ),
                done=True,
            )

        if status is None and self._recentlySeen(identifier):
            return JobStatus(job, "UNKNOWN")

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
