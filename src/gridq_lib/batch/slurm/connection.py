# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Mapping

from gridq_lib.core.error import (
    GridQError,
    InvalidJobDescriptionError,
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
    BAR_REGEX,
    WHITESPACE_REGEX,
    identifiers_as_cs_list,
    parse_job_id_from_line,
    parse_key_value_pairs,
    parse_list,
    parse_table,
)
from ..scripting.transport import Transport
from .common import (
    ADAPTOR_NAME,
    SACCT_FIELDS,
    job_status_from_sacct_info,
    job_status_from_scontrol_info,
    job_status_from_squeue_info,
    parse_slurm_dump_to_dictionary,
    queue_status_from_sinfo_info,
)
from .script import generate_slurm_script, resolve_path

logger = get_logger(__name__)

# job option replacing the generated job script by a user provided one
JOB_OPTION_JOB_SCRIPT = "job.script"
VALID_JOB_OPTIONS = [JOB_OPTION_JOB_SCRIPT]

# accounting storage type of clusters without accounting
NO_ACCOUNTING = "accounting_storage/none"


class SlurmSchedulerConnection(SchedulerConnection):
    """
    Connection to a Slurm batch system.

    The status of a job is looked up in the queue (`squeue`) first, then in the
    accounting (`sacct`, if available), and finally using `scontrol`.
    """

    def __init__(
        self,
        unique_id: str,
        location: str | None,
        credential: Credential,
        properties: Mapping[str, str] | None,
        valid_properties: list[PropertyDescription],
        disable_accounting_property: str,
        transport: Transport | None = None,
    ):
        super().__init__(
            unique_id,
            ADAPTOR_NAME,
            ["slurm", "local", "ssh"],
            location,
            credential,
            properties,
            valid_properties,
            transport,
        )

        try:
            disabled = self.getProperties().getBoolean(disable_accounting_property)
            self._accounting = not disabled and self._accountingAvailable()
            self._queue_names, self._default_queue = self._queryQueueNames()
        except GridQError:
            self.close()
            raise

        logger.debug(
            f"Slurm queues: {self._queue_names} (default '{self._default_queue}'), "
            f"accounting {'available' if self._accounting else 'unavailable'}."
        )

    def getQueueNames(self) -> list[str]:
        return list(self._queue_names)

    def getDefaultQueueName(self) -> str | None:
        return self._default_queue

    def isAccountingAvailable(self) -> bool:
        return self._accounting

    def verifyJobDescription(self, description: JobDescription) -> None:
        verify_job_options(description.job_options, VALID_JOB_OPTIONS, ADAPTOR_NAME)

        if description.interactive:
            raise InvalidJobDescriptionError(
                "Adaptor does not support interactive jobs.", ADAPTOR_NAME
            )

        # a custom job script overrides all other settings
        if description.job_options.get(JOB_OPTION_JOB_SCRIPT) is not None:
            return

        super().verifyJobDescription(description)

    def submitJob(self, description: JobDescription) -> Job:
        self.verifyJobDescription(description)
        description = description.copy()

        if script_file := description.job_options.get(JOB_OPTION_JOB_SCRIPT):
            # the user gave us a job script, pass it to sbatch as-is
            output = self.runCheckedCommand(
                None, "sbatch", resolve_path(self.getEntryPath(), script_file)
            )
        else:
            if description.queue_name is not None:
                self.checkQueueNames([description.queue_name])
            self.checkWorkingDirectory(description.working_directory)

            script = generate_slurm_script(description, self.getEntryPath())
            output = self.runCheckedCommand(script, "sbatch")

        identifier = parse_job_id_from_line(
            output, ADAPTOR_NAME, "Submitted batch job", "Granted job allocation"
        )
        if not identifier.isdigit():
            raise GridQError(
                f"Job identifier '{identifier}' returned by sbatch is not a number.",
                ADAPTOR_NAME,
            )

        logger.debug(f"Submitted Slurm job '{identifier}'.")
        return Job(self.getScheduler(), identifier, description)

    def cancelJob(self, job: Job) -> JobStatus:
        output = self.runCheckedCommand(None, "scancel", job.getIdentifier())

        if output.strip():
            raise GridQError(
                f"Got unexpected output on cancelling job: '{output.strip()}'.",
                ADAPTOR_NAME,
            )

        return self.getJobStatus(job)

    def getJobs(self, *queue_names: str) -> list[Job]:
        if not queue_names:
            output = self.runCheckedCommand(None, "squeue", "--noheader", "--format=%i")
        else:
            self.checkQueueNames(queue_names)
            output = self.runCheckedCommand(
                None,
                "squeue",
                "--noheader",
                "--format=%i",
                f"--partitions={','.join(queue_names)}",
            )

        # job identifiers are listed on separate lines
        return [Job(self.getScheduler(), identifier) for identifier in parse_list(output)]

    def getJobStatus(self, job: Job) -> JobStatus:
        status = job_status_from_squeue_info(self._squeueInfo(job), job)

        if status is None:
            status = job_status_from_sacct_info(self._sacctInfo(job), job)

        if status is None:
            status = job_status_from_scontrol_info(self._scontrolInfo(job), job)

        if status is None:
            raise NoSuchJobError(f"Unknown job: '{job.getIdentifier()}'.", ADAPTOR_NAME)

        return status

    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        if not any(job is not None for job in jobs):
            return [None] * len(jobs)

        # fetch information about all jobs in one go
        squeue_info = self._squeueInfo(*jobs)
        sacct_info = self._sacctInfo(*jobs)

        result: list[JobStatus | None] = []
        for job in jobs:
            if job is None:
                result.append(None)
                continue

            status = job_status_from_squeue_info(
                squeue_info, job
            ) or job_status_from_sacct_info(sacct_info, job)

            # scontrol runs one additional command per job
            if status is None:
                status = job_status_from_scontrol_info(self._scontrolInfo(job), job)

            if status is None:
                status = JobStatus(
                    job,
                    "UNKNOWN",
                    exception=NoSuchJobError(
                        f"Unknown job: '{job.getIdentifier()}'.", ADAPTOR_NAME
                    ),
                    done=True,
                )

            result.append(status)

        return result

    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        status = queue_status_from_sinfo_info(
            self._sinfoInfo(queue_name), queue_name, self.getScheduler()
        )

        if status is None:
            raise NoSuchQueueError(
                f"Cannot get status of queue '{queue_name}' from server.", ADAPTOR_NAME
            )

        return status

    def getQueueStatuses(self, *queue_names: str | None) -> list[QueueStatus | None]:
        targets = queue_names or tuple(self._queue_names)
        info = self._sinfoInfo(*(name for name in targets if name is not None))

        result: list[QueueStatus | None] = []
        for name in targets:
            if name is None:
                result.append(None)
                continue

            status = queue_status_from_sinfo_info(info, name, self.getScheduler())
            if status is None:
                status = QueueStatus(
                    self.getScheduler(),
                    name,
                    exception=NoSuchQueueError(
                        f"Cannot get status of queue '{name}' from server.", ADAPTOR_NAME
                    ),
                )
            result.append(status)

        return result

    def _accountingAvailable(self) -> bool:
        output = self.runCheckedCommand(None, "scontrol", "show", "config")
        config = parse_slurm_dump_to_dictionary(output, "\n")

        storage = config.get("AccountingStorageType")
        if storage is None:
            raise GridQError(
                "Cannot determine the accounting storage type of the cluster.",
                ADAPTOR_NAME,
            )

        return storage != NO_ACCOUNTING

    def _queryQueueNames(self) -> tuple[list[str], str | None]:
        # a wide partition format makes sinfo mark the default partition with '*'
        output = self.runCheckedCommand(None, "sinfo", "--noheader", "--format=%120P")

        names, default = [], None
        for name in parse_list(output):
            if name.endswith("*"):
                name = name[:-1]
                default = name
            names.append(name)

        return names, default

    def _squeueInfo(self, *jobs: Job | None) -> dict[str, dict[str, str]]:
        runner = self.runCommand(
            None,
            "squeue",
            "--format=%i %P %j %u %T %M %l %D %R",
            f"--jobs={identifiers_as_cs_list(jobs)}",
        )

        if runner.getExitCode() != 0:
            # squeue refuses identifiers of jobs that have already left the queue
            if "Invalid job id" in runner.getStderr():
                return {}

            raise GridQError(f"Failed to get queue information: {runner}", ADAPTOR_NAME)

        return parse_table(
            runner.getStdout(), "JOBID", WHITESPACE_REGEX, ADAPTOR_NAME, "*", "~"
        )

    def _sacctInfo(self, *jobs: Job | None) -> dict[str, dict[str, str]]:
        if not self._accounting:
            return {}

        # sacct does not complain about jobs that do not exist
        runner = self.runCommand(
            None,
            "sacct",
            "-X",
            "-p",
            f"--format={SACCT_FIELDS}",
            f"--jobs={identifiers_as_cs_list(jobs)}",
        )

        if runner.getExitCode() != 0:
            raise GridQError(f"Error in getting sacct job status: {runner}", ADAPTOR_NAME)

        if runner.getStderr():
            logger.warning(f"Sacct produced error output: {runner.getStderr().strip()}")

        return parse_table(runner.getStdout(), "JobID", BAR_REGEX, ADAPTOR_NAME, "*", "~")

    def _scontrolInfo(self, job: Job) -> dict[str, str] | None:
        runner = self.runCommand(None, "scontrol", "show", "job", job.getIdentifier())

        if not runner.success():
            logger.debug(f"Failed to get job status: {runner}")
            return None

        # spaces in the working directory and the command would confuse the parser
        return parse_key_value_pairs(
            runner.getStdout(), ADAPTOR_NAME, "WorkDir=", "Command="
        )

    def _sinfoInfo(self, *partitions: str) -> dict[str, dict[str, str]]:
        output = self.runCheckedCommand(
            None,
            "sinfo",
            "--format=%P %a %l %F %N %C %D",
            f"--partition={','.join(partitions)}",
        )

        return parse_table(output, "PARTITION", WHITESPACE_REGEX, ADAPTOR_NAME, "*", "~")
