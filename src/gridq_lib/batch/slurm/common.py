# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Translation of Slurm command output into gridq statuses.
"""

from gridq_lib.core.error import GridQError, JobCanceledError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import Job, JobStatus, QueueStatus

from ..scripting.parser import verify_job_info

logger = get_logger(__name__)

ADAPTOR_NAME = "slurm"

# states in which a job ended without completing successfully
FAILED_STATES = (
    "FAILED",
    "CANCELLED",
    "NODE_FAIL",
    "TIMEOUT",
    "PREEMPTED",
    "OUT_OF_MEMORY",
    "BOOT_FAIL",
    "DEADLINE",
)
DONE_STATE = "COMPLETED"
RUNNING_STATE = "RUNNING"

# fields requested from sacct
SACCT_FIELDS = (
    "JobID,JobName,Partition,NTasks,Elapsed,State,ExitCode,AllocCPUS,"
    "DerivedExitCode,Submit,Suspended,Comment,Start,User,End,NNodes,Timelimit,Priority"
)


def parse_slurm_dump_to_dictionary(
    text: str, separator: str | None = None
) -> dict[str, str]:
    """
    Parse a Slurm info dump into a dictionary.

    Tokens without '=' are skipped.

    Returns:
        dict[str, str]: Dictionary mapping keys to values.
    """
    result: dict[str, str] = {}

    for pair in text.split(separator):
        if "=" not in pair:
            continue

        key, value = pair.split("=", 1)
        result[key.strip()] = value.strip()

    logger.debug(f"Parsed slurm dump with {len(result)} entries.")
    return result


def is_failed_state(state: str) -> bool:
    return state.startswith(FAILED_STATES)


def is_done_state(state: str) -> bool:
    """Return True if the job has finished. Failed jobs are done as well."""
    return state == DONE_STATE or is_failed_state(state)


def exit_code_from_string(value: str | None) -> int | None:
    """
    Convert the 'ExitCode' field of Slurm into an exit code.

    The field has the form '<exit code>:<signal>'; the signal is ignored.

    Raises:
        GridQError: If the exit code is not a number.
    """
    if value is None:
        return None

    code = value.split(":")[0]
    try:
        return int(code)
    except ValueError as e:
        raise GridQError(
            f"Job exit code '{code}' is not a number.", ADAPTOR_NAME
        ) from e


def _failure(state: str, exit_code: int | None, reason: str | None) -> Exception | None:
    if not is_failed_state(state):
        return None

    # a non-zero exit code of the job itself is not an error of the batch system
    if state == "FAILED" and (
        reason == "NonZeroExitCode" or (reason is None and exit_code not in (None, 0))
    ):
        return None

    if state.startswith("CANCELLED"):
        return JobCanceledError(f"Job {state.lower()}.", ADAPTOR_NAME)

    if reason and reason != "None":
        return GridQError(
            f"Job failed with state '{state}' and reason: {reason}.", ADAPTOR_NAME
        )

    return GridQError(
        f"Job failed with state '{state}' for unknown reason.", ADAPTOR_NAME
    )


def job_status_from_squeue_info(
    info: dict[str, dict[str, str]], job: Job
) -> JobStatus | None:
    """Return the status of a job listed by squeue, or None if it is not listed."""
    job_info = info.get(job.getIdentifier())
    if job_info is None:
        logger.debug(f"Job '{job.getIdentifier()}' not found in queue.")
        return None

    verify_job_info(job_info, job, ADAPTOR_NAME, "JOBID", "STATE")
    state = job_info["STATE"]

    return JobStatus(
        job,
        state,
        running=state == RUNNING_STATE,
        done=False,
        scheduler_specific_info=job_info,
    )


def job_status_from_sacct_info(
    info: dict[str, dict[str, str]], job: Job
) -> JobStatus | None:
    """Return the status of a job found in the accounting, or None if it is not there."""
    job_info = info.get(job.getIdentifier())
    if job_info is None:
        logger.debug(f"Job '{job.getIdentifier()}' not found in sacct output.")
        return None

    verify_job_info(job_info, job, ADAPTOR_NAME, "JobID", "State", "ExitCode")
    state = job_info["State"]
    exit_code = exit_code_from_string(job_info["ExitCode"])

    return JobStatus(
        job,
        state,
        exit_code=exit_code,
        exception=_failure(state, exit_code, None),
        running=state == RUNNING_STATE,
        done=is_done_state(state),
        scheduler_specific_info=job_info,
    )


def job_status_from_scontrol_info(
    job_info: dict[str, str] | None, job: Job
) -> JobStatus | None:
    """Return the status of a job described by scontrol, or None if there is no description."""
    if job_info is None:
        logger.debug(f"Job '{job.getIdentifier()}' not found in scontrol output.")
        return None

    verify_job_info(job_info, job, ADAPTOR_NAME, "JobId", "JobState", "ExitCode", "Reason")
    state = job_info["JobState"]
    exit_code = exit_code_from_string(job_info["ExitCode"])

    return JobStatus(
        job,
        state,
        exit_code=exit_code,
        exception=_failure(state, exit_code, job_info["Reason"]),
        running=state == RUNNING_STATE,
        done=is_done_state(state),
        scheduler_specific_info=job_info,
    )


def queue_status_from_sinfo_info(
    info: dict[str, dict[str, str]], queue_name: str, scheduler
) -> QueueStatus | None:
    queue_info = info.get(queue_name)
    if queue_info is None:
        logger.debug(f"Queue '{queue_name}' not found.")
        return None

    return QueueStatus(scheduler, queue_name, scheduler_specific_info=queue_info)
