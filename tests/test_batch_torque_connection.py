# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import patch

import pytest

from gridq_lib.batch.scripting.scheduler import ScriptingScheduler
from gridq_lib.batch.torque.adaptor import ACCOUNTING_GRACE_TIME, TorqueAdaptor
from gridq_lib.batch.torque.connection import (
    TorqueSchedulerConnection,
    job_status_from_qstat_info,
)
from gridq_lib.batch.torque.script import format_walltime, generate_torque_script
from gridq_lib.core.error import (
    CommandFailedError,
    GridQError,
    JobCanceledError,
    NoSuchJobError,
    NoSuchQueueError,
)
from gridq_lib.credentials import DefaultCredential
from gridq_lib.jobs import Job, JobDescription

QUEUES = """Queue: batch
    queue_type = Execution
    total_jobs = 2
    enabled = True

Queue: long
    queue_type = Execution
    enabled = False
"""

RUNNING = """Job Id: 12.server
    Job_Name = gridq
    job_state = R
    queue = batch
"""

COMPLETED = """Job Id: 12.server
    Job_Name = gridq
    job_state = C
    exit_status = 3
"""


def _make(transport, properties=None):
    transport.respond("qstat", "-Q", stdout=QUEUES)

    connection = TorqueSchedulerConnection(
        "torque-0",
        None,
        DefaultCredential(),
        properties,
        TorqueAdaptor.supportedProperties(),
        ACCOUNTING_GRACE_TIME,
        transport=transport,
    )
    ScriptingScheduler(connection)
    return connection


@pytest.fixture
def connection(transport):
    conn = _make(transport)
    yield conn
    conn.close()


def _job(connection, identifier="12.server"):
    return Job(connection.getScheduler(), identifier)


def test_format_walltime():
    assert format_walltime(15) == "00:15:00"
    assert format_walltime(90) == "01:30:00"
    assert format_walltime(6000) == "100:00:00"


def test_generate_torque_script():
    description = JobDescription(
        executable="/bin/cat",
        arguments=["-n"],
        environment={"A": "1"},
        working_directory="/scratch/run",
        stdin="in.txt",
        queue_name="batch",
        node_count=2,
        processes_per_node=8,
        max_runtime=75,
    )

    script = generate_torque_script(description, "/home/user")

    assert "#PBS -S /bin/sh\n" in script
    assert "#PBS -N gridq\n" in script
    assert "#PBS -d /scratch/run\n" in script
    assert "#PBS -q batch\n" in script
    assert "#PBS -l nodes=2:ppn=8\n" in script
    assert "#PBS -l walltime=01:15:00\n" in script
    assert "#PBS -o /dev/null\n" in script
    assert "#PBS -e /dev/null\n" in script
    assert "export A=1\n" in script
    assert script.endswith("/bin/cat -n < in.txt\n")


def test_qstat_status_running(connection):
    status = job_status_from_qstat_info(
        {"12.server": {"job_state": "R"}}, _job(connection)
    )

    assert status is not None
    assert status.isRunning()
    assert not status.isDone()


def test_qstat_status_completed_with_exit_status(connection):
    status = job_status_from_qstat_info(
        {"12.server": {"job_state": "C", "exit_status": "3"}}, _job(connection)
    )

    assert status is not None
    assert status.isDone()
    assert status.getExitCode() == 3
    assert not status.hasException()


def test_qstat_status_negative_exit_status_is_error(connection):
    status = job_status_from_qstat_info(
        {"12.server": {"job_state": "C", "exit_status": "-1"}}, _job(connection)
    )

    assert status is not None
    assert isinstance(status.getException(), GridQError)


def test_qstat_status_without_state_raises(connection):
    with pytest.raises(GridQError, match="does not contain its state"):
        job_status_from_qstat_info({"12.server": {}}, _job(connection))


def test_init_reads_queues(connection):
    assert connection.getQueueNames() == ["batch", "long"]
    assert connection.getDefaultQueueName() is None


def test_init_failure_closes_transport(transport):
    transport.respond("qstat", "-Q", stderr="cannot connect to server", exit_code=1)

    with pytest.raises(CommandFailedError):
        TorqueSchedulerConnection(
            "torque-0",
            None,
            DefaultCredential(),
            None,
            TorqueAdaptor.supportedProperties(),
            ACCOUNTING_GRACE_TIME,
            transport=transport,
        )

    assert not transport.isConnected()


def test_submit_job(connection, transport):
    transport.respond("qsub", stdout="13.server\n")

    job = connection.submitJob(JobDescription(executable="/bin/true", queue_name="batch"))

    assert job.getIdentifier() == "13.server"
    command, stdin = transport.commands[-1]
    assert command == ["qsub"]
    assert "#PBS -q batch" in stdin


def test_submit_job_unknown_queue_raises(connection):
    with pytest.raises(NoSuchQueueError):
        connection.submitJob(JobDescription(executable="/bin/true", queue_name="short"))


def test_submitted_job_is_done_within_grace_time(connection, transport):
    transport.respond("qsub", stdout="13.server\n")
    job = connection.submitJob(JobDescription(executable="/bin/true"))

    # the job already disappeared from qstat
    transport.respond("qstat", "-f", stdout="")
    status = connection.getJobStatus(job)

    assert status.getState() == "UNKNOWN"
    assert status.isDone()
    assert not status.hasException()


def test_unknown_job_after_grace_time_raises(transport):
    conn = _make(transport, {ACCOUNTING_GRACE_TIME: "1000"})
    transport.respond("qsub", stdout="13.server\n")

    with patch("gridq_lib.batch.torque.connection.time.monotonic", return_value=100.0):
        job = conn.submitJob(JobDescription(executable="/bin/true"))

    transport.respond("qstat", "-f", stdout="")
    with (
        patch("gridq_lib.batch.torque.connection.time.monotonic", return_value=102.0),
        pytest.raises(NoSuchJobError),
    ):
        conn.getJobStatus(job)


def test_get_job_status_from_qstat(connection, transport):
    transport.respond("qstat", "-f", stdout=RUNNING)

    status = connection.getJobStatus(_job(connection))

    assert status.getState() == "R"
    assert status.isRunning()
    assert status.scheduler_specific_info["queue"] == "batch"


def test_get_job_status_never_seen_raises(connection, transport):
    transport.respond("qstat", "-f", stdout="")

    with pytest.raises(NoSuchJobError):
        connection.getJobStatus(_job(connection, "99.server"))


def test_get_job_status_qstat_failure_treated_as_empty(connection, transport):
    transport.respond("qstat", "-f", stderr="Unknown Job Id", exit_code=153)

    with pytest.raises(NoSuchJobError):
        connection.getJobStatus(_job(connection, "99.server"))


def test_cancel_job_marks_job_killed(connection, transport):
    transport.respond("qstat", "-f", stdout=RUNNING)
    connection.getJobStatus(_job(connection))

    transport.respond("qdel", stdout="")
    transport.respond("qstat", "-f", stdout=COMPLETED)
    status = connection.cancelJob(_job(connection))

    assert status.getState() == "KILLED"
    assert status.isDone()
    assert status.getExitCode() == 3
    assert isinstance(status.getException(), JobCanceledError)

    # the job stays killed on later queries
    transport.respond("qstat", "-f", stdout="")
    again = connection.getJobStatus(_job(connection))
    assert again.getState() == "KILLED"


def test_cancel_job_ignores_bad_state_exit_code(connection, transport):
    transport.respond("qdel", stderr="qdel: Request invalid for state of job", exit_code=170)
    transport.respond("qstat", "-f", stdout=COMPLETED)

    status = connection.cancelJob(_job(connection))

    assert status.getState() == "C"
    assert not status.hasException()


def test_cancel_job_failure_raises(connection, transport):
    transport.respond("qdel", stderr="qdel: Unknown Job Id", exit_code=153)

    with pytest.raises(CommandFailedError, match="qdel"):
        connection.cancelJob(_job(connection))


def test_get_job_statuses(connection, transport):
    transport.respond("qstat", "-f", stdout=RUNNING)

    statuses = connection.getJobStatuses(
        _job(connection), None, _job(connection, "99.server")
    )

    assert statuses[0].getState() == "R"
    assert statuses[1] is None
    assert statuses[2].getState() == "UNKNOWN"
    assert isinstance(statuses[2].getException(), NoSuchJobError)


def test_get_jobs(connection, transport):
    transport.respond("qstat", "-f", stdout=RUNNING + "\n" + COMPLETED.replace("12", "14"))

    jobs = connection.getJobs()

    assert [job.getIdentifier() for job in jobs] == ["12.server", "14.server"]


def test_get_jobs_unknown_queue_raises(connection):
    with pytest.raises(NoSuchQueueError):
        connection.getJobs("short")


def test_get_queue_status(connection, transport):
    status = connection.getQueueStatus("batch")

    assert status.getQueueName() == "batch"
    assert status.scheduler_specific_info["total_jobs"] == "2"


def test_get_queue_status_unknown_raises(connection, transport):
    transport.respond("qstat", "-Q", stdout="")

    with pytest.raises(NoSuchQueueError):
        connection.getQueueStatus("short")


def test_get_queue_statuses_embeds_errors(connection, transport):
    transport.respond("qstat", "-Q", stderr="Unknown queue", exit_code=1)

    statuses = connection.getQueueStatuses("batch", "short")

    assert [s.getQueueName() for s in statuses] == ["batch", "short"]
    assert all(isinstance(s.getException(), NoSuchQueueError) for s in statuses)
