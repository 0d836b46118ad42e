# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError, NoSuchJobError
from gridq_lib.jobs import Job, JobStatus
from gridq_lib.status.cli import status


@pytest.fixture
def scheduler():
    scheduler = MagicMock()
    scheduler.getUniqueId.return_value = "slurm-0"
    return scheduler


@pytest.fixture
def engine(scheduler):
    with patch("gridq_lib.status.cli.Engine") as mock_engine:
        mock_engine.return_value.__enter__.return_value.newScheduler.return_value = (
            scheduler
        )
        yield mock_engine


def test_status_of_given_jobs(scheduler, engine):
    scheduler.getJobStatuses.side_effect = lambda *jobs: [
        JobStatus(job, "RUNNING", running=True) for job in jobs
    ]

    result = CliRunner().invoke(status, ["-l", "slurm://cluster", "11", "12"])

    assert result.exit_code == 0
    jobs = scheduler.getJobStatuses.call_args.args
    assert [job.getIdentifier() for job in jobs] == ["11", "12"]
    assert "11" in result.output
    assert "RUNNING" in result.output
    scheduler.getJobs.assert_not_called()


def test_status_of_all_jobs_in_yaml(scheduler, engine):
    jobs = [Job(scheduler, "5")]
    scheduler.getJobs.return_value = jobs
    scheduler.getJobStatuses.return_value = [
        JobStatus(jobs[0], "DONE", exit_code=0, done=True, scheduler_specific_info={"a": "b"})
    ]

    result = CliRunner().invoke(status, ["-q", "short", "--yaml"])

    assert result.exit_code == 0
    scheduler.getJobs.assert_called_once_with("short")
    assert "job_id: '5'" in result.output
    assert "exit_code: 0" in result.output


def test_status_no_jobs(scheduler, engine):
    scheduler.getJobs.return_value = []

    with patch("gridq_lib.status.cli.logger") as mock_logger:
        result = CliRunner().invoke(status, [])

    assert result.exit_code == 0
    mock_logger.info.assert_called_once_with("No jobs found.")


def test_status_error(scheduler, engine):
    scheduler.getJobStatuses.side_effect = NoSuchJobError("unknown job")

    with patch("gridq_lib.status.cli.logger") as mock_logger:
        result = CliRunner().invoke(status, ["42"])

    assert result.exit_code == CFG.exit_codes.default
    mock_logger.error.assert_called_once()


def test_status_local_scheduler_without_jobs(tmp_path):
    with patch("gridq_lib.status.cli.logger"):
        result = CliRunner().invoke(status, ["-l", str(tmp_path)])

    assert result.exit_code == 0


def test_status_unknown_adaptor():
    with patch("gridq_lib.status.cli.logger") as mock_logger:
        result = CliRunner().invoke(status, ["-a", "condor"])

    assert result.exit_code == CFG.exit_codes.default
    assert isinstance(mock_logger.error.call_args.args[0], GridQError)
