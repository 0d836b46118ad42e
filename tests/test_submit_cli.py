# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError
from gridq_lib.jobs import Job, JobStatus
from gridq_lib.submit.cli import submit


def test_submit_local_job_waits_and_succeeds(tmp_path):
    result = CliRunner().invoke(
        submit,
        ["-l", str(tmp_path), "--stdout", "out.txt", "--", "/bin/echo", "hello"],
    )

    assert result.exit_code == 0
    assert "local-" in result.output
    assert (tmp_path / "out.txt").read_text() == "hello\n"


def test_submit_local_job_failure_sets_exit_code(tmp_path):
    result = CliRunner().invoke(
        submit, ["-l", str(tmp_path), "--", "/bin/sh", "-c", "exit 3"]
    )

    assert result.exit_code == CFG.exit_codes.job_failed


def test_submit_description_file_with_environment(tmp_path):
    file = tmp_path / "job.yaml"
    file.write_text(
        "executable: /bin/sh\n"
        "arguments: ['-c', 'echo $GREETING > greeting.txt']\n"
    )

    result = CliRunner().invoke(
        submit, ["-l", str(tmp_path), "-e", "GREETING=hi", str(file)]
    )

    assert result.exit_code == 0
    assert (tmp_path / "greeting.txt").read_text() == "hi\n"


def test_submit_nothing_fails():
    with patch("gridq_lib.submit.cli.logger") as mock_logger:
        result = CliRunner().invoke(submit, [])

    assert result.exit_code == CFG.exit_codes.default
    mock_logger.error.assert_called_once()


def test_submit_invalid_property_fails(tmp_path):
    with patch("gridq_lib.submit.cli.logger"):
        result = CliRunner().invoke(
            submit, ["-l", str(tmp_path), "-p", "novalue", "--", "/bin/true"]
        )

    assert result.exit_code == CFG.exit_codes.default


def test_submit_batch_scheduler_does_not_wait():
    scheduler = MagicMock()
    scheduler.getUniqueId.return_value = "slurm-0"
    scheduler.isEmbedded.return_value = False
    scheduler.submitJob.return_value = Job(scheduler, "1234")

    with patch("gridq_lib.submit.cli.Engine") as mock_engine:
        mock_engine.return_value.__enter__.return_value.newScheduler.return_value = (
            scheduler
        )
        result = CliRunner().invoke(
            submit,
            ["-l", "slurm://cluster", "-q", "debug", "-p", "a=1", "--", "/bin/date"],
        )

    assert result.exit_code == 0
    assert "1234" in result.output
    mock_engine.return_value.__enter__.return_value.newScheduler.assert_called_once_with(
        None, "slurm://cluster", None, {"a": "1"}
    )
    description = scheduler.submitJob.call_args.args[0]
    assert description.queue_name == "debug"
    assert description.executable == "/bin/date"
    scheduler.waitUntilDone.assert_not_called()


def test_submit_wait_for_batch_job():
    scheduler = MagicMock()
    scheduler.getUniqueId.return_value = "torque-0"
    scheduler.isEmbedded.return_value = False
    job = Job(scheduler, "77.server")
    scheduler.submitJob.return_value = job
    scheduler.waitUntilDone.return_value = JobStatus(job, "DONE", exit_code=0, done=True)

    with patch("gridq_lib.submit.cli.Engine") as mock_engine:
        mock_engine.return_value.__enter__.return_value.newScheduler.return_value = (
            scheduler
        )
        result = CliRunner().invoke(
            submit, ["-a", "torque", "--wait", "--timeout", "1000", "--", "/bin/date"]
        )

    assert result.exit_code == 0
    scheduler.waitUntilDone.assert_called_once_with(job, 1000)


def test_submit_scheduler_error():
    with (
        patch("gridq_lib.submit.cli.Engine") as mock_engine,
        patch("gridq_lib.submit.cli.logger") as mock_logger,
    ):
        mock_engine.return_value.__enter__.return_value.newScheduler.side_effect = (
            GridQError("No adaptor supports the scheme 'gram'.")
        )
        result = CliRunner().invoke(submit, ["-l", "gram://x", "--", "/bin/date"])

    assert result.exit_code == CFG.exit_codes.default
    mock_logger.error.assert_called_once()


def test_submit_unexpected_error():
    with (
        patch("gridq_lib.submit.cli.Engine", side_effect=RuntimeError("bug")),
        patch("gridq_lib.submit.cli.logger") as mock_logger,
    ):
        result = CliRunner().invoke(submit, ["--", "/bin/date"])

    assert result.exit_code == CFG.exit_codes.unexpected_error
    mock_logger.critical.assert_called_once()
