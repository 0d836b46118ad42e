# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import io
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gridq_lib.batch.local.launcher import (
    InputWriter,
    LocalProcessLauncher,
    OutputReader,
)
from gridq_lib.core.error import CommandNotFoundError, GridQError
from gridq_lib.jobs import JobDescription


def _wait_finished(process, timeout=10.0):
    deadline = time.monotonic() + timeout
    while process.isAlive() and time.monotonic() < deadline:
        time.sleep(0.01)


def test_input_writer_writes_and_closes():
    destination = io.BytesIO()
    closed = []
    destination.close = lambda: closed.append(True)

    writer = InputWriter("content", destination)

    assert writer.waitUntilFinished(5)
    assert writer.isFinished()
    assert destination.getvalue() == b"content"
    assert closed == [True]


def test_input_writer_requires_destination():
    with pytest.raises(GridQError, match="may not be None"):
        InputWriter("x", None)


def test_output_reader_collects_stream():
    reader = OutputReader(io.BytesIO(b"line 1\nline 2\n"))
    reader.waitUntilFinished(5)

    assert reader.getResult() == "line 1\nline 2\n"


def test_launcher_runs_processes_per_node(tmp_path):
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "echo $GREETING >> out.txt"],
        environment={"GREETING": "hello"},
        processes_per_node=3,
    )

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert not process.isAlive()
    assert process.exitValue() == 0
    assert (tmp_path / "out.txt").read_text() == "hello\nhello\nhello\n"


def test_launcher_resolves_relative_working_directory(tmp_path):
    (tmp_path / "sub").mkdir()
    description = JobDescription(
        executable="/bin/pwd", working_directory="sub", stdout="pwd.txt"
    )

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert (tmp_path / "sub" / "pwd.txt").read_text().strip() == str(tmp_path / "sub")


def test_launcher_feeds_stdin_and_captures_stderr(tmp_path):
    (tmp_path / "in.txt").write_text("data")
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "cat 1>&2"],
        stdin="in.txt",
        stderr="err.txt",
    )

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert (tmp_path / "err.txt").read_text() == "data"


def test_exit_value_reports_first_failure(tmp_path):
    description = JobDescription(executable="/bin/sh", arguments=["-c", "exit 4"])

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert process.exitValue() == 4


def test_exit_value_of_running_process_raises(tmp_path):
    process = LocalProcessLauncher().start(
        JobDescription(executable="/bin/sleep", arguments=["30"]), str(tmp_path)
    )
    try:
        with pytest.raises(GridQError, match="running process"):
            process.exitValue()
    finally:
        process.destroy()


def test_destroy_kills_processes(tmp_path):
    process = LocalProcessLauncher().start(
        JobDescription(
            executable="/bin/sleep", arguments=["30"], processes_per_node=2
        ),
        str(tmp_path),
    )

    process.destroy()

    assert not process.isAlive()
    assert process.exitValue() != 0


def test_missing_executable_raises(tmp_path):
    with pytest.raises(CommandNotFoundError, match="/nonexistent"):
        LocalProcessLauncher().start(
            JobDescription(executable="/nonexistent"), str(tmp_path)
        )


def test_batch_process_has_no_streams(tmp_path):
    process = LocalProcessLauncher().start(
        JobDescription(executable="/bin/true"), str(tmp_path)
    )

    with pytest.raises(GridQError, match="not started interactively"):
        process.getStreams("local-1")


def test_interactive_process_streams(tmp_path):
    process = LocalProcessLauncher().start(
        JobDescription(executable="/bin/cat", processes_per_node=4),
        str(tmp_path),
        interactive=True,
    )

    streams = process.getStreams("local-1")
    streams.stdin.write(b"echo")
    streams.stdin.close()

    assert streams.job_id == "local-1"
    assert streams.stdout.read() == b"echo"
    _wait_finished(process)
    assert process.exitValue() == 0


def test_missing_stdin_file_starts_no_process(tmp_path):
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "touch started; sleep 30"],
        stdin="does-not-exist.txt",
    )

    with (
        patch("gridq_lib.batch.local.launcher.subprocess.Popen") as mock_popen,
        pytest.raises(CommandNotFoundError, match="does-not-exist.txt"),
    ):
        LocalProcessLauncher().start(description, str(tmp_path))

    mock_popen.assert_not_called()


def test_missing_stdin_file_leaves_no_process_running(tmp_path):
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "touch started; sleep 30"],
        stdin="does-not-exist.txt",
    )

    with pytest.raises(CommandNotFoundError):
        LocalProcessLauncher().start(description, str(tmp_path))

    time.sleep(0.3)
    assert not (tmp_path / "started").exists()


def test_failed_stderr_open_closes_stdout(tmp_path):
    stdout_handle = MagicMock()
    description = JobDescription(
        executable="/bin/true", stdout="out.txt", stderr="err.txt"
    )

    with (
        patch.object(Path, "open", side_effect=[stdout_handle, OSError("denied")]),
        patch("gridq_lib.batch.local.launcher.subprocess.Popen") as mock_popen,
        pytest.raises(CommandNotFoundError, match="denied"),
    ):
        LocalProcessLauncher().start(description, str(tmp_path))

    stdout_handle.__exit__.assert_called_once()
    mock_popen.assert_not_called()


def test_shared_stdout_and_stderr_file(tmp_path):
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "echo out; echo err 1>&2"],
        stdout="both.txt",
        stderr="both.txt",
    )

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert (tmp_path / "both.txt").read_text() == "out\nerr\n"


def test_processes_per_node_share_output_file(tmp_path):
    description = JobDescription(
        executable="/bin/sh",
        arguments=["-c", "echo hello"],
        stdout="out.txt",
        processes_per_node=3,
    )

    process = LocalProcessLauncher().start(description, str(tmp_path))
    _wait_finished(process)

    assert process.exitValue() == 0
    assert (tmp_path / "out.txt").read_text() == "hello\n" * 3


def test_launch_errors_carry_adaptor_name(tmp_path):
    with pytest.raises(CommandNotFoundError) as exc_info:
        LocalProcessLauncher("sandbox").start(
            JobDescription(executable="/nonexistent"), str(tmp_path)
        )

    assert exc_info.value.adaptor_name == "sandbox"
    assert str(exc_info.value).startswith("sandbox adaptor:")
