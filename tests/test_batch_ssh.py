# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import time
from unittest.mock import MagicMock, patch

import pytest

from gridq_lib.batch.scripting.transport import CommandResult
from gridq_lib.batch.ssh.adaptor import MULTI_MAX_CONCURRENT, SshAdaptor
from gridq_lib.batch.ssh.launcher import SshProcess, SshProcessLauncher
from gridq_lib.batch.ssh.scheduler import SshJobQueueScheduler
from gridq_lib.core.error import (
    CommandNotFoundError,
    GridQError,
    InvalidLocationError,
    UnknownPropertyError,
)
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import DefaultCredential
from gridq_lib.jobs import JobDescription


def _wait_finished(process, timeout=10.0):
    deadline = time.monotonic() + timeout
    while process.isAlive() and time.monotonic() < deadline:
        time.sleep(0.01)


def test_command_redirects_and_sets_environment():
    description = JobDescription(
        executable="/bin/echo",
        arguments=["a b"],
        environment={"X": "1 2"},
        stdout="out.txt",
    )

    command = SshProcessLauncher._command(description, "/home/u", batch=True)

    assert command == (
        "cd /home/u && echo $$ && exec env 'X=1 2' /bin/echo 'a b'"
        " < /dev/null > out.txt 2> /dev/null"
    )


def test_command_interactive_keeps_streams():
    command = SshProcessLauncher._command(
        JobDescription(executable="cat"), "/tmp", batch=False
    )

    assert command == "cd /tmp && exec cat"


def test_resolve():
    assert SshProcessLauncher._resolve("/home/u", None) == "/home/u"
    assert SshProcessLauncher._resolve("/home/u", "run") == "/home/u/run"
    assert SshProcessLauncher._resolve("/home/u", "/scratch") == "/scratch"


def test_launcher_runs_batch_job(transport, tmp_path):
    transport.connect()
    launcher = SshProcessLauncher(transport)

    process = launcher.start(
        JobDescription(
            executable="/bin/sh",
            arguments=["-c", "echo done > result.txt; exit 5"],
            processes_per_node=2,
        ),
        str(tmp_path),
    )
    _wait_finished(process)

    assert process.exitValue() == 5
    assert (tmp_path / "result.txt").read_text() == "done\n"
    assert all(pid.isdigit() for pid in process._remote_pids)
    assert len(process._remote_pids) == 2


def test_launcher_destroy_kills_remote_pids(transport, tmp_path):
    transport.connect()
    process = SshProcessLauncher(transport).start(
        JobDescription(executable="/bin/sleep", arguments=["30"]), str(tmp_path)
    )

    process.destroy()

    assert transport.executed("kill") == [["kill", "-9", *process._remote_pids]]
    assert not process.isAlive()


def test_launcher_missing_directory_raises(transport, tmp_path):
    transport.connect()

    with pytest.raises(CommandNotFoundError, match="missing"):
        SshProcessLauncher(transport).start(
            JobDescription(executable="/bin/true"), str(tmp_path / "missing")
        )


def test_launcher_interactive_streams(transport, tmp_path):
    transport.connect()
    process = SshProcessLauncher(transport).start(
        JobDescription(executable="/bin/cat"), str(tmp_path), interactive=True
    )

    streams = process.getStreams("ssh-1")
    streams.stdin.write(b"hello")
    streams.stdin.close()

    assert streams.stdout.read() == b"hello"
    _wait_finished(process)
    assert process.exitValue() == 0


def test_ssh_scheduler_closes_transport(transport, tmp_path):
    transport.connect()
    scheduler = SshJobQueueScheduler(
        "ssh-0",
        "ssh",
        "host",
        DefaultCredential(),
        Properties([], None, "ssh"),
        SshProcessLauncher(transport),
        str(tmp_path),
        multi_max_concurrent=4,
        polling_delay=10,
        history_size=-1,
        transport=transport,
    )

    job = scheduler.submitJob(JobDescription(executable="/bin/true"))
    assert scheduler.waitUntilDone(job, 10_000).getExitCode() == 0
    assert scheduler.getTransport() is transport

    scheduler.close()
    assert not transport.isConnected()


def test_adaptor_rejects_location_without_host():
    with pytest.raises(InvalidLocationError, match="does not name a host"):
        SshAdaptor.createScheduler("ssh-0", "ssh:///path", None, None)


def test_adaptor_rejects_foreign_scheme():
    with pytest.raises(InvalidLocationError):
        SshAdaptor.createScheduler("ssh-0", "slurm://host", None, None)


@patch("gridq_lib.batch.ssh.adaptor.SshTransport")
def test_adaptor_creates_scheduler_in_remote_home(mock_transport_cls):
    transport = mock_transport_cls.return_value
    transport.execute.return_value = CommandResult(0, "/home/alice\n", "")

    scheduler = SshAdaptor.createScheduler(
        "ssh-0", "ssh://alice@cluster:2222", None, {MULTI_MAX_CONCURRENT: "2"}
    )
    try:
        kwargs = mock_transport_cls.call_args.kwargs
        assert mock_transport_cls.call_args.args == ("cluster",)
        assert kwargs["user"] == "alice"
        assert kwargs["port"] == 2222
        transport.connect.assert_called_once()

        assert isinstance(scheduler, SshJobQueueScheduler)
        assert scheduler._workdir == "/home/alice"
        assert scheduler._queues["multi"].max_concurrent == 2
    finally:
        scheduler.close()

    transport.close.assert_called_once()


@patch("gridq_lib.batch.ssh.adaptor.SshTransport")
def test_adaptor_uses_path_of_location(mock_transport_cls):
    scheduler = SshAdaptor.createScheduler("ssh-0", "cluster/scratch/run", None, None)
    try:
        assert scheduler._workdir == "/scratch/run"
        mock_transport_cls.return_value.execute.assert_not_called()
    finally:
        scheduler.close()


@patch("gridq_lib.batch.ssh.adaptor.SshTransport")
def test_adaptor_home_failure_closes_transport(mock_transport_cls):
    transport = mock_transport_cls.return_value
    transport.execute.return_value = CommandResult(1, "", "pwd: failed")
    transport.getHost.return_value = "cluster"

    with pytest.raises(GridQError, match="home directory"):
        SshAdaptor.createScheduler("ssh-0", "cluster", None, None)

    transport.close.assert_called_once()


@patch("gridq_lib.batch.ssh.adaptor.SshFileSystem")
@patch("gridq_lib.batch.ssh.adaptor.SshTransport")
def test_adaptor_creates_file_system(mock_transport_cls, mock_fs_cls):
    SshAdaptor.createFileSystem("ssh-fs-0", "sftp://cluster/data", None, None)

    args = mock_fs_cls.call_args
    assert args.args[0] == "ssh-fs-0"
    assert args.args[4] is mock_transport_cls.return_value
    assert args.kwargs["entry_path"] == "/data"


def test_adaptor_properties_are_validated():
    with pytest.raises(UnknownPropertyError):
        SshAdaptor.createScheduler("ssh-0", "cluster", None, {"unknown": "1"})


def test_ssh_process_without_pipes_has_no_streams():
    process = MagicMock(stdin=None, stdout=None, stderr=None)

    with pytest.raises(GridQError, match="not started interactively"):
        SshProcess(MagicMock(), [process], []).getStreams("ssh-1")
