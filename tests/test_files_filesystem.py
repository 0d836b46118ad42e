# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import MagicMock

import pytest

from gridq_lib.batch.scripting.transport import CommandResult, LocalTransport
from gridq_lib.core.error import (
    GridQError,
    IllegalSourcePathError,
    NoSuchPathError,
    PathAlreadyExistsError,
)
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import DefaultCredential
from gridq_lib.files import CopyMode, OpenMode, OpenOption
from gridq_lib.files.local import LocalFileSystem
from gridq_lib.files.ssh import ProcessStream, SshFileSystem


@pytest.fixture
def local_fs(tmp_path):
    fs = LocalFileSystem(
        "local-fs-0", "", DefaultCredential(), Properties([]), entry_path=str(tmp_path)
    )
    yield fs
    fs.close()


@pytest.fixture
def ssh_fs(tmp_path):
    # a local transport makes the shell tools run on this machine
    fs = SshFileSystem(
        "ssh-fs-0",
        "host",
        DefaultCredential(),
        Properties([]),
        LocalTransport("ssh"),
        entry_path=str(tmp_path),
    )
    yield fs
    fs.close()


@pytest.fixture(params=["local_fs", "ssh_fs"])
def fs(request):
    return request.getfixturevalue(request.param)


def test_open_mode_from_options():
    mode = OpenMode.fromOptions(OpenOption.OPEN_OR_CREATE, OpenOption.APPEND)
    assert mode.disposition == OpenOption.OPEN_OR_CREATE
    assert mode.append

    assert not OpenMode.fromOptions(OpenOption.CREATE).append


@pytest.mark.parametrize(
    "options",
    [
        (),
        (OpenOption.CREATE, OpenOption.OPEN),
        (OpenOption.OPEN, OpenOption.APPEND, OpenOption.TRUNCATE),
    ],
)
def test_open_mode_conflicts(options):
    with pytest.raises(GridQError):
        OpenMode.fromOptions(*options)


def test_new_path(local_fs, tmp_path):
    assert local_fs.newPath("a/../b.txt") == str(tmp_path / "b.txt")
    assert local_fs.newPath("/etc//hosts") == "/etc/hosts"
    assert local_fs.getParent("dir/file") == str(tmp_path / "dir")
    assert local_fs.getParent("/file") == "/"
    assert local_fs.getEntryPath() == str(tmp_path)


def test_local_default_entry_path_is_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with LocalFileSystem("local-fs-1", "", DefaultCredential(), Properties([])) as fs:
        assert fs.getEntryPath() == str(tmp_path)

    assert not fs.isOpen()


def test_exists_and_attributes(fs, tmp_path):
    (tmp_path / "file.txt").write_text("12345")
    (tmp_path / "dir").mkdir()
    (tmp_path / "link").symlink_to(tmp_path / "file.txt")
    (tmp_path / "dangling").symlink_to(tmp_path / "missing")

    assert fs.exists("file.txt")
    assert fs.exists("dangling")
    assert not fs.exists("missing")

    file = fs.getAttributes("file.txt")
    assert file.isRegularFile()
    assert not file.isDirectory()
    assert file.size == 5

    assert fs.getAttributes("dir").isDirectory()

    link = fs.getAttributes("link")
    assert link.isSymbolicLink()
    assert link.isRegularFile()
    assert link.size == 5

    assert fs.getAttributes("dangling").isSymbolicLink()


def test_attributes_of_missing_path_raise(fs):
    with pytest.raises(NoSuchPathError):
        fs.getAttributes("missing")


def test_input_stream(fs, tmp_path):
    (tmp_path / "file.txt").write_bytes(b"content")

    with fs.newInputStream("file.txt") as stream:
        assert stream.read() == b"content"


def test_input_stream_errors(fs, tmp_path):
    (tmp_path / "dir").mkdir()

    with pytest.raises(NoSuchPathError):
        fs.newInputStream("missing")

    with pytest.raises(IllegalSourcePathError):
        fs.newInputStream("dir")


def test_output_stream_create(fs, tmp_path):
    with fs.newOutputStream("new.txt", OpenOption.CREATE) as stream:
        stream.write(b"abc")

    assert (tmp_path / "new.txt").read_bytes() == b"abc"

    with pytest.raises(PathAlreadyExistsError):
        fs.newOutputStream("new.txt", OpenOption.CREATE)


def test_output_stream_open_truncates_or_appends(fs, tmp_path):
    (tmp_path / "file.txt").write_bytes(b"old")

    with fs.newOutputStream("file.txt", OpenOption.OPEN, OpenOption.APPEND) as stream:
        stream.write(b"+new")
    assert (tmp_path / "file.txt").read_bytes() == b"old+new"

    with fs.newOutputStream("file.txt", OpenOption.OPEN) as stream:
        stream.write(b"x")
    assert (tmp_path / "file.txt").read_bytes() == b"x"

    with pytest.raises(NoSuchPathError):
        fs.newOutputStream("missing.txt", OpenOption.OPEN)


def test_output_stream_open_or_create(fs, tmp_path):
    with fs.newOutputStream("file.txt", OpenOption.OPEN_OR_CREATE) as stream:
        stream.write(b"1")
    with fs.newOutputStream("file.txt", OpenOption.OPEN_OR_CREATE) as stream:
        stream.write(b"2")

    assert (tmp_path / "file.txt").read_bytes() == b"2"


def test_copy_within_file_system(fs, tmp_path):
    (tmp_path / "src.bin").write_bytes(bytes(range(256)) * 40)
    (tmp_path / "dst.bin").write_bytes(bytes(range(256)) * 3)

    fs.copy("src.bin", "dst.bin", CopyMode.RESUME, verify=True)

    assert (tmp_path / "dst.bin").read_bytes() == bytes(range(256)) * 40


def test_ssh_remote_home_is_default_entry_path(tmp_path, transport):
    transport.respond("pwd", stdout="/home/alice\n")

    fs = SshFileSystem("ssh-fs-0", "host", DefaultCredential(), Properties([]), transport)

    assert transport.isConnected()
    assert fs.getEntryPath() == "/home/alice"

    fs.close()
    assert not transport.isConnected()


def test_ssh_remote_home_failure_raises(transport):
    transport.respond("pwd", stderr="denied", exit_code=1)

    with pytest.raises(GridQError, match="home directory"):
        SshFileSystem("ssh-fs-0", "host", DefaultCredential(), Properties([]), transport)


def test_ssh_unparsable_attributes_raise(transport):
    transport.respond("stat", stdout="garbage")
    fs = SshFileSystem(
        "ssh-fs-0", "host", DefaultCredential(), Properties([]), transport, "/data"
    )

    with pytest.raises(GridQError, match="Cannot parse attributes"):
        fs.getAttributes("file")

    fs.close()


def test_process_stream_failure_raises_os_error():
    process = MagicMock()
    process.stdin = MagicMock()
    process.stderr.read.return_value = b"disk full"
    process.returncode = 1

    stream = ProcessStream(process, process.stdin, "Writing '/data/file'")

    with pytest.raises(OSError, match="disk full"):
        stream.close()

    # closing twice is a no-op
    stream.close()


def test_process_stream_early_close_kills_reader():
    process = MagicMock()
    process.stdout = MagicMock()
    process.stdout.read.return_value = b"partial"

    stream = ProcessStream(process, process.stdout, "Reading '/data/file'")
    assert stream.read(7) == b"partial"
    stream.close()

    process.kill.assert_called_once()
    assert not stream.seekable()


def test_ssh_exists_runs_test(transport):
    transport.respond("sh", exit_code=1)
    fs = SshFileSystem(
        "ssh-fs-0", "host", DefaultCredential(), Properties([]), transport, "/data"
    )

    assert not fs.exists("file")
    command, _ = transport.commands[-1]
    assert command[-1] == "/data/file"

    transport.respond("sh", stdout="", exit_code=0)
    assert fs.exists("file")

    fs.close()


def test_command_result_is_value_object():
    assert CommandResult(0, "a", "") == CommandResult(0, "a", "")
