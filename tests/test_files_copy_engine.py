# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import threading
import time
from unittest.mock import patch

import pytest

from gridq_lib.core.error import (
    CopyCancelledError,
    GridQError,
    IllegalSourcePathError,
    IllegalTargetPathError,
    InvalidResumeTargetError,
    NoSuchCopyError,
    NoSuchPathError,
    NotConnectedError,
    PathAlreadyExistsError,
)
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import DefaultCredential
from gridq_lib.files import Copy, CopyEngine, CopyInfo, CopyMode
from gridq_lib.files.local import LocalFileSystem


@pytest.fixture
def fs(tmp_path):
    fs = LocalFileSystem(
        "local-fs-0", "", DefaultCredential(), Properties([]), entry_path=str(tmp_path)
    )
    yield fs
    fs.close()


def _wait_done(fs, copy, timeout=10.0):
    deadline = time.monotonic() + timeout
    while True:
        status = fs.getCopyStatus(copy)
        if status.isDone() or time.monotonic() > deadline:
            return status
        time.sleep(0.01)


class BlockingStream:
    """Input stream returning one chunk and blocking on the next read until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self._reads = 0

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass

    def read(self, size=-1):
        self._reads += 1
        if self._reads == 1:
            self.started.set()
            return b"a"
        self.release.wait(10)
        return b"b"

    def close(self):
        pass


def test_copy_mode_from_str():
    assert CopyMode.fromStr("resume") == CopyMode.RESUME
    assert str(CopyMode.IGNORE) == "ignore"

    with pytest.raises(GridQError, match="Unknown copy mode"):
        CopyMode.fromStr("move")


def test_copy_create(fs, tmp_path):
    (tmp_path / "src.txt").write_bytes(b"x" * 10_000)

    copy = fs.copy("src.txt", "dst.txt")

    assert copy.getSource() == str(tmp_path / "src.txt")
    assert copy.getTarget() == str(tmp_path / "dst.txt")
    assert copy.getUniqueId() == "COPY-0"
    assert (tmp_path / "dst.txt").read_bytes() == b"x" * 10_000


def test_synchronous_copy_is_not_recorded(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")
    copy = fs.copy("src.txt", "dst.txt")

    with pytest.raises(NoSuchCopyError):
        fs.getCopyStatus(copy)


def test_copy_create_existing_target_raises(fs, tmp_path):
    (tmp_path / "src.txt").write_text("new")
    (tmp_path / "dst.txt").write_text("old")

    with pytest.raises(PathAlreadyExistsError):
        fs.copy("src.txt", "dst.txt")

    assert (tmp_path / "dst.txt").read_text() == "old"


def test_copy_replace(fs, tmp_path):
    (tmp_path / "src.txt").write_text("new")
    (tmp_path / "dst.txt").write_text("old content")

    fs.copy("src.txt", "dst.txt", CopyMode.REPLACE)

    assert (tmp_path / "dst.txt").read_text() == "new"


def test_copy_ignore(fs, tmp_path):
    (tmp_path / "src.txt").write_text("new")
    (tmp_path / "dst.txt").write_text("old")

    fs.copy("src.txt", "dst.txt", CopyMode.IGNORE)

    assert (tmp_path / "dst.txt").read_text() == "old"


def test_copy_to_itself_is_noop(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")

    fs.copy("src.txt", "./src.txt")

    assert (tmp_path / "src.txt").read_text() == "data"


def test_copy_missing_source_raises(fs):
    with pytest.raises(NoSuchPathError, match="does not exist"):
        fs.copy("missing.txt", "dst.txt")


def test_copy_directory_source_raises(fs, tmp_path):
    (tmp_path / "dir").mkdir()

    with pytest.raises(IllegalSourcePathError):
        fs.copy("dir", "dst.txt")


def test_copy_missing_target_directory_raises(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")

    with pytest.raises(NoSuchPathError, match="Target directory"):
        fs.copy("src.txt", "missing/dst.txt")


def test_append(fs, tmp_path):
    (tmp_path / "src.txt").write_text("world")
    (tmp_path / "dst.txt").write_text("hello ")

    fs.copy("src.txt", "dst.txt", CopyMode.APPEND)

    assert (tmp_path / "dst.txt").read_text() == "hello world"


def test_append_requires_existing_target(fs, tmp_path):
    (tmp_path / "src.txt").write_text("world")

    with pytest.raises(NoSuchPathError):
        fs.copy("src.txt", "dst.txt", CopyMode.APPEND)


def test_append_to_itself_raises(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")

    with pytest.raises(IllegalTargetPathError, match="itself"):
        fs.copy("src.txt", "src.txt", CopyMode.APPEND)


def test_append_to_directory_raises(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")
    (tmp_path / "dir").mkdir()

    with pytest.raises(IllegalTargetPathError, match="directory"):
        fs.copy("src.txt", "dir", CopyMode.APPEND)


def test_resume_appends_missing_tail(fs, tmp_path):
    (tmp_path / "src.txt").write_text("0123456789")
    (tmp_path / "dst.txt").write_text("0123")

    fs.copy("src.txt", "dst.txt", CopyMode.RESUME, verify=True)

    assert (tmp_path / "dst.txt").read_text() == "0123456789"


def test_resume_complete_target_is_noop(fs, tmp_path):
    (tmp_path / "src.txt").write_text("0123")
    (tmp_path / "dst.txt").write_text("0123")

    copy = fs.copy("src.txt", "dst.txt", CopyMode.RESUME, asynchronous=True)
    status = _wait_done(fs, copy)

    assert status.bytes_to_copy == 0
    assert not status.hasException()
    assert (tmp_path / "dst.txt").read_text() == "0123"


def test_resume_larger_target_raises(fs, tmp_path):
    (tmp_path / "src.txt").write_text("01")
    (tmp_path / "dst.txt").write_text("0123")

    with pytest.raises(InvalidResumeTargetError):
        fs.copy("src.txt", "dst.txt", CopyMode.RESUME)


def test_resume_verify_detects_mismatch(fs, tmp_path):
    (tmp_path / "src.txt").write_text("0123456789")
    (tmp_path / "dst.txt").write_text("abc")

    with pytest.raises(InvalidResumeTargetError):
        fs.copy("src.txt", "dst.txt", CopyMode.RESUME, verify=True)

    # without verification the mismatch goes unnoticed
    fs.copy("src.txt", "dst.txt", CopyMode.RESUME)
    assert (tmp_path / "dst.txt").read_text() == "abc3456789"


def test_resume_rejects_links(fs, tmp_path):
    (tmp_path / "src.txt").write_text("0123")
    (tmp_path / "link.txt").symlink_to(tmp_path / "src.txt")
    (tmp_path / "dst.txt").write_text("01")

    with pytest.raises(IllegalSourcePathError, match="link"):
        fs.copy("link.txt", "dst.txt", CopyMode.RESUME)

    with pytest.raises(IllegalTargetPathError, match="link"):
        fs.copy("dst.txt", "link.txt", CopyMode.RESUME)


def test_verify_only_with_resume(fs, tmp_path):
    (tmp_path / "src.txt").write_text("data")

    with pytest.raises(GridQError, match="Verification"):
        fs.copy("src.txt", "dst.txt", CopyMode.CREATE, verify=True)


def test_async_copy_reports_progress_and_is_forgotten(fs, tmp_path):
    (tmp_path / "src.txt").write_bytes(b"y" * 5000)

    copy = fs.copy("src.txt", "dst.txt", asynchronous=True)
    status = _wait_done(fs, copy)

    assert status.getState() == "DONE"
    assert status.bytes_to_copy == 5000
    assert status.bytes_copied == 5000
    assert not status.isRunning()

    with pytest.raises(NoSuchCopyError):
        fs.getCopyStatus(copy)


def test_async_copy_embeds_error(fs):
    copy = fs.copy("missing.txt", "dst.txt", asynchronous=True)
    status = _wait_done(fs, copy)

    assert status.isDone()
    assert isinstance(status.getException(), NoSuchPathError)
    with pytest.raises(NoSuchPathError):
        status.maybeThrowException()


def test_cancel_running_and_pending_copies(fs, tmp_path):
    (tmp_path / "src.txt").write_text("ab")
    stream = BlockingStream()

    with patch.object(fs, "newInputStream", return_value=stream):
        running = fs.copy("src.txt", "first.txt", asynchronous=True)
        pending = fs.copy("src.txt", "second.txt", asynchronous=True)

        assert stream.started.wait(10)
        assert fs.getCopyStatus(running).isRunning()
        assert fs.getCopyStatus(pending).getState() == "PENDING"

        killed = fs.cancelCopy(pending)
        assert killed.getState() == "KILLED"
        assert isinstance(killed.getException(), CopyCancelledError)

        threading.Timer(0.1, stream.release.set).start()
        cancelled = fs.cancelCopy(running)

    assert cancelled.isDone()
    assert isinstance(cancelled.getException(), CopyCancelledError)
    assert (tmp_path / "first.txt").read_bytes() == b"ab"
    assert not (tmp_path / "second.txt").exists()

    # cancelling a finished copy leaves it queryable
    assert fs.getCopyStatus(running).isDone()
    with pytest.raises(NoSuchCopyError):
        fs.getCopyStatus(pending)


def test_cancel_unknown_copy_raises(fs):
    with pytest.raises(NoSuchCopyError):
        fs.cancelCopy(Copy("COPY-99", "/a", "/b"))


def test_finished_copies_are_capped(fs, tmp_path):
    engine = CopyEngine(fs, max_finished=1)
    try:
        (tmp_path / "src.txt").write_text("data")
        infos = [
            CopyInfo(
                Copy(engine.getNextID("C-"), str(tmp_path / "src.txt"), str(tmp_path / f"{i}")),
                CopyMode.CREATE,
                False,
                True,
            )
            for i in range(3)
        ]
        for info in infos:
            engine.copy(info)

        # the last copy is retired once the worker looks for more work
        deadline = time.monotonic() + 10
        while not (tmp_path / "2").exists() and time.monotonic() < deadline:
            time.sleep(0.01)
        time.sleep(0.1)

        with pytest.raises(NoSuchCopyError):
            engine.getStatus(infos[0].getCopy())
        assert engine.getStatus(infos[2].getCopy()).isDone()
    finally:
        engine.done()
        engine.join(5)


def test_engine_done_stops_worker(fs):
    engine = CopyEngine(fs, polling_delay=10)

    engine.done()
    engine.join(5)

    assert engine.isDone()
    assert not engine._worker.is_alive()


def test_closed_file_system_rejects_copies(tmp_path):
    fs = LocalFileSystem("local-fs-1", "", DefaultCredential(), Properties([]), str(tmp_path))
    fs.close()
    fs.close()

    assert not fs.isOpen()
    with pytest.raises(NotConnectedError):
        fs.copy("a", "b")
