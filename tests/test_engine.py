# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import MagicMock, patch

import pytest

from gridq_lib.batch.local import LocalAdaptor
from gridq_lib.batch.slurm import SlurmAdaptor
from gridq_lib.core.error import GridQError, NoSuchSchedulerError
from gridq_lib.engine import Engine
from gridq_lib.jobs import JobDescription


@pytest.fixture
def engine():
    engine = Engine()
    yield engine
    engine.end()


def test_get_adaptors():
    adaptors = Engine.getAdaptors()

    assert LocalAdaptor in adaptors
    assert SlurmAdaptor in adaptors


def test_new_scheduler_and_file_system_ids(engine, tmp_path):
    scheduler = engine.newScheduler("local", str(tmp_path))
    file_system = engine.newFileSystem(location=str(tmp_path))

    assert scheduler.getUniqueId() == "local-0"
    assert scheduler.getAdaptorName() == "local"
    assert file_system.getUniqueId() == "local-fs-1"

    assert engine.getSchedulers() == [scheduler]
    assert engine.getFileSystems() == [file_system]


def test_scheduler_runs_job(engine, tmp_path):
    scheduler = engine.newScheduler(location=str(tmp_path))

    job = scheduler.submitJob(
        JobDescription(executable="/bin/sh", arguments=["-c", "exit 7"])
    )
    status = scheduler.waitUntilDone(job, 10_000)

    assert status.isDone()
    assert status.getExitCode() == 7


def test_adaptor_without_file_systems_raises(engine):
    with pytest.raises(GridQError, match="does not support file systems"):
        engine.newFileSystem("slurm", "slurm://cluster")

    assert engine.getFileSystems() == []


def test_unknown_adaptor_raises(engine):
    with pytest.raises(GridQError, match="No adaptor registered as 'condor'"):
        engine.newScheduler("condor")


def test_close_scheduler(engine, tmp_path):
    scheduler = engine.newScheduler("local", str(tmp_path))

    engine.close(scheduler)

    assert not scheduler.isOpen()
    assert engine.getSchedulers() == []

    with pytest.raises(NoSuchSchedulerError):
        engine.close(scheduler)


def test_close_file_system(engine, tmp_path):
    file_system = engine.newFileSystem("local", str(tmp_path))

    engine.closeFileSystem(file_system)

    assert not file_system.isOpen()
    with pytest.raises(GridQError, match="unknown or already closed"):
        engine.closeFileSystem(file_system)


def test_end_closes_everything(tmp_path):
    engine = Engine()
    scheduler = engine.newScheduler("local", str(tmp_path))
    file_system = engine.newFileSystem("local", str(tmp_path))

    engine.end()

    assert engine.isEnded()
    assert not scheduler.isOpen()
    assert not file_system.isOpen()
    assert engine.getSchedulers() == []

    # ending twice is a no-op
    engine.end()

    with pytest.raises(GridQError, match="already ended"):
        engine.newScheduler("local")


def test_end_continues_after_failure(tmp_path):
    engine = Engine()
    broken = MagicMock()
    broken.getUniqueId.return_value = "broken-0"
    broken.close.side_effect = GridQError("boom")
    scheduler = engine.newScheduler("local", str(tmp_path))
    engine._schedulers["broken-0"] = broken

    with patch("gridq_lib.engine.logger") as mock_logger:
        engine.end()

    broken.close.assert_called_once()
    assert not scheduler.isOpen()
    mock_logger.warning.assert_called_once()


def test_context_manager(tmp_path):
    with Engine() as engine:
        scheduler = engine.newScheduler("local", str(tmp_path))
        assert scheduler.isOpen()

    assert engine.isEnded()
    assert not scheduler.isOpen()
