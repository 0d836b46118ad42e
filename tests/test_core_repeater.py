# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import Mock

import pytest

from gridq_lib.core.error import GridQError, NoSuchJobError
from gridq_lib.core.repeater import Repeater


@pytest.fixture
def jobs():
    return ["local-0", "local-1", "local-2"]


def test_repeater_runs_all_items(jobs):
    calls = []
    repeater = Repeater(jobs, calls.append)
    repeater.run()

    assert calls == jobs
    assert repeater.current_iteration == 2
    assert repeater.encountered_errors == {}


def test_repeater_forwards_arguments(jobs):
    func = Mock()
    Repeater(jobs[:1], func, "scheduler", force=True).run()

    func.assert_called_once_with("local-0", "scheduler", force=True)


def test_repeater_handles_registered_exception(jobs):
    def cancel(job):
        if job == "local-1":
            raise NoSuchJobError(f"Job '{job}' is unknown.")

    handler = Mock()
    repeater = Repeater(jobs, cancel)
    repeater.onException(NoSuchJobError, handler)
    repeater.run()

    handler.assert_called_once()
    exception, metadata = handler.call_args.args
    assert isinstance(exception, NoSuchJobError)
    assert metadata is repeater
    assert list(repeater.encountered_errors) == [1]
    assert repeater.current_iteration == 2


def test_repeater_uses_first_matching_handler(jobs):
    def cancel(job):
        raise NoSuchJobError("unknown") if job == "local-0" else GridQError("failed")

    specific = Mock()
    general = Mock()
    repeater = Repeater(jobs, cancel)
    repeater.onException(NoSuchJobError, specific)
    repeater.onException(GridQError, general)
    repeater.run()

    assert specific.call_count == 1
    assert general.call_count == 2
    assert len(repeater.encountered_errors) == 3


def test_repeater_unhandled_exception_propagates(jobs):
    def cancel(job):
        raise ValueError("bad")

    repeater = Repeater(jobs, cancel)
    repeater.onException(GridQError, Mock())

    with pytest.raises(ValueError, match="bad"):
        repeater.run()

    assert repeater.current_iteration == 0
    assert repeater.encountered_errors == {}
