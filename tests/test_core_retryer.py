# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from unittest.mock import MagicMock, patch

import pytest

from gridq_lib.core.error import GridQError, NotConnectedError, PermissionDeniedError
from gridq_lib.core.retryer import Retryer


def test_retryer_success_first_try():
    mock_func = MagicMock(return_value=42)

    assert Retryer(mock_func, max_tries=5, wait_seconds=0).run() == 42
    mock_func.assert_called_once()


def test_retryer_retries_until_success():
    mock_func = MagicMock(
        side_effect=[GridQError("fail"), GridQError("fail again"), 99]
    )

    with patch("gridq_lib.core.retryer.sleep") as mock_sleep:
        result = Retryer(mock_func, max_tries=5, wait_seconds=2).run()

    assert result == 99
    assert mock_func.call_count == 3
    mock_sleep.assert_called_with(2)


def test_retryer_raises_same_type_after_max_tries():
    mock_func = MagicMock(side_effect=NotConnectedError("unreachable", "ssh"))

    with (
        patch("gridq_lib.core.retryer.sleep"),
        pytest.raises(NotConnectedError, match="Attempts exhausted") as exc_info,
    ):
        Retryer(mock_func, max_tries=3, wait_seconds=0).run()

    assert mock_func.call_count == 3
    assert exc_info.value.adaptor_name == "ssh"
    assert "attempt 3 of 3" in str(exc_info.value)


def test_retryer_does_not_retry_permission_errors():
    mock_func = MagicMock(side_effect=PermissionDeniedError("denied"))

    with pytest.raises(PermissionDeniedError):
        Retryer(mock_func, max_tries=3, wait_seconds=0).run()

    mock_func.assert_called_once()


def test_retryer_does_not_retry_other_exceptions():
    mock_func = MagicMock(side_effect=ValueError("bug"))

    with pytest.raises(ValueError):
        Retryer(mock_func, max_tries=3, wait_seconds=0).run()

    mock_func.assert_called_once()


def test_retryer_logs_warning_on_failure():
    mock_func = MagicMock(side_effect=[GridQError("fail"), 123])

    with (
        patch("gridq_lib.core.retryer.logger") as mock_logger,
        patch("gridq_lib.core.retryer.sleep"),
    ):
        result = Retryer(mock_func, max_tries=3, wait_seconds=0.1).run()

    assert result == 123
    assert mock_logger.warning.call_count == 1
    message = mock_logger.warning.call_args[0][0]
    assert "fail" in message
    assert "Attempting again in 0.1 seconds" in message


def test_retryer_passes_args_and_kwargs():
    mock_func = MagicMock(return_value="ok")

    Retryer(mock_func, 1, 2, x=5, max_tries=2, wait_seconds=0).run()

    mock_func.assert_called_once_with(1, 2, x=5)
