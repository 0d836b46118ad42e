# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Callable
from time import sleep
from typing import Any

from .error import GridQError, PermissionDeniedError
from .logger import get_logger

logger = get_logger(__name__, show_time=True)


class Retryer:
    """
    Call an operation on a remote host until it stops failing.

    Only gridq errors count as transient failures. A `PermissionDeniedError`
    is raised at once, as are errors of any other type.
    """

    def __init__(
        self,
        func: Callable,
        *args: Any,
        max_tries: int,
        wait_seconds: float,
        **kwargs: Any,
    ):
        self._call = lambda: func(*args, **kwargs)
        self._max_tries = max(1, max_tries)
        self._wait_seconds = wait_seconds

    def run(self) -> Any:
        """
        Return the result of the first successful call.

        Raises:
            GridQError: Of the same type as the last failure, once all
                attempts have been used.
        """
        attempt = 1
        while True:
            try:
                return self._call()
            except PermissionDeniedError:
                raise
            except GridQError as e:
                note = f"This was attempt {attempt} of {self._max_tries}."
                if attempt >= self._max_tries:
                    raise type(e)(
                        f"{e.message}\n{note} Attempts exhausted.", e.adaptor_name
                    ) from e

                logger.warning(
                    f"{e}\n{note} Attempting again in {self._wait_seconds} seconds."
                )
                sleep(self._wait_seconds)
                attempt += 1
