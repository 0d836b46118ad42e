# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Callable
from typing import Any


class Repeater:
    """
    Apply one operation to every job identifier given on the command line.

    Errors of a single job do not stop the remaining jobs if a handler is
    registered for them. The handler receives the error and the repeater,
    so it can decide whether the whole command has failed.

    Attributes:
        items (list[Any]): Items the operation is applied to, usually job identifiers.
        encountered_errors (dict[int, BaseException]): Errors keyed by the index of the item.
        results (dict[int, Any]): Return values of successful calls keyed by the index of the item.
        current_iteration (int): Index of the item being processed.
    """

    def __init__(self, items: list[Any], func: Callable, *args: Any, **kwargs: Any):
        """
        Args:
            items (list[Any]): Items to process.
            func (Callable): Operation called as `func(item, *args, **kwargs)`.
        """
        self.items = items
        self.encountered_errors: dict[int, BaseException] = {}
        self.results: dict[int, Any] = {}
        self.current_iteration = 0

        self._func = func
        self._args = args
        self._kwargs = kwargs
        self._handlers: list[tuple[type[BaseException], Callable]] = []

    def onException(self, exc_type: type[BaseException], handler: Callable) -> None:
        """
        Register `handler(exception, repeater)` for errors of the given type.

        The first registered handler matching an error is used, so register
        subclasses before their base classes.
        """
        self._handlers.append((exc_type, handler))

    def allFailed(self, exc_type: type[BaseException] = BaseException) -> bool:
        """Return True if the operation failed with `exc_type` for every item."""
        failed = [e for e in self.encountered_errors.values() if isinstance(e, exc_type)]
        return len(failed) == len(self.items)

    def run(self) -> None:
        """
        Process all items in order.

        Raises:
            BaseException: Any error without a registered handler. The
                remaining items are not processed.
        """
        for i, item in enumerate(self.items):
            self.current_iteration = i
            try:
                self.results[i] = self._func(item, *self._args, **self._kwargs)
            except BaseException as e:
                handler = self._findHandler(e)
                if handler is None:
                    raise

                self.encountered_errors[i] = e
                handler(e, self)

    def _findHandler(self, exception: BaseException) -> Callable | None:
        return next(
            (h for exc_type, h in self._handlers if isinstance(exception, exc_type)),
            None,
        )
