# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Self

from gridq_lib.core.error import GridQError


class CopyMode(Enum):
    """
    Mode of a copy operation.

    CREATE fails if the target exists, REPLACE overwrites it, IGNORE leaves it
    untouched. APPEND appends the source to an existing target. RESUME continues
    an interrupted copy by appending the missing tail of the source.
    """

    CREATE = 1
    REPLACE = 2
    IGNORE = 3
    APPEND = 4
    RESUME = 5

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def fromStr(cls, s: str) -> Self:
        """
        Convert a string to the corresponding CopyMode enum variant.

        Raises:
            GridQError: If the string does not name a copy mode.
        """
        try:
            return cls[s.upper()]
        except KeyError as e:
            raise GridQError(f"Unknown copy mode '{s}'.") from e


@dataclass(frozen=True)
class Copy:
    """Opaque handle of a copy operation."""

    unique_id: str
    source: str
    target: str

    def getUniqueId(self) -> str:
        return self.unique_id

    def getSource(self) -> str:
        return self.source

    def getTarget(self) -> str:
        return self.target


class CopyInfo:
    """
    Mutable record of a single copy request.

    The record is shared between the caller and the worker of a copy engine,
    so every mutable field is guarded by a lock.
    """

    def __init__(self, copy: Copy, mode: CopyMode, verify: bool, asynchronous: bool):
        self._copy = copy
        self._mode = mode
        self._verify = verify
        self._async = asynchronous

        self._lock = threading.Lock()
        self._cancelled = False
        self._bytes_to_copy = -1
        self._bytes_copied = 0
        self._exception: Exception | None = None

    def __repr__(self) -> str:
        return (
            f"CopyInfo(id={self._copy.unique_id!r}, source={self._copy.source!r}, "
            f"target={self._copy.target!r}, mode={self._mode}, verify={self._verify}, "
            f"async={self._async}, cancelled={self.isCancelled()}, "
            f"copied={self.getBytesCopied()}/{self.getBytesToCopy()})"
        )

    def getCopy(self) -> Copy:
        return self._copy

    def getUniqueId(self) -> str:
        return self._copy.unique_id

    def hasId(self, unique_id: str) -> bool:
        return self._copy.unique_id == unique_id

    def getMode(self) -> CopyMode:
        return self._mode

    def mustVerify(self) -> bool:
        return self._verify

    def isAsync(self) -> bool:
        return self._async

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def isCancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def setBytesToCopy(self, value: int) -> None:
        with self._lock:
            self._bytes_to_copy = value

    def getBytesToCopy(self) -> int:
        with self._lock:
            return self._bytes_to_copy

    def setBytesCopied(self, value: int) -> None:
        with self._lock:
            self._bytes_copied = value

    def getBytesCopied(self) -> int:
        with self._lock:
            return self._bytes_copied

    def setException(self, exception: Exception) -> None:
        with self._lock:
            self._exception = exception

    def getException(self) -> Exception | None:
        with self._lock:
            return self._exception


@dataclass(frozen=True)
class CopyStatus:
    """Snapshot of the status of a copy operation."""

    # The copy this status belongs to.
    copy: Copy

    # State of the copy: PENDING, RUNNING, DONE, or KILLED.
    state: str

    # Is the copy being executed?
    running: bool

    # Has the copy finished?
    done: bool

    # Number of bytes the copy transfers. -1 if not known yet.
    bytes_to_copy: int

    # Number of bytes transferred so far.
    bytes_copied: int

    # Error that terminated the copy, if any.
    exception: Exception | None = None

    @classmethod
    def fromInfo(cls, info: CopyInfo, state: str, running: bool, done: bool) -> Self:
        return cls(
            info.getCopy(),
            state,
            running,
            done,
            info.getBytesToCopy(),
            info.getBytesCopied(),
            info.getException(),
        )

    def getCopy(self) -> Copy:
        return self.copy

    def getState(self) -> str:
        return self.state

    def getException(self) -> Exception | None:
        return self.exception

    def hasException(self) -> bool:
        return self.exception is not None

    def isRunning(self) -> bool:
        return self.running

    def isDone(self) -> bool:
        return self.done

    def maybeThrowException(self) -> None:
        """Raise the embedded exception, if there is one."""
        if self.exception is not None:
            raise self.exception
