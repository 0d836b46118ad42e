# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Background execution of copy operations.

A `CopyEngine` belongs to one file system. Asynchronous copies are queued and
executed strictly one at a time, in submission order, by a single worker thread.
Callers poll the progress of a copy or cancel it through its handle.

Errors raised while a copy is executed are never propagated on the worker
thread; they are embedded in the status of the copy.
"""

import threading
from collections import OrderedDict, deque
from typing import TYPE_CHECKING, BinaryIO

from gridq_lib.core.common import milliseconds_to_seconds, normalize_path
from gridq_lib.core.config import CFG
from gridq_lib.core.error import (
    CopyCancelledError,
    GridQError,
    IllegalSourcePathError,
    IllegalTargetPathError,
    InvalidResumeTargetError,
    NoSuchCopyError,
    NoSuchPathError,
    PathAlreadyExistsError,
)
from gridq_lib.core.logger import get_logger

from .copy import Copy, CopyInfo, CopyMode, CopyStatus
from .options import OpenOption

if TYPE_CHECKING:
    from .filesystem import FileSystem

logger = get_logger(__name__)

NAME = "CopyEngine"
KILLED_MESSAGE = "Copy killed by user"


class CopyEngine:
    """
    Executes copy operations within one file system.
    """

    def __init__(
        self,
        owner: "FileSystem",
        buffer_size: int | None = None,
        polling_delay: int | None = None,
        max_finished: int | None = None,
    ):
        """
        Initialize the engine and start its worker thread.

        Args:
            owner (FileSystem): The file system whose files are copied.
            buffer_size (int | None): Size of a transferred chunk in bytes.
            polling_delay (int | None): Maximal time in milliseconds the worker waits
                for new work before checking the termination signal.
            max_finished (int | None): Maximal number of finished copies kept until
                queried. 0 means unlimited.
        """
        self._owner = owner
        self._buffer_size = buffer_size or CFG.copy.buffer_size
        self._polling_delay = milliseconds_to_seconds(
            polling_delay or CFG.copy.polling_delay
        )
        self._max_finished = (
            max_finished if max_finished is not None else CFG.copy.max_finished
        )

        self._condition = threading.Condition()
        self._pending: deque[CopyInfo] = deque()
        self._running: CopyInfo | None = None
        self._finished: OrderedDict[str, CopyInfo] = OrderedDict()
        self._next_id = 0
        self._done = False

        self._worker = threading.Thread(
            target=self._work, name="Copy Engine", daemon=True
        )
        self._worker.start()

    def copy(self, info: CopyInfo) -> None:
        """
        Execute the copy in the background if it is asynchronous, otherwise on the calling thread.
        """
        if info.isAsync():
            self._enqueue(info)
        else:
            self._startCopy(info)

    def done(self) -> None:
        """Signal the worker to terminate. Pending copies are never started."""
        logger.debug("Sending copy engine termination signal.")
        with self._condition:
            self._done = True
            self._condition.notify_all()

    def isDone(self) -> bool:
        with self._condition:
            return self._done

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker to terminate."""
        self._worker.join(timeout)

    def getNextID(self, prefix: str) -> str:
        with self._condition:
            unique_id = f"{prefix}{self._next_id}"
            self._next_id += 1
            return unique_id

    def getStatus(self, copy: Copy) -> CopyStatus:
        """
        Return the status of a copy. A finished copy is forgotten once its status is returned.

        Raises:
            NoSuchCopyError: If the copy is unknown.
        """
        copy_id = copy.getUniqueId()
        logger.debug(f"Retrieving status of copy '{copy_id}'.")

        with self._condition:
            if self._running is not None and self._running.hasId(copy_id):
                return CopyStatus.fromInfo(self._running, "RUNNING", True, False)

            if (info := self._finished.pop(copy_id, None)) is not None:
                return CopyStatus.fromInfo(info, "DONE", False, True)

            for info in self._pending:
                if info.hasId(copy_id):
                    return CopyStatus.fromInfo(info, "PENDING", False, False)

        raise NoSuchCopyError(f"No such copy '{copy_id}'.", NAME)

    def cancel(self, copy: Copy) -> CopyStatus:
        """
        Cancel a copy and return its status.

        A pending copy is removed without ever being started. For a running copy,
        the call blocks until the worker has stopped it. A finished copy is left
        untouched and can still be queried afterwards.

        Raises:
            NoSuchCopyError: If the copy is unknown.
        """
        copy_id = copy.getUniqueId()
        logger.debug(f"Attempting to cancel copy '{copy_id}'.")

        with self._condition:
            if self._running is not None and self._running.hasId(copy_id):
                logger.debug(f"Cancelled copy '{copy_id}' is running.")
                self._running.cancel()
                while self._running is not None and self._running.hasId(copy_id):
                    self._condition.wait(self._polling_delay)

            if (info := self._finished.get(copy_id)) is not None:
                logger.debug(f"Cancelled copy '{copy_id}' is finished.")
                return CopyStatus.fromInfo(info, "DONE", False, True)

            for info in self._pending:
                if info.hasId(copy_id):
                    logger.debug(f"Cancelled copy '{copy_id}' was queued.")
                    self._pending.remove(info)
                    info.cancel()
                    info.setException(CopyCancelledError(KILLED_MESSAGE, NAME))
                    return CopyStatus.fromInfo(info, "KILLED", False, True)

        raise NoSuchCopyError(f"No such copy '{copy_id}'.", NAME)

    def _work(self) -> None:
        while (info := self._dequeue()) is not None:
            self._startCopy(info)

        logger.debug("Copy engine worker terminated.")

    def _enqueue(self, info: CopyInfo) -> None:
        logger.debug(f"Queueing copy: {info}.")
        with self._condition:
            self._pending.append(info)
            self._condition.notify_all()

    def _dequeue(self) -> CopyInfo | None:
        with self._condition:
            if self._running is not None:
                self._retire(self._running)
                self._running = None
                self._condition.notify_all()

            while not self._done and not self._pending:
                self._condition.wait(self._polling_delay)

            if self._done:
                logger.debug(
                    f"Copy engine received termination signal with {len(self._pending)} pending copies."
                )
                return None

            self._running = self._pending.popleft()
            return self._running

    def _retire(self, info: CopyInfo) -> None:
        """Store a finished copy, evicting the oldest unqueried ones. Requires the lock."""
        self._finished[info.getUniqueId()] = info
        while self._max_finished and len(self._finished) > self._max_finished:
            evicted, _ = self._finished.popitem(last=False)
            logger.debug(f"Forgot unqueried finished copy '{evicted}'.")

    def _startCopy(self, info: CopyInfo) -> None:
        logger.debug(f"Starting copy: {info}.")

        try:
            match info.getMode():
                case CopyMode.CREATE | CopyMode.REPLACE | CopyMode.IGNORE:
                    self._doCopy(info)
                case CopyMode.APPEND:
                    self._doAppend(info)
                case CopyMode.RESUME:
                    self._doResume(info)
                case mode:
                    raise GridQError(f"Unknown copy mode '{mode}'.", NAME)
        except Exception as e:
            info.setException(e)

        logger.debug(f"Finished copy: {info}.")

    def _doCopy(self, info: CopyInfo) -> None:
        if self._killedBeforeStart(info):
            return

        fs = self._owner
        copy = info.getCopy()
        source, target = copy.getSource(), copy.getTarget()
        replace = info.getMode() == CopyMode.REPLACE
        ignore = info.getMode() == CopyMode.IGNORE

        logger.debug(
            f"Copy from '{source}' to '{target}' (replace: {replace}, ignore: {ignore})."
        )

        if not fs.exists(source):
            raise NoSuchPathError(f"Source '{source}' does not exist.", NAME)

        source_attributes = fs.getAttributes(source)
        if source_attributes.isDirectory():
            raise IllegalSourcePathError(f"Source '{source}' is a directory.", NAME)

        if normalize_path(source) == normalize_path(target):
            return

        if fs.exists(target):
            if ignore:
                return
            if not replace:
                raise PathAlreadyExistsError(f"Target '{target}' already exists.", NAME)

        parent = fs.getParent(target)
        if not fs.exists(parent):
            raise NoSuchPathError(f"Target directory '{parent}' does not exist.", NAME)

        info.setBytesToCopy(source_attributes.size)

        options = (
            (OpenOption.OPEN_OR_CREATE, OpenOption.TRUNCATE)
            if replace
            else (OpenOption.CREATE, OpenOption.APPEND)
        )

        try:
            with (
                fs.newInputStream(source) as input,
                fs.newOutputStream(target, *options) as output,
            ):
                self._streamCopy(input, output, info)
        except OSError as e:
            raise GridQError(
                f"Failed to copy '{source}' to '{target}': {e}", NAME
            ) from e

    def _doAppend(self, info: CopyInfo) -> None:
        if self._killedBeforeStart(info):
            return

        fs = self._owner
        copy = info.getCopy()
        source, target = copy.getSource(), copy.getTarget()

        logger.debug(f"Append from '{source}' to '{target}'.")

        if not fs.exists(source):
            raise NoSuchPathError(f"Source '{source}' does not exist.", NAME)

        source_attributes = fs.getAttributes(source)
        if source_attributes.isDirectory():
            raise IllegalSourcePathError(f"Source '{source}' is a directory.", NAME)

        if not fs.exists(target):
            raise NoSuchPathError(f"Target '{target}' does not exist.", NAME)

        if fs.getAttributes(target).isDirectory():
            raise IllegalTargetPathError(f"Target '{target}' is a directory.", NAME)

        if normalize_path(source) == normalize_path(target):
            raise IllegalTargetPathError(
                f"Cannot append a file to itself (source '{source}' equals target '{target}').",
                NAME,
            )

        info.setBytesToCopy(source_attributes.size)
        self._append(source, 0, target, info)

    def _doResume(self, info: CopyInfo) -> None:
        if self._killedBeforeStart(info):
            return

        fs = self._owner
        copy = info.getCopy()
        source, target = copy.getSource(), copy.getTarget()

        logger.debug(
            f"Resume copy from '{source}' to '{target}' (verify: {info.mustVerify()})."
        )

        if not fs.exists(source):
            raise NoSuchPathError(f"Source '{source}' does not exist.", NAME)

        source_attributes = fs.getAttributes(source)
        if source_attributes.isDirectory():
            raise IllegalSourcePathError(f"Source '{source}' is a directory.", NAME)
        if source_attributes.isSymbolicLink():
            raise IllegalSourcePathError(f"Source '{source}' is a link.", NAME)

        if not fs.exists(target):
            raise NoSuchPathError(f"Target '{target}' does not exist.", NAME)

        target_attributes = fs.getAttributes(target)
        if target_attributes.isDirectory():
            raise IllegalTargetPathError(f"Target '{target}' is a directory.", NAME)
        if target_attributes.isSymbolicLink():
            raise IllegalTargetPathError(f"Target '{target}' is a link.", NAME)

        if normalize_path(source) == normalize_path(target):
            return

        source_size = source_attributes.size
        target_size = target_attributes.size

        # a target larger than the source cannot be a partial copy of it
        if target_size > source_size:
            raise InvalidResumeTargetError(
                f"Data in target '{target}' does not match source '{source}'.", NAME
            )

        if info.mustVerify():
            if self._killedBeforeStart(info):
                return

            try:
                matches = self._compareHead(info, target, source)
            except OSError as e:
                raise GridQError(
                    f"Failed to compare '{source}' to '{target}': {e}", NAME
                ) from e

            if not matches:
                raise InvalidResumeTargetError(
                    f"Data in target '{target}' does not match source '{source}'.",
                    NAME,
                )

        if target_size == source_size:
            info.setBytesToCopy(0)
            info.setBytesCopied(0)
            return

        info.setBytesToCopy(source_size - target_size)
        self._append(source, target_size, target, info)

    def _append(self, source: str, offset: int, target: str, info: CopyInfo) -> None:
        logger.debug(f"Appending from '{source}' to '{target}' starting at {offset}.")

        fs = self._owner
        try:
            with (
                fs.newInputStream(source) as input,
                fs.newOutputStream(target, OpenOption.OPEN, OpenOption.APPEND) as output,
            ):
                self._skip(input, offset, source)
                self._streamCopy(input, output, info)
        except OSError as e:
            raise GridQError(
                f"Failed to copy '{source}':{offset} to target '{target}': {e}", NAME
            ) from e

    def _skip(self, input: BinaryIO, offset: int, source: str) -> None:
        if offset == 0:
            return

        if input.seekable():
            input.seek(offset)
            return

        remaining = offset
        while remaining > 0:
            chunk = input.read(min(remaining, self._buffer_size))
            if not chunk:
                raise GridQError(f"Failed to seek file '{source}' to {offset}.", NAME)
            remaining -= len(chunk)

    def _streamCopy(self, input: BinaryIO, output: BinaryIO, info: CopyInfo) -> None:
        total = 0

        while True:
            if info.isCancelled():
                logger.debug("Copy killed by user.")
                info.setException(CopyCancelledError(KILLED_MESSAGE, NAME))
                return

            chunk = input.read(self._buffer_size)
            if not chunk:
                return

            output.write(chunk)
            total += len(chunk)
            info.setBytesCopied(total)

    def _compareHead(self, info: CopyInfo, target: str, source: str) -> bool:
        """Return True if the content of target is a prefix of the content of source."""
        logger.debug(f"Comparing head of '{target}' to '{source}'.")

        fs = self._owner
        with fs.newInputStream(target) as head, fs.newInputStream(source) as whole:
            while True:
                if info.isCancelled():
                    raise CopyCancelledError(KILLED_MESSAGE, NAME)

                expected = self._readFully(head)
                actual = self._readFully(whole)

                if len(expected) > len(actual):
                    return False

                if not expected:
                    return True

                if expected != actual[: len(expected)]:
                    return False

    def _readFully(self, input: BinaryIO) -> bytes:
        chunks = []
        size = 0
        while size < self._buffer_size:
            chunk = input.read(self._buffer_size - size)
            if not chunk:
                break
            chunks.append(chunk)
            size += len(chunk)

        return b"".join(chunks)

    def _killedBeforeStart(self, info: CopyInfo) -> bool:
        if info.isCancelled():
            info.setException(CopyCancelledError(KILLED_MESSAGE, NAME))
            return True

        return False
