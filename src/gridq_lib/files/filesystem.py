# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
File access shared by the copy engine and the command-line tools.

A `FileSystem` is rooted at a location and resolves relative paths against its
entry path. Every file system owns one `CopyEngine` executing its asynchronous
copies in the background.
"""

import posixpath
from abc import ABC, abstractmethod
from typing import BinaryIO, Self

from gridq_lib.core.common import normalize_path
from gridq_lib.core.error import GridQError, NotConnectedError
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import Credential

from .copy import Copy, CopyInfo, CopyMode, CopyStatus
from .copy_engine import CopyEngine
from .options import FileAttributes, OpenMode, OpenOption

logger = get_logger(__name__)


class FileSystem(ABC):
    """
    Abstract base class of a file system.

    Paths are POSIX strings. Relative paths are resolved against the entry path
    of the file system. File systems must be closed explicitly, which stops
    their copy engine. File systems can be used as context managers.
    """

    def __init__(
        self,
        unique_id: str,
        adaptor_name: str,
        location: str,
        credential: Credential,
        properties: Properties,
        entry_path: str,
    ):
        self._unique_id = unique_id
        self._adaptor_name = adaptor_name
        self._location = location
        self._credential = credential
        self._properties = properties
        self._entry_path = normalize_path(entry_path)
        self._copy_engine = CopyEngine(self)
        self._open = True

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self._unique_id!r}, adaptor={self._adaptor_name!r}, "
            f"location={self._location!r}, entry={self._entry_path!r})"
        )

    def getUniqueId(self) -> str:
        return self._unique_id

    def getAdaptorName(self) -> str:
        return self._adaptor_name

    def getLocation(self) -> str:
        return self._location

    def getCredential(self) -> Credential:
        return self._credential

    def getProperties(self) -> Properties:
        return self._properties

    def getEntryPath(self) -> str:
        """Return the directory against which relative paths are resolved."""
        return self._entry_path

    def newPath(self, path: str) -> str:
        """Return the normalized absolute form of the path."""
        if posixpath.isabs(path):
            return normalize_path(path)

        return normalize_path(posixpath.join(self._entry_path, path))

    def getParent(self, path: str) -> str:
        """Return the parent directory of the path."""
        return posixpath.dirname(self.newPath(path)) or "/"

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if the path exists."""

    @abstractmethod
    def getAttributes(self, path: str) -> FileAttributes:
        """
        Return the attributes of the path.

        Raises:
            NoSuchPathError: If the path does not exist.
        """

    @abstractmethod
    def newInputStream(self, path: str) -> BinaryIO:
        """
        Open the file for reading.

        Raises:
            NoSuchPathError: If the file does not exist.
            IllegalSourcePathError: If the path is a directory.
        """

    @abstractmethod
    def newOutputStream(self, path: str, *options: OpenOption) -> BinaryIO:
        """
        Open the file for writing.

        Raises:
            PathAlreadyExistsError: If CREATE is requested and the file exists.
            NoSuchPathError: If OPEN is requested and the file does not exist.
        """

    def copy(
        self,
        source: str,
        target: str,
        mode: CopyMode = CopyMode.CREATE,
        verify: bool = False,
        asynchronous: bool = False,
    ) -> Copy:
        """
        Copy a file within this file system.

        Asynchronous copies are executed by the copy engine in the background;
        their progress is available through `getCopyStatus`. Synchronous copies
        are executed on the calling thread.

        Raises:
            GridQError: If a synchronous copy fails. Errors of asynchronous
                copies are embedded in their status.
        """
        self._checkOpen()
        source = self.newPath(source)
        target = self.newPath(target)

        if verify and mode != CopyMode.RESUME:
            raise GridQError(
                f"Verification is only supported for mode '{CopyMode.RESUME}'.",
                self._adaptor_name,
            )

        handle = Copy(self._copy_engine.getNextID("COPY-"), source, target)
        info = CopyInfo(handle, mode, verify, asynchronous)
        self._copy_engine.copy(info)

        if not asynchronous and (exception := info.getException()):
            raise exception

        return handle

    def getCopyStatus(self, copy: Copy) -> CopyStatus:
        """
        Return the status of an asynchronous copy.

        Raises:
            NoSuchCopyError: If the copy is unknown.
        """
        return self._copy_engine.getStatus(copy)

    def cancelCopy(self, copy: Copy) -> CopyStatus:
        """
        Cancel an asynchronous copy and return its status.

        Raises:
            NoSuchCopyError: If the copy is unknown.
        """
        return self._copy_engine.cancel(copy)

    def isOpen(self) -> bool:
        return self._open

    def close(self) -> None:
        """Stop the copy engine and release the resources of the file system."""
        if not self._open:
            return

        logger.debug(f"Closing file system '{self._unique_id}'.")
        self._open = False
        self._copy_engine.done()

    def _checkOpen(self) -> None:
        if not self._open:
            raise NotConnectedError(
                f"File system '{self._unique_id}' is closed.", self._adaptor_name
            )
