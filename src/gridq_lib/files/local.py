# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import os
import stat
from pathlib import Path
from typing import BinaryIO

from gridq_lib.core.error import (
    GridQError,
    IllegalSourcePathError,
    NoSuchPathError,
    PathAlreadyExistsError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import Credential

from .filesystem import FileAttributes, FileSystem, OpenMode, OpenOption

logger = get_logger(__name__)


class LocalFileSystem(FileSystem):
    """File system of the local machine."""

    def __init__(
        self,
        unique_id: str,
        location: str,
        credential: Credential,
        properties: Properties,
        entry_path: str | None = None,
        adaptor_name: str = "local",
    ):
        super().__init__(
            unique_id,
            adaptor_name,
            location,
            credential,
            properties,
            entry_path or os.getcwd(),
        )

    def exists(self, path: str) -> bool:
        return os.path.lexists(self.newPath(path))

    def getAttributes(self, path: str) -> FileAttributes:
        resolved = self.newPath(path)
        try:
            link_info = os.lstat(resolved)
        except FileNotFoundError as e:
            raise NoSuchPathError(
                f"Path '{resolved}' does not exist.", self._adaptor_name
            ) from e
        except OSError as e:
            raise GridQError(
                f"Cannot read attributes of '{resolved}': {e}", self._adaptor_name
            ) from e

        is_link = stat.S_ISLNK(link_info.st_mode)
        try:
            info = os.stat(resolved) if is_link else link_info
        except OSError:
            # dangling link
            info = link_info

        return FileAttributes(
            is_directory=stat.S_ISDIR(info.st_mode),
            is_regular_file=stat.S_ISREG(info.st_mode),
            is_symbolic_link=is_link,
            size=info.st_size,
        )

    def newInputStream(self, path: str) -> BinaryIO:
        resolved = Path(self.newPath(path))
        if not resolved.exists():
            raise NoSuchPathError(f"File '{resolved}' does not exist.", self._adaptor_name)
        if resolved.is_dir():
            raise IllegalSourcePathError(
                f"Path '{resolved}' is a directory.", self._adaptor_name
            )

        try:
            return resolved.open("rb")
        except OSError as e:
            raise GridQError(
                f"Cannot open '{resolved}' for reading: {e}", self._adaptor_name
            ) from e

    def newOutputStream(self, path: str, *options: OpenOption) -> BinaryIO:
        resolved = Path(self.newPath(path))
        mode = OpenMode.fromOptions(*options)

        match mode.disposition:
            case OpenOption.CREATE:
                if os.path.lexists(resolved):
                    raise PathAlreadyExistsError(
                        f"File '{resolved}' already exists.", self._adaptor_name
                    )
                file_mode = "xb"
            case OpenOption.OPEN:
                if not resolved.exists():
                    raise NoSuchPathError(
                        f"File '{resolved}' does not exist.", self._adaptor_name
                    )
                file_mode = "ab" if mode.append else "r+b"
            case _:
                file_mode = "ab" if mode.append else "wb"

        logger.debug(f"Opening '{resolved}' for writing (mode '{file_mode}').")
        try:
            stream = resolved.open(file_mode)
        except OSError as e:
            raise GridQError(
                f"Cannot open '{resolved}' for writing: {e}", self._adaptor_name
            ) from e

        if file_mode == "r+b":
            stream.truncate(0)

        return stream  # ty: ignore[invalid-return-type]
