# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from dataclasses import dataclass
from enum import Enum
from typing import Self

from gridq_lib.core.error import GridQError


class OpenOption(Enum):
    """Options controlling how an output stream is opened."""

    # Create a new file, fail if it exists.
    CREATE = 1
    # Open an existing file, fail if it does not exist.
    OPEN = 2
    # Open a file, creating it if it does not exist.
    OPEN_OR_CREATE = 3
    # Write at the end of the file.
    APPEND = 4
    # Discard the content of the file.
    TRUNCATE = 5


@dataclass(frozen=True)
class OpenMode:
    """Resolved combination of open options."""

    # One of CREATE, OPEN, OPEN_OR_CREATE.
    disposition: OpenOption

    # Write at the end of the file instead of truncating it.
    append: bool

    @classmethod
    def fromOptions(cls, *options: OpenOption) -> Self:
        """
        Resolve a set of open options.

        Exactly one of CREATE, OPEN, OPEN_OR_CREATE must be given; APPEND and
        TRUNCATE are mutually exclusive and default to TRUNCATE.

        Raises:
            GridQError: If the options conflict.
        """
        dispositions = {
            o
            for o in options
            if o in (OpenOption.CREATE, OpenOption.OPEN, OpenOption.OPEN_OR_CREATE)
        }
        if len(dispositions) != 1:
            raise GridQError(
                "Exactly one of CREATE, OPEN, OPEN_OR_CREATE must be specified."
            )

        if OpenOption.APPEND in options and OpenOption.TRUNCATE in options:
            raise GridQError("APPEND and TRUNCATE cannot be combined.")

        return cls(dispositions.pop(), OpenOption.APPEND in options)


@dataclass(frozen=True)
class FileAttributes:
    """Attributes of a path."""

    is_directory: bool
    is_regular_file: bool
    is_symbolic_link: bool
    size: int

    def isDirectory(self) -> bool:
        return self.is_directory

    def isRegularFile(self) -> bool:
        return self.is_regular_file

    def isSymbolicLink(self) -> bool:
        return self.is_symbolic_link
