# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import subprocess
from typing import IO, TYPE_CHECKING, BinaryIO

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

if TYPE_CHECKING:
    from gridq_lib.batch.scripting.transport import Transport

logger = get_logger(__name__)


class ProcessStream:
    """
    Stream connected to a pipe of a remote command.

    Closing the stream waits for the command and raises if it failed.
    """

    def __init__(self, process: subprocess.Popen, pipe: IO[bytes], description: str):
        self._process = process
        self._pipe = pipe
        self._description = description
        self._closed = False
        self._eof = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def read(self, size: int = -1) -> bytes:
        data = self._pipe.read(size)
        if not data and size != 0:
            self._eof = True
        return data

    def write(self, data: bytes) -> int:
        return self._pipe.write(data)

    def seekable(self) -> bool:
        return False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        self._pipe.close()
        if self._pipe is self._process.stdout and not self._eof:
            # the reader stopped early, the rest of the output is not needed
            self._process.kill()
            self._process.wait()
            return

        stderr = self._process.stderr.read() if self._process.stderr else b""
        self._process.wait()
        if self._process.returncode != 0:
            message = stderr.decode(errors="replace").strip() if stderr else ""
            raise OSError(
                f"{self._description} failed with exit code {self._process.returncode}: {message}"
            )


class SshFileSystem(FileSystem):
    """
    File system of a remote machine, accessed by running shell tools over ssh.
    """

    def __init__(
        self,
        unique_id: str,
        location: str,
        credential: Credential,
        properties: Properties,
        transport: "Transport",
        entry_path: str | None = None,
        adaptor_name: str = "ssh",
    ):
        self._transport = transport
        if not transport.isConnected():
            transport.connect()

        if entry_path is None:
            entry_path = self._remoteHome()

        super().__init__(
            unique_id, adaptor_name, location, credential, properties, entry_path
        )

    def getTransport(self) -> "Transport":
        return self._transport

    def exists(self, path: str) -> bool:
        resolved = self.newPath(path)
        result = self._transport.execute(
            ["sh", "-c", 'test -e "$1" || test -L "$1"', "sh", resolved]
        )
        return result.exit_code == 0

    def getAttributes(self, path: str) -> FileAttributes:
        resolved = self.newPath(path)
        link = self._transport.execute(["stat", "-c", "%F", resolved])
        if link.exit_code != 0:
            raise NoSuchPathError(
                f"Path '{resolved}' does not exist: {link.stderr.strip()}",
                self._adaptor_name,
            )

        # follow links for type and size, fall back to the link itself if dangling
        target = self._transport.execute(["stat", "-L", "-c", "%F|%s", resolved])
        if target.exit_code != 0:
            target = self._transport.execute(["stat", "-c", "%F|%s", resolved])

        try:
            kind, size = target.stdout.strip().rsplit("|", 1)
            size = int(size)
        except ValueError as e:
            raise GridQError(
                f"Cannot parse attributes of '{resolved}': '{target.stdout.strip()}'.",
                self._adaptor_name,
            ) from e

        return FileAttributes(
            is_directory=kind == "directory",
            is_regular_file=kind.startswith("regular"),
            is_symbolic_link=link.stdout.strip() == "symbolic link",
            size=size,
        )

    def newInputStream(self, path: str) -> BinaryIO:
        resolved = self.newPath(path)
        if not self.exists(resolved):
            raise NoSuchPathError(f"File '{resolved}' does not exist.", self._adaptor_name)
        if self.getAttributes(resolved).isDirectory():
            raise IllegalSourcePathError(
                f"Path '{resolved}' is a directory.", self._adaptor_name
            )

        process = self._transport.popen(
            ["cat", resolved],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return ProcessStream(process, process.stdout, f"Reading '{resolved}'")  # ty: ignore[invalid-return-type]

    def newOutputStream(self, path: str, *options: OpenOption) -> BinaryIO:
        resolved = self.newPath(path)
        mode = OpenMode.fromOptions(*options)

        match mode.disposition:
            case OpenOption.CREATE:
                if self.exists(resolved):
                    raise PathAlreadyExistsError(
                        f"File '{resolved}' already exists.", self._adaptor_name
                    )
            case OpenOption.OPEN:
                if not self.exists(resolved):
                    raise NoSuchPathError(
                        f"File '{resolved}' does not exist.", self._adaptor_name
                    )

        redirect = ">>" if mode.append else ">"
        logger.debug(f"Opening remote file '{resolved}' for writing ('{redirect}').")
        process = self._transport.popen(
            ["sh", "-c", f'cat {redirect} "$1"', "sh", resolved],
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        return ProcessStream(process, process.stdin, f"Writing '{resolved}'")  # ty: ignore[invalid-return-type]

    def close(self) -> None:
        if not self.isOpen():
            return

        super().close()
        self._transport.close()

    def _remoteHome(self) -> str:
        result = self._transport.execute(["pwd"])
        if result.exit_code != 0 or not result.stdout.strip():
            raise GridQError(
                f"Cannot determine the home directory on the remote host: {result.stderr.strip()}",
                self._adaptor_name,
            )

        return result.stdout.strip()
