# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Transports executing command lines on behalf of schedulers and file systems.

`LocalTransport` runs commands as local processes. `SshTransport` runs them on
a remote host through the OpenSSH client, sharing a single authenticated
connection between all commands by means of OpenSSH connection multiplexing.
"""

import shlex
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from gridq_lib.core.config import CFG
from gridq_lib.core.error import (
    CommandNotFoundError,
    ConnectionLostError,
    NotConnectedError,
    PermissionDeniedError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.retryer import Retryer
from gridq_lib.credentials import CertificateCredential, Credential

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command executed through a transport."""

    exit_code: int
    stdout: str
    stderr: str


class Transport(ABC):
    """Executes commands locally or on a remote host."""

    def __init__(self, adaptor_name: str):
        self._adaptor_name = adaptor_name

    @abstractmethod
    def connect(self) -> None:
        """
        Establish the connection.

        Raises:
            NotConnectedError: If the connection cannot be established.
            PermissionDeniedError: If the authentication fails.
        """

    @abstractmethod
    def execute(self, command: list[str], stdin: str | None = None) -> CommandResult:
        """
        Execute a command synchronously and capture its output.

        A non-zero exit code of the command is not an error.

        Raises:
            NotConnectedError: If the transport is not connected.
            ConnectionLostError: If the connection dropped while executing the command.
            CommandNotFoundError: If a local command cannot be started.
        """

    @abstractmethod
    def popen(self, command: list[str], **kwargs) -> subprocess.Popen:
        """
        Start a command without waiting for it, returning the process.

        Keyword arguments are passed to `subprocess.Popen`.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Further commands fail with `NotConnectedError`."""

    @abstractmethod
    def isConnected(self) -> bool:
        pass

    @abstractmethod
    def isLocal(self) -> bool:
        pass


class LocalTransport(Transport):
    """Runs commands as processes on the local machine."""

    def __init__(self, adaptor_name: str = "local"):
        super().__init__(adaptor_name)
        self._connected = False

    def connect(self) -> None:
        self._connected = True

    def execute(self, command: list[str], stdin: str | None = None) -> CommandResult:
        self._checkConnected()
        logger.debug(f"Running local command '{shlex.join(command)}'.")

        try:
            result = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise CommandNotFoundError(
                f"Cannot run command '{command[0]}': {e}", self._adaptor_name
            ) from e

        return CommandResult(result.returncode, result.stdout, result.stderr)

    def popen(self, command: list[str], **kwargs) -> subprocess.Popen:
        self._checkConnected()
        try:
            return subprocess.Popen(command, **kwargs)
        except OSError as e:
            raise CommandNotFoundError(
                f"Cannot run command '{command[0]}': {e}", self._adaptor_name
            ) from e

    def close(self) -> None:
        self._connected = False

    def isConnected(self) -> bool:
        return self._connected

    def isLocal(self) -> bool:
        return True

    def _checkConnected(self) -> None:
        if not self._connected:
            raise NotConnectedError("Local transport is closed.", self._adaptor_name)


class SshTransport(Transport):
    """
    Runs commands on a remote host through the OpenSSH client.

    `connect` starts a background master connection; every executed command
    reuses it, so the authentication happens only once. The connection is never
    re-established automatically: once it drops, commands fail with
    `ConnectionLostError` and a new transport must be created.
    """

    def __init__(
        self,
        host: str,
        user: str | None = None,
        port: int | None = None,
        credential: Credential | None = None,
        timeout: int | None = None,
        adaptor_name: str = "ssh",
    ):
        super().__init__(adaptor_name)
        self._host = host
        self._user = user or (credential.username if credential else None)
        self._port = port
        self._credential = credential
        self._timeout = timeout if timeout is not None else CFG.ssh.connect_timeout

        self._control_dir: Path | None = None

    def getHost(self) -> str:
        return self._host

    def connect(self) -> None:
        if self.isConnected():
            return

        self._control_dir = Path(tempfile.mkdtemp(prefix="gridq-ssh-"))
        try:
            Retryer(
                self._startMaster,
                max_tries=CFG.ssh.connect_tries,
                wait_seconds=CFG.ssh.connect_wait,
            ).run()
        except Exception:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None
            raise

        logger.debug(f"Connected to '{self._host}'.")

    def execute(self, command: list[str], stdin: str | None = None) -> CommandResult:
        self._checkConnected()

        remote = shlex.join(command)
        logger.debug(f"Running command '{remote}' on '{self._host}'.")
        result = subprocess.run(
            self.sshCommand(options=["-q"]) + [remote],
            input=stdin if stdin is not None else "",
            capture_output=True,
            text=True,
            errors="replace",
        )

        if result.returncode == CFG.ssh.fail_code and not self._masterAlive():
            raise ConnectionLostError(
                f"Connection to '{self._host}' lost: {result.stderr.strip()}",
                self._adaptor_name,
            )

        return CommandResult(result.returncode, result.stdout, result.stderr)

    def popen(self, command: list[str], **kwargs) -> subprocess.Popen:
        self._checkConnected()
        return subprocess.Popen(
            self.sshCommand(options=["-q"]) + [shlex.join(command)], **kwargs
        )

    def close(self) -> None:
        if not self.isConnected():
            return

        logger.debug(f"Closing connection to '{self._host}'.")
        subprocess.run(
            self.sshCommand(options=["-O", "exit"]),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )
        shutil.rmtree(self._control_dir, ignore_errors=True)  # ty: ignore[invalid-argument-type]
        self._control_dir = None

    def isConnected(self) -> bool:
        return self._control_dir is not None

    def isLocal(self) -> bool:
        return False

    def sshCommand(self, options: list[str] | None = None) -> list[str]:
        """
        Return the ssh invocation reaching the remote host through the shared connection.

        Args:
            options (list[str] | None): Additional options passed to ssh before the host name.
        """
        command = [
            CFG.ssh.binary,
            "-o",
            "PasswordAuthentication=no",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self._timeout}",
        ]

        if self._control_dir:
            command += ["-o", f"ControlPath={self._control_dir / 'master'}"]
        if self._port:
            command += ["-p", str(self._port)]
        if self._user:
            command += ["-l", self._user]
        if (
            isinstance(self._credential, CertificateCredential)
            and self._credential.certificate_file
        ):
            command += ["-i", str(self._credential.certificate_file)]

        return command + (options or []) + [self._host]

    def _startMaster(self) -> None:
        # the master keeps running in the background holding the inherited
        # descriptors, so its error output is collected through a file
        with tempfile.TemporaryFile(mode="w+") as errors:
            result = subprocess.run(
                self.sshCommand(
                    options=[
                        "-o",
                        "ControlMaster=yes",
                        "-o",
                        "ControlPersist=yes",
                        "-f",
                        "-N",
                    ]
                ),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=errors,
                text=True,
            )
            errors.seek(0)
            message = errors.read().strip()

        if result.returncode == 0:
            return

        if "Permission denied" in message:
            raise PermissionDeniedError(
                f"Authentication to '{self._host}' failed: {message}",
                self._adaptor_name,
            )

        raise NotConnectedError(
            f"Could not connect to '{self._host}': {message or f'exit code {result.returncode}'}",
            self._adaptor_name,
        )

    def _masterAlive(self) -> bool:
        result = subprocess.run(
            self.sshCommand(options=["-O", "check"]),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )
        return result.returncode == 0

    def _checkConnected(self) -> None:
        if not self.isConnected():
            raise NotConnectedError(
                f"Not connected to '{self._host}'.", self._adaptor_name
            )
