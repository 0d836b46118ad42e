# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Base class for schedulers driven by the command-line tools of a batch system.

A `SchedulerConnection` runs the tools of the batch system (e.g. `sbatch`,
`squeue`) through a transport: directly on the local machine if the location
names no host, otherwise on the remote host over ssh. It also owns a
companion file system rooted at the same location, used to resolve relative
paths and to check working directories.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from gridq_lib.core.common import (
    milliseconds_to_seconds,
    parse_remote_location,
    split_location,
)
from gridq_lib.core.config import CFG
from gridq_lib.core.error import (
    CommandFailedError,
    GridQError,
    InvalidJobDescriptionError,
    InvalidLocationError,
    InvalidPropertyError,
    NoSuchQueueError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import (
    ADAPTORS_PREFIX,
    Properties,
    PropertyDescription,
    PropertyType,
    merge_property_descriptions,
)
from gridq_lib.credentials import Credential
from gridq_lib.files.filesystem import FileSystem
from gridq_lib.files.local import LocalFileSystem
from gridq_lib.files.ssh import SshFileSystem
from gridq_lib.jobs import Job, JobDescription, JobStatus, QueueStatus, verify_job_description

from .runner import RemoteCommandRunner
from .transport import LocalTransport, SshTransport, Transport

if TYPE_CHECKING:
    from gridq_lib.batch.scheduler import Scheduler

logger = get_logger(__name__)


def poll_delay_property(adaptor_name: str) -> str:
    """Return the name of the poll delay property of the adaptor."""
    return f"{ADAPTORS_PREFIX}{adaptor_name}.poll.delay"


def poll_delay_description(adaptor_name: str) -> PropertyDescription:
    return PropertyDescription(
        poll_delay_property(adaptor_name),
        PropertyType.LONG,
        str(CFG.scripting.poll_delay),
        "Number of milliseconds between polls of the status of a job.",
    )


class SchedulerConnection(ABC):
    """
    Connection to a batch system controlled through its command-line tools.

    Subclasses implement the operations of a scheduler by running the tools
    of their batch system with `runCommand` or `runCheckedCommand` and parsing
    their output. Waiting for jobs is implemented here by polling.
    """

    def __init__(
        self,
        unique_id: str,
        adaptor_name: str,
        valid_schemes: list[str],
        location: str | None,
        credential: Credential,
        properties: Mapping[str, str] | None,
        valid_properties: list[PropertyDescription] | None = None,
        transport: Transport | None = None,
    ):
        """
        Connect to the batch system.

        Args:
            unique_id (str): Identifier of the scheduler using the connection.
            adaptor_name (str): Name of the adaptor.
            valid_schemes (list[str]): Schemes accepted in the location.
            location (str | None): Location of the machine running the batch system.
            credential (Credential): Credential used to connect to the machine.
            properties (Mapping[str, str] | None): Properties given by the user.
            valid_properties (list[PropertyDescription] | None): Properties supported
                by the adaptor in addition to the poll delay.
            transport (Transport | None): Transport to use. By default, a local
                transport is used for locations without a host, ssh otherwise.

        Raises:
            InvalidLocationError: If the location is not supported.
            UnknownPropertyError: If a property is not supported.
            InvalidPropertyError: If a property has an invalid value.
            TransportError: If the connection cannot be established.
        """
        SchedulerConnection.checkLocation(adaptor_name, location, valid_schemes)

        self._unique_id = unique_id
        self._adaptor_name = adaptor_name
        self._location = location or ""
        self._credential = credential
        self._properties = Properties(
            merge_property_descriptions(
                [poll_delay_description(adaptor_name)], valid_properties
            ),
            properties,
            adaptor_name,
        )

        self._poll_delay = self._properties.getLong(poll_delay_property(adaptor_name))
        if self._poll_delay is None or self._poll_delay <= 0:
            raise InvalidPropertyError(
                f"Illegal poll delay '{self._poll_delay}'. Must be positive.",
                adaptor_name,
            )

        self._scheduler: "Scheduler | None" = None
        self._interrupted = threading.Event()
        self._open = True

        if transport is None:
            host, user, port, _ = parse_remote_location(location)
            transport = (
                SshTransport(
                    host, user=user, port=port, credential=credential, adaptor_name=adaptor_name
                )
                if host
                else LocalTransport(adaptor_name)
            )

        self._transport = transport
        self._transport.connect()

        try:
            self._filesystem = self._createFileSystem()
        except GridQError:
            self._transport.close()
            raise

        logger.debug(
            f"Connected to '{adaptor_name}' scheduler at '{self._location or 'localhost'}'."
        )

    @staticmethod
    def checkLocation(
        adaptor_name: str, location: str | None, valid_schemes: list[str]
    ) -> None:
        """
        Check that the location names at most a host.

        Raises:
            InvalidLocationError: If the location has an unsupported scheme,
                a path other than '/', or a fragment.
        """
        if not location:
            return

        try:
            parts = split_location(location)
            # accessing the port validates it
            parts.port
        except ValueError as e:
            raise InvalidLocationError(
                f"Failed to parse location '{location}': {e}", adaptor_name
            ) from e

        if parts.scheme and parts.scheme not in valid_schemes:
            raise InvalidLocationError(
                f"Adaptor does not support scheme '{parts.scheme}'.", adaptor_name
            )

        if parts.path not in ("", "/"):
            raise InvalidLocationError(
                f"Cannot create connection with location containing a path: '{location}'.",
                adaptor_name,
            )

        if parts.fragment:
            raise InvalidLocationError(
                f"Cannot create connection with location containing a fragment: '{location}'.",
                adaptor_name,
            )

    def attach(self, scheduler: "Scheduler") -> None:
        """Set the scheduler on whose behalf the connection creates jobs."""
        self._scheduler = scheduler

    def getScheduler(self) -> "Scheduler":
        if self._scheduler is None:
            raise GridQError(
                "Scheduler connection is not attached to a scheduler.", self._adaptor_name
            )
        return self._scheduler

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

    def getPollDelay(self) -> int:
        return self._poll_delay

    def getTransport(self) -> Transport:
        return self._transport

    def getFileSystem(self) -> FileSystem:
        return self._filesystem

    def getEntryPath(self) -> str:
        """Return the directory against which relative paths of jobs are resolved."""
        return self._filesystem.getEntryPath()

    def runCommand(
        self, stdin: str | None, executable: str, *arguments: str
    ) -> RemoteCommandRunner:
        """Run a command of the batch system and return its result, whatever the exit code."""
        return RemoteCommandRunner(
            self._transport, self._adaptor_name, stdin, executable, *arguments
        )

    def runCheckedCommand(self, stdin: str | None, executable: str, *arguments: str) -> str:
        """
        Run a command of the batch system and return its standard output.

        Raises:
            CommandFailedError: If the command returns a non-zero exit code.
        """
        runner = self.runCommand(stdin, executable, *arguments)

        if runner.getExitCode() != 0:
            raise CommandFailedError(
                f"Failed to run command '{' '.join(runner.getCommand())}': exit code = "
                f"{runner.getExitCode()}, output: '{runner.getStdout().strip()}', "
                f"error output: '{runner.getStderr().strip()}'.",
                self._adaptor_name,
                exit_code=runner.getExitCode(),
                stdout=runner.getStdout(),
                stderr=runner.getStderr(),
            )

        return runner.getStdout()

    def waitUntilDone(self, job: Job, timeout: int) -> JobStatus:
        """
        Poll the status of the job until it is done or the timeout (in milliseconds) expires.

        A timeout of 0 means no deadline. The status is polled at least once.
        Returns early with the last observed status when the connection is closed.
        """
        return self._waitFor(job, timeout, lambda status: status.isDone())

    def waitUntilRunning(self, job: Job, timeout: int) -> JobStatus:
        """
        Poll the status of the job until it is running, done, or the timeout expires.

        A timeout of 0 means no deadline. The status is polled at least once.
        """
        return self._waitFor(
            job, timeout, lambda status: status.isRunning() or status.isDone()
        )

    def checkQueueNames(self, queue_names: tuple[str, ...] | list[str]) -> None:
        """
        Check that all the queues exist.

        Raises:
            NoSuchQueueError: Listing every queue that does not exist.
        """
        known = self.getQueueNames()
        if unknown := [name for name in queue_names if name not in known]:
            raise NoSuchQueueError(
                f"Queues do not exist: {', '.join(unknown)}.", self._adaptor_name
            )

    def verifyJobDescription(self, description: JobDescription) -> None:
        """
        Check the job description using the checks shared by all batch systems.

        Raises:
            IncompleteJobDescriptionError: If the executable is missing.
            InvalidJobDescriptionError: If the description is invalid or interactive.
        """
        if description.interactive:
            raise InvalidJobDescriptionError(
                "Adaptor does not support interactive jobs.", self._adaptor_name
            )

        verify_job_description(description, self._adaptor_name)

    def checkWorkingDirectory(self, working_directory: str | None) -> None:
        """
        Check that the working directory of a job exists.

        Raises:
            GridQError: If the directory does not exist.
        """
        if working_directory is None:
            return

        path = self._filesystem.newPath(working_directory)
        if not self._filesystem.exists(path):
            raise GridQError(
                f"Working directory does not exist: '{path}'.", self._adaptor_name
            )

    def isOpen(self) -> bool:
        return self._open

    def close(self) -> None:
        """Interrupt all waits and close the file system and the transport."""
        if not self._open:
            return

        logger.debug(f"Closing connection of scheduler '{self._unique_id}'.")
        self._open = False
        self._interrupted.set()
        try:
            self._filesystem.close()
        finally:
            self._transport.close()

    @abstractmethod
    def getQueueNames(self) -> list[str]:
        pass

    @abstractmethod
    def getDefaultQueueName(self) -> str | None:
        pass

    @abstractmethod
    def getQueueStatus(self, queue_name: str) -> QueueStatus:
        pass

    @abstractmethod
    def getQueueStatuses(self, *queue_names: str | None) -> list[QueueStatus | None]:
        pass

    @abstractmethod
    def getJobs(self, *queue_names: str) -> list[Job]:
        pass

    @abstractmethod
    def submitJob(self, description: JobDescription) -> Job:
        pass

    @abstractmethod
    def cancelJob(self, job: Job) -> JobStatus:
        pass

    @abstractmethod
    def getJobStatus(self, job: Job) -> JobStatus:
        pass

    @abstractmethod
    def getJobStatuses(self, *jobs: Job | None) -> list[JobStatus | None]:
        pass

    def _createFileSystem(self) -> FileSystem:
        fs_id = f"{self._unique_id}-fs"
        if self._transport.isLocal():
            return LocalFileSystem(
                fs_id,
                self._location,
                self._credential,
                self._properties,
                adaptor_name=self._adaptor_name,
            )

        return SshFileSystem(
            fs_id,
            self._location,
            self._credential,
            self._properties,
            self._transport,
            adaptor_name=self._adaptor_name,
        )

    def _waitFor(
        self, job: Job, timeout: int, predicate: Callable[[JobStatus], bool]
    ) -> JobStatus:
        if timeout < 0:
            raise GridQError(
                f"Illegal timeout '{timeout}'. Must be non-negative.", self._adaptor_name
            )

        deadline = (
            None if timeout == 0 else time.monotonic() + milliseconds_to_seconds(timeout)
        )
        delay = milliseconds_to_seconds(self._poll_delay)

        status = self.getJobStatus(job)
        while not predicate(status):
            if deadline is None:
                sleep = delay
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                sleep = min(delay, remaining)

            # the event is set when the connection is closed
            if self._interrupted.wait(sleep):
                logger.debug(f"Waiting for job '{job.getIdentifier()}' interrupted.")
                break

            status = self.getJobStatus(job)

        return status
