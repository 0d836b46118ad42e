# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Entry point of the gridq library.

An `Engine` creates schedulers and file systems through the registered adaptors
and keeps track of them until they are closed. Ending the engine closes
everything it created, which kills the jobs of embedded schedulers and stops
the copy engines of the file systems.

Example:

    with Engine() as engine:
        scheduler = engine.newScheduler("local")
        job = scheduler.submitJob(JobDescription(executable="/bin/hostname"))
        status = scheduler.waitUntilDone(job, 0)
"""

import threading
from collections.abc import Mapping
from typing import Self

# importing the batch package registers all adaptors
from gridq_lib.batch import Scheduler
from gridq_lib.batch.interface import AdaptorMeta
from gridq_lib.core.error import GridQError, NoSuchSchedulerError
from gridq_lib.core.logger import get_logger
from gridq_lib.credentials import Credential
from gridq_lib.files import FileSystem

logger = get_logger(__name__)


class Engine:
    """
    Factory and owner of schedulers and file systems.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._schedulers: dict[str, Scheduler] = {}
        self._file_systems: dict[str, FileSystem] = {}
        self._next_id = 0
        self._ended = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.end()

    @staticmethod
    def getAdaptors() -> list[type]:
        """Return all registered adaptor classes."""
        return AdaptorMeta.all()

    def newScheduler(
        self,
        adaptor: str | None = None,
        location: str | None = None,
        credential: Credential | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> Scheduler:
        """
        Create a new scheduler.

        Args:
            adaptor (str | None): Name of the adaptor. If None, the adaptor is
                selected from the scheme of the location.
            location (str | None): Location of the scheduler.
            credential (Credential | None): Credential to use. None selects the
                default credential of the adaptor.
            properties (Mapping[str, str] | None): Properties of the scheduler.

        Returns:
            Scheduler: The new scheduler, owned by this engine until closed.

        Raises:
            GridQError: If the engine has ended, the adaptor is unknown or does
                not support schedulers, or the scheduler cannot be created.
        """
        Adaptor = AdaptorMeta.obtain(adaptor, location)
        if not Adaptor.supportsScheduler():
            raise GridQError(f"Adaptor '{Adaptor.name()}' does not support schedulers.")

        unique_id = self._reserveId(Adaptor.name())
        logger.debug(
            f"Creating scheduler '{unique_id}' for location '{location or ''}'."
        )
        scheduler = Adaptor.createScheduler(unique_id, location, credential, properties)

        with self._lock:
            self._schedulers[unique_id] = scheduler
        return scheduler

    def newFileSystem(
        self,
        adaptor: str | None = None,
        location: str | None = None,
        credential: Credential | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> FileSystem:
        """
        Create a new file system.

        Raises:
            GridQError: If the engine has ended, the adaptor is unknown or does
                not support file systems, or the file system cannot be created.
        """
        Adaptor = AdaptorMeta.obtain(adaptor, location)
        if not Adaptor.supportsFileSystem():
            raise GridQError(
                f"Adaptor '{Adaptor.name()}' does not support file systems."
            )

        unique_id = self._reserveId(f"{Adaptor.name()}-fs")
        logger.debug(
            f"Creating file system '{unique_id}' for location '{location or ''}'."
        )
        file_system = Adaptor.createFileSystem(
            unique_id, location, credential, properties
        )

        with self._lock:
            self._file_systems[unique_id] = file_system
        return file_system

    def close(self, scheduler: Scheduler) -> None:
        """
        Close a scheduler created by this engine.

        Raises:
            NoSuchSchedulerError: If the scheduler is unknown or already closed.
        """
        with self._lock:
            if self._schedulers.pop(scheduler.getUniqueId(), None) is None:
                raise NoSuchSchedulerError(
                    f"Scheduler '{scheduler.getUniqueId()}' is unknown or already closed."
                )

        logger.debug(f"Closing scheduler '{scheduler.getUniqueId()}'.")
        scheduler.close()

    def closeFileSystem(self, file_system: FileSystem) -> None:
        """
        Close a file system created by this engine.

        Raises:
            GridQError: If the file system is unknown or already closed.
        """
        with self._lock:
            if self._file_systems.pop(file_system.getUniqueId(), None) is None:
                raise GridQError(
                    f"File system '{file_system.getUniqueId()}' is unknown or already closed."
                )

        file_system.close()

    def getSchedulers(self) -> list[Scheduler]:
        """Return the open schedulers created by this engine."""
        with self._lock:
            return list(self._schedulers.values())

    def getFileSystems(self) -> list[FileSystem]:
        """Return the open file systems created by this engine."""
        with self._lock:
            return list(self._file_systems.values())

    def end(self) -> None:
        """
        Close all schedulers and file systems and refuse to create new ones.

        Failures of individual schedulers are logged; every scheduler is closed
        even if closing another one fails. Ending the engine twice does nothing.
        """
        with self._lock:
            if self._ended:
                return
            self._ended = True
            schedulers = list(self._schedulers.values())
            file_systems = list(self._file_systems.values())
            self._schedulers.clear()
            self._file_systems.clear()

        logger.debug(
            f"Ending engine: {len(schedulers)} scheduler(s), {len(file_systems)} file system(s)."
        )
        for resource in [*schedulers, *file_systems]:
            try:
                resource.close()
            except GridQError as e:
                logger.warning(f"Could not close '{resource.getUniqueId()}': {e}")

    def isEnded(self) -> bool:
        with self._lock:
            return self._ended

    def _reserveId(self, prefix: str) -> str:
        with self._lock:
            if self._ended:
                raise GridQError("Engine has already ended.")

            unique_id = f"{prefix}-{self._next_id}"
            self._next_id += 1
            return unique_id
