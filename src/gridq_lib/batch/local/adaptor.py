# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import os
from collections.abc import Mapping

from gridq_lib.batch.interface import Adaptor, AdaptorMeta, adaptor
from gridq_lib.core.common import split_location
from gridq_lib.core.config import CFG
from gridq_lib.core.error import InvalidLocationError
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import PropertyDescription, PropertyType
from gridq_lib.credentials import Credential
from gridq_lib.files.local import LocalFileSystem

from .launcher import LocalProcessLauncher
from .scheduler import JobQueueScheduler

logger = get_logger(__name__)

PREFIX = "gridq.adaptors.local."
POLLING_DELAY = PREFIX + "queue.pollingDelay"
MULTI_MAX_CONCURRENT = PREFIX + "queue.multi.maxConcurrentJobs"
HISTORY_SIZE = PREFIX + "queue.historySize"


@adaptor
class LocalAdaptor(Adaptor, metaclass=AdaptorMeta):
    def name() -> str:
        return "local"

    def description() -> str:
        return "Runs jobs as processes and accesses files on the local machine."

    def schemes() -> list[str]:
        return ["local", "file"]

    def locations() -> list[str]:
        return ["(empty)", "local://", "local:///path/to/workdir", "/path/to/workdir"]

    def supportedProperties() -> list[PropertyDescription]:
        return [
            PropertyDescription(
                POLLING_DELAY,
                PropertyType.INTEGER,
                str(CFG.local.polling_delay),
                "Delay between checks of running jobs in milliseconds.",
            ),
            PropertyDescription(
                MULTI_MAX_CONCURRENT,
                PropertyType.INTEGER,
                None
                if CFG.local.multi_max_concurrent is None
                else str(CFG.local.multi_max_concurrent),
                "Maximal number of concurrently running jobs in the 'multi' queue. "
                "Defaults to the number of processors.",
            ),
            PropertyDescription(
                HISTORY_SIZE,
                PropertyType.INTEGER,
                str(CFG.local.history_size),
                "Number of finished jobs kept for status queries. -1 means unlimited.",
            ),
        ]

    @classmethod
    def createScheduler(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> JobQueueScheduler:
        workdir = LocalAdaptor._workdir(location)
        credential = cls.checkCredential(credential)
        props = cls.getProperties(properties)

        multi = props.getInteger(MULTI_MAX_CONCURRENT)
        if multi is None:
            multi = os.cpu_count() or 1

        return JobQueueScheduler(
            unique_id,
            cls.name(),
            location or "",
            credential,
            props,
            LocalProcessLauncher(cls.name()),
            workdir,
            multi_max_concurrent=multi,
            polling_delay=props.getInteger(POLLING_DELAY),  # ty: ignore[invalid-argument-type]
            history_size=props.getInteger(HISTORY_SIZE),  # ty: ignore[invalid-argument-type]
        )

    @classmethod
    def createFileSystem(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> LocalFileSystem:
        workdir = LocalAdaptor._workdir(location)
        return LocalFileSystem(
            unique_id,
            location or "",
            cls.checkCredential(credential),
            cls.getProperties(properties),
            entry_path=workdir,
        )

    @classmethod
    def _workdir(cls, location: str | None) -> str:
        """
        Return the directory named by a local location, or the current directory.

        Raises:
            InvalidLocationError: If the location names a remote host or has
                an unsupported scheme.
        """
        cls.checkScheme(location)

        parts = split_location(location)
        if parts.hostname and parts.hostname != "localhost":
            raise InvalidLocationError(
                f"Location '{location}' names a host. Use the 'ssh' adaptor for remote hosts.",
                cls.name(),
            )

        if parts.path and parts.path != "/":
            if not os.path.isdir(parts.path):
                raise InvalidLocationError(
                    f"Directory '{parts.path}' does not exist.", cls.name()
                )
            return parts.path

        return os.getcwd()
