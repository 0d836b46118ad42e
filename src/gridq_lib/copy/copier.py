# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import time

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)

from gridq_lib.core.common import milliseconds_to_seconds
from gridq_lib.core.config import CFG
from gridq_lib.core.logger import get_logger
from gridq_lib.files import CopyMode, CopyStatus, FileSystem

logger = get_logger(__name__)

# delay between refreshes of the progress display in milliseconds
REFRESH_DELAY = 100


class Copier:
    """
    Copies a file within a file system while displaying the progress.
    """

    def __init__(
        self,
        file_system: FileSystem,
        source: str,
        target: str,
        mode: CopyMode,
        verify: bool,
    ):
        self._file_system = file_system
        self._source = source
        self._target = target
        self._mode = mode
        self._verify = verify

    def run(self, console: Console | None = None) -> CopyStatus:
        """
        Copy the file and return the final status of the copy.

        Raises:
            GridQError: If the copy cannot be started. Errors of the copy
                itself are embedded in the returned status.
        """
        copy = self._file_system.copy(
            self._source, self._target, self._mode, self._verify, asynchronous=True
        )
        logger.debug(f"Started copy '{copy.getUniqueId()}'.")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console or Console(stderr=True),
            transient=True,
        ) as progress:
            task = progress.add_task(f"{self._source} -> {self._target}", total=None)

            while not (status := self._file_system.getCopyStatus(copy)).isDone():
                Copier._update(progress, task, status)
                time.sleep(milliseconds_to_seconds(REFRESH_DELAY))

            Copier._update(progress, task, status)

        return status

    @staticmethod
    def _update(progress: Progress, task, status: CopyStatus) -> None:
        total = status.bytes_to_copy if status.bytes_to_copy >= 0 else None
        progress.update(task, total=total, completed=status.bytes_copied)

    @staticmethod
    def report(status: CopyStatus) -> int:
        """Log the outcome of the copy and return the exit code of the command."""
        if status.hasException():
            logger.error(status.getException())
            return CFG.exit_codes.default

        logger.info(
            f"Copied '{status.getCopy().getSource()}' to '{status.getCopy().getTarget()}' "
            f"({status.bytes_copied} bytes)."
        )
        return 0
