# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from typing import TYPE_CHECKING

from .description import JobDescription

if TYPE_CHECKING:
    from gridq_lib.batch.scheduler import Scheduler


class Job:
    """
    Handle of a job submitted to a scheduler.

    The handle only references the job; the state of the job is owned by the
    scheduler and outlives the handle.
    """

    def __init__(
        self,
        scheduler: "Scheduler",
        identifier: str,
        description: JobDescription | None = None,
        interactive: bool = False,
        online: bool = False,
    ):
        """
        Initialize the job handle.

        Args:
            scheduler (Scheduler): The scheduler that created the job.
            identifier (str): Identifier assigned to the job by the scheduler.
            description (JobDescription | None): Description the job was submitted with.
                None for jobs discovered by listing a queue.
            interactive (bool): Is the job interactive? Interactive jobs are always online.
            online (bool): Does the job disappear when the submitting process exits?
        """
        self._scheduler = scheduler
        self._identifier = identifier
        self._description = description
        self._interactive = interactive
        self._online = online or interactive

    def getScheduler(self) -> "Scheduler":
        return self._scheduler

    def getIdentifier(self) -> str:
        return self._identifier

    def getJobDescription(self) -> JobDescription | None:
        return self._description

    def isInteractive(self) -> bool:
        return self._interactive

    def isOnline(self) -> bool:
        return self._online

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Job):
            return NotImplemented

        return (
            self._identifier == other._identifier
            and self._scheduler.getUniqueId() == other._scheduler.getUniqueId()
        )

    def __hash__(self) -> int:
        return hash((self._scheduler.getUniqueId(), self._identifier))

    def __repr__(self) -> str:
        return (
            f"Job(identifier={self._identifier!r}, scheduler={self._scheduler.getUniqueId()!r}, "
            f"interactive={self._interactive}, online={self._online})"
        )
