# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from enum import Enum
from typing import Self


class JobState(Enum):
    """
    State of a job managed by a job queue scheduler.

    A job moves from SUBMITTED to PENDING (waiting for a free slot in its queue),
    then to RUNNING, and finally to one of the terminal states DONE, KILLED, or ERROR.
    A pending job may also be killed directly.
    """

    SUBMITTED = 1
    PENDING = 2
    RUNNING = 3
    DONE = 4
    KILLED = 5
    ERROR = 6
    UNKNOWN = 7

    def __str__(self) -> str:
        """
        Return the uppercase name of the state.

        Returns:
            str: The name of the state.
        """
        return self.name

    @classmethod
    def fromStr(cls, s: str) -> Self:
        """
        Convert a string to the corresponding JobState enum variant.

        Args:
            s (str): String representation of the state (case-insensitive).

        Returns:
            JobState: Corresponding enum variant. Returns UNKNOWN if no match is found.
        """
        try:
            return cls[s.upper()]
        except KeyError:
            return cls.UNKNOWN

    def isDone(self) -> bool:
        """Return True if the state is terminal."""
        return self in {JobState.DONE, JobState.KILLED, JobState.ERROR}

    def isRunning(self) -> bool:
        return self == JobState.RUNNING
