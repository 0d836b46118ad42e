# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Value objects describing jobs, their states, and the statuses reported by schedulers.
"""

from .description import JobDescription, verify_job_description, verify_job_options
from .job import Job
from .states import JobState
from .status import JobStatus, QueueStatus

__all__ = [
    "Job",
    "JobDescription",
    "JobState",
    "JobStatus",
    "QueueStatus",
    "verify_job_description",
    "verify_job_options",
]
