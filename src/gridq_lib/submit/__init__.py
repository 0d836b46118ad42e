# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Submission of jobs from the command line.

`SubmitterFactory` merges a job description loaded from a YAML file with the
command-line options and the command to execute. `Submitter` hands the
resulting description to a scheduler and optionally waits for the job.
"""

from .factory import SubmitterFactory
from .submitter import Submitter

__all__ = ["SubmitterFactory", "Submitter"]
