# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Local backend for gridq: jobs run as processes of the local machine.

It provides:

- `JobQueueScheduler`, an in-process scheduler with the queues 'single',
  'multi', and 'unlimited', polling its jobs from a background thread.

- `LocalProcessLauncher`, starting the processes of a job, including
  several identical processes for multi-process jobs.

- `LocalAdaptor`, creating local schedulers and file systems.
"""

from .adaptor import LocalAdaptor
from .launcher import LocalProcessLauncher, ProcessLauncher
from .scheduler import JobQueueScheduler

__all__ = [
    "JobQueueScheduler",
    "LocalAdaptor",
    "LocalProcessLauncher",
    "ProcessLauncher",
]
