# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
SSH backend for gridq: jobs run as processes of a remote machine.

The remote machine is reached through the OpenSSH client. Jobs are queued
by the same job queue scheduler as local jobs; only the launcher differs.
"""

from .adaptor import SshAdaptor
from .launcher import SshProcessLauncher
from .scheduler import SshJobQueueScheduler

__all__ = [
    "SshAdaptor",
    "SshJobQueueScheduler",
    "SshProcessLauncher",
]
