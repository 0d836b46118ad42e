# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Support for schedulers controlled through the command-line tools of a batch system.

The tools are executed through a `Transport`, either locally or on a remote
host over ssh, and their output is interpreted by the functions of the
`parser` module.
"""

from .connection import SchedulerConnection
from .runner import RemoteCommandRunner
from .scheduler import ScriptingScheduler
from .transport import CommandResult, LocalTransport, SshTransport, Transport

__all__ = [
    "CommandResult",
    "LocalTransport",
    "RemoteCommandRunner",
    "SchedulerConnection",
    "ScriptingScheduler",
    "SshTransport",
    "Transport",
]
