# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Core implementation of gridq, a uniform interface to job schedulers and file systems.

The library runs jobs as local processes, as processes of a remote machine
reached over ssh, or through the command-line tools of the Slurm, TORQUE and Grid Engine
batch systems. Backends are provided by adaptors registered in
`gridq_lib.batch.interface`; `Engine` is the entry point creating schedulers
and file systems. File systems carry a copy engine executing copies in the
background. All gridq CLI commands delegate to the functionality implemented here.
"""

from .engine import Engine
from .gridq import __version__, cli

__all__ = [
    "__version__",
    "cli",
    "Engine",
    "batch",
    "core",
    "files",
    "jobs",
]
