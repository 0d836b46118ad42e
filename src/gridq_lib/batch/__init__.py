# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Schedulers and the adaptors that create them.

- `Scheduler`: the interface shared by all schedulers.
- `interface`: the `Adaptor` interface and the registry of adaptors.
- `local`, `ssh`: job queue schedulers running processes on the local or a remote machine.
- `scripting`: the command-line substrate of batch system schedulers.
- `slurm`, `torque`, `gridengine`: schedulers driving the command-line tools of a batch system.
"""

from .scheduler import Scheduler

# import so that these adaptors are registered but do not export them from here
from .local import LocalAdaptor as _LocalAdaptor  # noqa: E402
from .ssh import SshAdaptor as _SshAdaptor  # noqa: E402
from .slurm import SlurmAdaptor as _SlurmAdaptor  # noqa: E402
from .torque import TorqueAdaptor as _TorqueAdaptor  # noqa: E402
from .gridengine import GridEngineAdaptor as _GridEngineAdaptor  # noqa: E402

_LocalAdaptor, _SshAdaptor, _SlurmAdaptor, _TorqueAdaptor, _GridEngineAdaptor

__all__ = ["Scheduler"]
