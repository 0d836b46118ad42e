# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Adaptor for the Slurm batch system.
"""

from .adaptor import SlurmAdaptor
from .connection import SlurmSchedulerConnection

__all__ = [
    "SlurmAdaptor",
    "SlurmSchedulerConnection",
]
