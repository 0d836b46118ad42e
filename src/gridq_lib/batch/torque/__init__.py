# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Adaptor for the TORQUE batch system.
"""

from .adaptor import TorqueAdaptor
from .connection import TorqueSchedulerConnection

__all__ = [
    "TorqueAdaptor",
    "TorqueSchedulerConnection",
]
