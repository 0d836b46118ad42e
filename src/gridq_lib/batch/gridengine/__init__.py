# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Adaptor for Sun/Oracle/Open Grid Engine batch systems.
"""

from .adaptor import GridEngineAdaptor
from .connection import GridEngineSchedulerConnection

__all__ = [
    "GridEngineAdaptor",
    "GridEngineSchedulerConnection",
]
