# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Cancellation of jobs from the command line.
"""

from .canceller import Canceller

__all__ = ["Canceller"]
