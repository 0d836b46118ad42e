# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Presentation of the queues of a scheduler.

`QueuesPresenter` turns the queue statuses reported by a scheduler into a Rich
panel, marking the default queue and showing the scheduler-specific details
and the errors of queues whose status could not be obtained.
"""

from .presenter import QueuesPresenter

__all__ = [
    "QueuesPresenter",
]
