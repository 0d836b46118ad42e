# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Presentation of job statuses.

`StatusPresenter` renders the statuses reported by a scheduler as a compact
table inside a Rich panel, or as YAML for further processing.
"""

from .presenter import StatusPresenter

__all__ = ["StatusPresenter"]
