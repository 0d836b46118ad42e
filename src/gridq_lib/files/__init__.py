# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
File systems and the copy engine.
"""

from .copy import Copy, CopyInfo, CopyMode, CopyStatus
from .copy_engine import CopyEngine
from .filesystem import FileAttributes, FileSystem, OpenMode, OpenOption

__all__ = [
    "Copy",
    "CopyEngine",
    "CopyInfo",
    "CopyMode",
    "CopyStatus",
    "FileAttributes",
    "FileSystem",
    "OpenMode",
    "OpenOption",
]
