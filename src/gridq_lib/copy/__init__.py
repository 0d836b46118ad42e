# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Copying of files from the command line.

`Copier` starts an asynchronous copy on a file system and follows its
progress until the copy is done.
"""

from .copier import Copier

__all__ = ["Copier"]
