# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Pluggable adaptors for schedulers and file systems.

- `Adaptor`: the capability set every backend implements. It creates schedulers,
  file systems, and default credentials for the locations it supports, and declares
  the properties it understands.

- `AdaptorMeta`: a metaclass that registers the available adaptors and selects
  one by name or by the scheme of a location. The `@adaptor` decorator registers
  implementations automatically.
"""

from .adaptor import Adaptor
from .meta import AdaptorMeta, adaptor

__all__ = ["Adaptor", "AdaptorMeta", "adaptor"]
