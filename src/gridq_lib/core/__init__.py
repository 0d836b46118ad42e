# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Core infrastructure for gridq.

This module collects the foundational utilities used across the gridq codebase:
configuration, structured logging, the error taxonomy, typed adaptor properties,
retrying of connection attempts, and helpers for the command-line interface.
"""
