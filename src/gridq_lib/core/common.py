# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
General utility functions for the gridq library.

This module provides helpers for YAML I/O, user prompts, parsing of scheduler
locations, path normalization, and formatting of sizes and durations.
"""

import posixpath
from datetime import timedelta
from functools import lru_cache
from urllib.parse import SplitResult, urlsplit

import readchar
import yaml
from rich.live import Live
from rich.text import Text

from .error import GridQError
from .logger import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def load_yaml_dumper() -> type[yaml.Dumper]:
    """Return the libyaml based dumper if PyYAML was built with it."""
    dumper = getattr(yaml, "CDumper", yaml.Dumper)
    logger.debug(f"Using YAML dumper '{dumper.__name__}'.")
    return dumper


@lru_cache(maxsize=1)
def load_yaml_loader() -> type[yaml.SafeLoader]:
    """Return the libyaml based safe loader if PyYAML was built with it."""
    loader = getattr(yaml, "CSafeLoader", yaml.SafeLoader)
    logger.debug(f"Using YAML loader '{loader.__name__}'.")
    return loader


def _prompt_line(question: str, answer: str | None) -> Text:
    line = Text("PROMPT", style="magenta") + Text(f"   {question} ", style="default")
    if answer is None:
        return line + Text("[y/N]", style="bold default")

    yes = Text("y", style="bold green" if answer == "y" else "bold default")
    no = Text("N", style="bold default" if answer == "y" else "bold red")
    return line + Text("[", style="bold default") + yes + Text("/") + no + Text("]")


def yes_or_no_prompt(prompt: str) -> bool:
    """
    Ask a yes/no question and wait for a single key press.

    Only 'y' (in any case) confirms. The answer is highlighted on the prompt line.
    """
    with Live(_prompt_line(prompt, None), refresh_per_second=1) as live:
        key = readchar.readkey().lower()
        live.update(_prompt_line(prompt, key))

    return key == "y"


def split_location(location: str | None) -> SplitResult:
    """
    Split a scheduler or file system location into its URI components.

    Locations without a scheme (e.g., 'host:22' or 'user@host') are interpreted
    as network locations. An empty or missing location results in empty components.

    Args:
        location (str | None): The location to split.

    Returns:
        SplitResult: The components of the location.
    """
    if not location:
        return urlsplit("")

    if "://" not in location:
        # bare paths are local, anything else names a host
        if location.startswith("/"):
            return urlsplit(f"file://{location}")
        return urlsplit(f"//{location}")

    return urlsplit(location)


def is_local_location(location: str | None) -> bool:
    """
    Return True if the location refers to the local machine.

    A location is local if it is empty, uses the 'local' or 'file' scheme,
    or names no host.
    """
    if not location:
        return True

    parts = split_location(location)
    if parts.scheme in {"local", "file"}:
        return True

    return not parts.hostname


def normalize_path(path: str) -> str:
    """
    Normalize a POSIX path, collapsing redundant separators and up-level references.

    Args:
        path (str): The path to normalize.

    Returns:
        str: The normalized path. An empty path is normalized to '.'.
    """
    return posixpath.normpath(path) if path else "."


def format_size(size: int) -> str:
    """
    Format a number of bytes as a human-readable string.

    Args:
        size (int): Number of bytes.

    Returns:
        str: Formatted size, e.g. '512 B', '3.4 kB', '1.2 MB'.
    """
    if size < 0:
        raise GridQError(f"Size cannot be negative: '{size}'.")

    value = float(size)
    for unit in ("B", "kB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024

    # unreachable
    return f"{size} B"


def format_duration(td: timedelta) -> str:
    """
    Format a timedelta object into a human-readable string.

    Only the non-zero components are included, e.g. '1h 5m 3s' or '42s'.

    Args:
        td (timedelta): The duration to format.

    Returns:
        str: The formatted duration.
    """
    total_seconds = int(td.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")

    return " ".join(parts)


def milliseconds_to_seconds(value: int | float) -> float:
    """Convert a delay given in milliseconds into seconds."""
    return value / 1000.0


def parse_remote_location(
    location: str | None,
) -> tuple[str | None, str | None, int | None, str]:
    """
    Split a location into host, user, port, and path.

    Args:
        location (str | None): Location such as 'user@host:22/path' or 'ssh://host'.

    Returns:
        tuple[str | None, str | None, int | None, str]: Host, user, port, and path.
            Missing components are None (empty string for the path).

    Raises:
        GridQError: If the port is not a valid number.
    """
    parts = split_location(location)
    try:
        port = parts.port
    except ValueError as e:
        raise GridQError(f"Invalid port in location '{location}'.") from e

    return parts.hostname, parts.username, port, parts.path
