# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Configuration system for gridq.

This module defines dataclasses representing all configurable aspects of gridq,
including environment variables, polling delays of the schedulers, settings of
the copy engine, SSH transport options, presentation settings, and exit codes.

The `Config` class loads user configuration from a TOML file (if available)
and provides a globally accessible `CFG` instance. Values set here are the
defaults; properties passed to an individual scheduler or file system override them.
"""

import os
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Self


@dataclass
class EnvironmentVariables:
    """Environment variable names used by gridq."""

    # Enables gridq debug mode.
    debug_mode: str = "GRIDQ_DEBUG"
    # Path to an explicit configuration file.
    config_file: str = "GRIDQ_CONFIG"


@dataclass
class LocalSchedulerSettings:
    """Settings for the local (and ssh) job queue scheduler."""

    # Delay (in milliseconds) between successive checks of running jobs.
    polling_delay: int = 1000
    # Number of finished jobs kept for status queries. -1 means unlimited.
    history_size: int = 1000
    # Maximal number of concurrently running jobs in the 'multi' queue.
    # If not set, the number of processors of the host is used.
    multi_max_concurrent: int | None = None


@dataclass
class ScriptingSettings:
    """Settings for schedulers driven by command-line tools of a batch system."""

    # Delay (in milliseconds) between successive job status polls.
    poll_delay: int = 1000


@dataclass
class CopySettings:
    """Settings for the copy engine."""

    # Size (in bytes) of a single chunk of transferred data.
    buffer_size: int = 4 * 1024
    # Maximal time (in milliseconds) the copy engine waits for new work before rechecking.
    polling_delay: int = 1000
    # Maximal number of finished copies kept until queried. 0 means unlimited.
    max_finished: int = 10000


@dataclass
class SSHSettings:
    """Settings for the OpenSSH based transport."""

    # Name of the ssh client binary.
    binary: str = "ssh"
    # Timeout for establishing an SSH connection in seconds.
    connect_timeout: int = 60
    # Number of attempts when establishing an SSH connection.
    connect_tries: int = 3
    # Wait time (in seconds) between connection attempts.
    connect_wait: int = 5
    # Exit code of ssh if the connection fails.
    fail_code: int = 255


@dataclass
class PresenterSettings:
    """Settings for presenting jobs, queues and copies."""

    # Style used for the title.
    title_style: str = "white bold"
    # Style used for border lines.
    border_style: str = "white"
    # Style used for table headers.
    headers_style: str = "default bold"
    # Style used for table values.
    main_style: str = "white"
    # Style used for errors embedded in statuses.
    error_style: str = "bright_red"
    # Style used for running jobs.
    running_style: str = "bright_blue"
    # Style used for jobs that are waiting in a queue.
    pending_style: str = "bright_magenta"
    # Style used for successfully finished jobs.
    done_style: str = "bright_green"


@dataclass
class DateFormats:
    """Date and time format strings."""

    # Standard date format used by gridq.
    standard: str = "%Y-%m-%d %H:%M:%S"


@dataclass
class ExitCodes:
    """Exit codes used for various errors."""

    # Default error code for failures of gridq commands.
    default: int = 91
    # Returned when a waited-for job finishes with an error.
    job_failed: int = 92
    # Returned on an unexpected or unhandled error.
    unexpected_error: int = 99


@dataclass
class Config:
    """Main configuration for gridq."""

    env_vars: EnvironmentVariables = field(default_factory=EnvironmentVariables)
    local: LocalSchedulerSettings = field(default_factory=LocalSchedulerSettings)
    scripting: ScriptingSettings = field(default_factory=ScriptingSettings)
    copy: CopySettings = field(default_factory=CopySettings)
    ssh: SSHSettings = field(default_factory=SSHSettings)
    presenter: PresenterSettings = field(default_factory=PresenterSettings)
    date_formats: DateFormats = field(default_factory=DateFormats)
    exit_codes: ExitCodes = field(default_factory=ExitCodes)

    # Name of the gridq binary.
    binary_name: str = "gridq"

    @classmethod
    def load(cls, config_path: Path | None = None) -> Self:
        """
        Read the configuration from a TOML file.

        Without an explicit `config_path`, the first existing file among
        `Config._find_config_file` candidates is used. Keys missing in the
        file keep their defaults. If no file exists, the defaults are returned.

        Raises:
            ValueError: If the file cannot be read or parsed.
        """
        path = config_path or cls._find_config_file()
        if path is None or not path.exists():
            return cls()

        try:
            with path.open("rb") as f:
                return _from_mapping(cls, tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError, TypeError) as e:
            raise ValueError(f"Could not read gridq config '{path}': {e}.") from e

    @staticmethod
    def _find_config_file() -> Path | None:
        """
        Locate a gridq configuration file.

        Searched in order: the file named by the GRIDQ_CONFIG variable,
        'gridq_config.toml' in the working directory and 'gridq/config.toml'
        in the XDG config home.
        """
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
        explicit = os.environ.get(EnvironmentVariables.config_file)

        candidates = [
            Path(explicit) if explicit else None,
            Path.cwd() / "gridq_config.toml",
            xdg_home / "gridq" / "config.toml",
        ]
        return next((p for p in candidates if p is not None and p.is_file()), None)


def _from_mapping(cls, data: dict[str, Any]):
    """
    Build the dataclass `cls` from a (possibly nested) mapping.

    Unknown keys are ignored. Non-dataclass types get `data` back unchanged.
    """
    if not is_dataclass(cls):
        return data

    values = {}
    for f in fields(cls):
        if f.name not in data:
            continue

        value = data[f.name]
        if is_dataclass(f.type) and isinstance(value, dict):
            value = _from_mapping(f.type, value)
        values[f.name] = value

    return cls(**values)


# Global configuration for gridq.
CFG = Config.load()
