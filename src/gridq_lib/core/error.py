# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Exception types used throughout gridq.

All gridq errors derive from `GridQError`. An error optionally carries the name
of the adaptor that raised it, which is prepended to the message. Each exception
carries an associated exit code used by gridq commands to report failures consistently.

Errors raised inside the background threads of the schedulers and the copy engine
are never propagated on those threads. They are captured and embedded into the
corresponding job or copy status instead.
"""

from .config import CFG


class GridQError(Exception):
    """Common exception type for all recoverable gridq errors."""

    exit_code = CFG.exit_codes.default

    def __init__(self, message: str, adaptor_name: str | None = None):
        self.adaptor_name = adaptor_name
        self.message = message
        super().__init__(
            f"{adaptor_name} adaptor: {message}" if adaptor_name else message
        )


# ----------------------------
# JOB DESCRIPTIONS
# ----------------------------


class IncompleteJobDescriptionError(GridQError):
    """Raised when a job description lacks mandatory information (e.g., the executable)."""

    pass


class InvalidJobDescriptionError(GridQError):
    """Raised when a job description contains invalid values."""

    pass


# ----------------------------
# MISSING ENTITIES
# ----------------------------


class NoSuchJobError(GridQError):
    """Raised when a job is not known to the scheduler."""

    pass


class NoSuchQueueError(GridQError):
    """Raised when one or more queues do not exist."""

    pass


class NoSuchSchedulerError(GridQError):
    """Raised when a scheduler is unknown or has already been closed."""

    pass


class NoSuchCopyError(GridQError):
    """Raised when a copy is not known to the copy engine."""

    pass


class NoSuchPathError(GridQError):
    """Raised when a path does not exist."""

    pass


# ----------------------------
# FILES
# ----------------------------


class PathAlreadyExistsError(GridQError):
    """Raised when a target path exists and may not be overwritten."""

    pass


class IllegalSourcePathError(GridQError):
    """Raised when a source path cannot be used for the requested operation."""

    pass


class IllegalTargetPathError(GridQError):
    """Raised when a target path cannot be used for the requested operation."""

    pass


class InvalidResumeTargetError(GridQError):
    """Raised when the data in a resume target does not match the source."""

    pass


class CopyCancelledError(GridQError):
    """Captured when a copy was cancelled by the user."""

    pass


# ----------------------------
# CONFIGURATION
# ----------------------------


class InvalidLocationError(GridQError):
    """Raised when a location is not supported by an adaptor."""

    pass


class InvalidCredentialError(GridQError):
    """Raised when a credential is not supported by an adaptor."""

    pass


class UnknownPropertyError(GridQError):
    """Raised when an adaptor does not recognize a property."""

    pass


class InvalidPropertyError(GridQError):
    """Raised when a property has an invalid value."""

    pass


# ----------------------------
# EXECUTION
# ----------------------------


class JobCanceledError(GridQError):
    """Captured when a job was killed before it could finish."""

    pass


class CommandNotFoundError(GridQError):
    """Raised when an executable cannot be started."""

    pass


class IncompatibleVersionError(GridQError):
    """Raised when a batch system reports output of an unsupported version."""

    pass


class CommandFailedError(GridQError):
    """Raised when a command executed on behalf of a scheduler returns a non-zero exit code."""

    def __init__(
        self,
        message: str,
        adaptor_name: str | None = None,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command_exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message, adaptor_name)


# ----------------------------
# TRANSPORT
# ----------------------------


class TransportError(GridQError):
    """Common exception type for failures of the connection layer."""

    pass


class NotConnectedError(TransportError):
    """Raised when a connection could not be established or has been closed."""

    pass


class ConnectionLostError(TransportError):
    """Raised when an established connection drops."""

    pass


class PermissionDeniedError(TransportError):
    """Raised when the remote host refuses the authentication."""

    pass


class EndOfFileError(TransportError):
    """Raised when a stream ends unexpectedly."""

    pass
