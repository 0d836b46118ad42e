# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from pathlib import Path

from gridq_lib.core.error import GridQError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

logger = get_logger(__name__)

# suffixes identifying a job description file given instead of a command
DESCRIPTION_SUFFIXES = (".yaml", ".yml")


class SubmitterFactory:
    """
    Builds a job description from the command line of `gridq submit`.

    Values given on the command line take precedence over the values
    loaded from a job description file.
    """

    def __init__(self, command: tuple[str, ...], file: str | None, **kwargs):
        """
        Args:
            command (tuple[str, ...]): Executable followed by its arguments, or a single
                path to a job description file.
            file (str | None): Path to a job description file given explicitly.
            **kwargs: Values of the job options of `gridq submit`. None means unset.
        """
        self._command = command
        self._file = file
        self._kwargs = kwargs

    def makeDescription(self) -> JobDescription:
        """
        Create the job description.

        Raises:
            GridQError: If neither a command nor a job description file is given,
                or if the file cannot be loaded.
        """
        command = list(self._command)
        file = self._file

        # a lone YAML file in place of the command is a job description
        if (
            file is None
            and len(command) == 1
            and command[0].endswith(DESCRIPTION_SUFFIXES)
            and Path(command[0]).is_file()
        ):
            file = command.pop()

        if file is None and not command:
            raise GridQError("Nothing to submit. Specify a command or a job description file.")

        description = (
            JobDescription.fromFile(Path(file)) if file is not None else JobDescription()
        )

        if command:
            description.executable = command[0]
            description.arguments = command[1:]

        for name, value in self._kwargs.items():
            if value is None or value == {}:
                continue

            if isinstance(value, dict):
                # merge environment and job options with those from the file
                getattr(description, name).update(value)
            else:
                setattr(description, name, value)

        logger.debug(f"Job description to submit:\n{description.toYaml()}")
        return description
