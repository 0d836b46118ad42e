# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Self

import yaml

from gridq_lib.core.common import load_yaml_dumper, load_yaml_loader
from gridq_lib.core.error import (
    GridQError,
    IncompleteJobDescriptionError,
    InvalidJobDescriptionError,
)
from gridq_lib.core.logger import get_logger

logger = get_logger(__name__)

SafeLoader: type[yaml.SafeLoader] = load_yaml_loader()
Dumper: type[yaml.Dumper] = load_yaml_dumper()


@dataclass
class JobDescription:
    """
    Description of a job to submit to a scheduler.

    A description is treated as immutable once it has been submitted:
    schedulers keep a private copy of it.
    """

    # Path to the executable.
    executable: str | None = None

    # Command line arguments passed to the executable.
    arguments: list[str] = field(default_factory=list)

    # Environment variables set for the job.
    environment: dict[str, str] = field(default_factory=dict)

    # Working directory of the job. Relative paths are resolved against the scheduler's root.
    working_directory: str | None = None

    # File providing standard input of the job.
    stdin: str | None = None

    # File receiving standard output of the job.
    stdout: str | None = None

    # File receiving standard error output of the job.
    stderr: str | None = None

    # Name of the queue to submit the job to. None selects the default queue.
    queue_name: str | None = None

    # Number of nodes to allocate.
    node_count: int = 1

    # Number of processes to start on each node.
    processes_per_node: int = 1

    # Maximal run time of the job in minutes.
    max_runtime: int = 15

    # Should the job be executed interactively?
    interactive: bool = False

    # Options specific to a scheduler (e.g., a custom job script).
    job_options: dict[str, str] = field(default_factory=dict)

    def copy(self) -> Self:
        """Return a deep copy of this description."""
        return type(self)(
            executable=self.executable,
            arguments=list(self.arguments),
            environment=dict(self.environment),
            working_directory=self.working_directory,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
            queue_name=self.queue_name,
            node_count=self.node_count,
            processes_per_node=self.processes_per_node,
            max_runtime=self.max_runtime,
            interactive=self.interactive,
            job_options=dict(self.job_options),
        )

    @classmethod
    def fromFile(cls, file: Path) -> Self:
        """
        Load a job description from a YAML file.

        Args:
            file (Path): Path to the YAML file.

        Returns:
            JobDescription: The loaded description.

        Raises:
            GridQError: If the file does not exist, cannot be parsed,
                or contains unknown fields.
        """
        logger.debug(f"Loading job description from '{file}'.")
        if not file.is_file():
            raise GridQError(f"Job description file '{file}' does not exist.")

        try:
            with file.open("r") as input:
                data = yaml.load(input, Loader=SafeLoader)
        except yaml.YAMLError as e:
            raise GridQError(
                f"Could not parse the job description file '{file}': {e}."
            ) from e

        if not isinstance(data, dict):
            raise GridQError(f"Invalid job description file '{file}'.")

        return cls.fromDict(data)

    @classmethod
    def fromDict(cls, data: dict[str, object]) -> Self:
        """
        Construct a job description from a dictionary.

        Raises:
            GridQError: If the dictionary contains unknown fields.
        """
        known = {f.name for f in fields(cls)}
        if unknown := sorted(set(data) - known):
            raise GridQError(
                f"Unknown fields in job description: {', '.join(unknown)}."
            )

        description = cls(**data)  # ty: ignore[invalid-argument-type]
        # YAML may produce numbers for argument values
        description.arguments = [str(arg) for arg in description.arguments]
        description.environment = {
            str(k): str(v) for k, v in description.environment.items()
        }
        return description

    def toFile(self, file: Path) -> None:
        """
        Export the job description into a YAML file.

        Raises:
            GridQError: If the file cannot be written.
        """
        logger.debug(f"Exporting job description into '{file}'.")
        try:
            with file.open("w") as output:
                output.write(self.toYaml())
        except Exception as e:
            raise GridQError(f"Cannot create or write to file '{file}': {e}") from e

    def toYaml(self) -> str:
        """Return the YAML representation of the description. Empty fields are skipped."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == [] or value == {}:
                continue
            data[f.name] = value

        return yaml.dump(data, default_flow_style=False, sort_keys=False, Dumper=Dumper)


def verify_job_description(
    description: JobDescription, adaptor_name: str | None = None
) -> None:
    """
    Check the generic constraints of a job description.

    Args:
        description (JobDescription): The description to check.
        adaptor_name (str | None): Name of the adaptor performing the check.

    Raises:
        IncompleteJobDescriptionError: If the executable is missing.
        InvalidJobDescriptionError: If the node count, the number of processes per node,
            or the maximal run time is invalid.
    """
    if description.executable is None:
        raise IncompleteJobDescriptionError(
            "Executable missing in job description.", adaptor_name
        )

    if description.node_count < 1:
        raise InvalidJobDescriptionError(
            f"Illegal node count: {description.node_count}.", adaptor_name
        )

    if description.processes_per_node < 1:
        raise InvalidJobDescriptionError(
            f"Illegal processes per node count: {description.processes_per_node}.",
            adaptor_name,
        )

    if description.max_runtime <= 0:
        raise InvalidJobDescriptionError(
            f"Illegal maximum runtime: {description.max_runtime}.", adaptor_name
        )


def verify_job_options(
    options: dict[str, str], valid_options: list[str], adaptor_name: str | None = None
) -> None:
    """
    Check that all scheduler-specific job options are supported.

    Raises:
        InvalidJobDescriptionError: If an option is not supported.
    """
    for option in options:
        if option not in valid_options:
            raise InvalidJobDescriptionError(
                f"Given job option '{option}' not supported.", adaptor_name
            )
