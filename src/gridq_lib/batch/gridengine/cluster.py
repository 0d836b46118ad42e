# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Queues and parallel environments of a Grid Engine cluster, read with `qconf`.

Grid Engine allocates slots rather than nodes. The number of slots needed
for a multi-node job depends on the allocation rule of the parallel
environment and on the number of slots per node of the queue.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gridq_lib.core.error import GridQError, InvalidJobDescriptionError
from gridq_lib.core.logger import get_logger

from ..scripting.parser import WHITESPACE_REGEX, parse_key_value_lines, parse_list
from .parser import ADAPTOR_NAME

if TYPE_CHECKING:
    from .connection import GridEngineSchedulerConnection

logger = get_logger(__name__)

# lines of qconf output ending with a backslash continue on the next line
CONTINUATION_REGEX = re.compile(r"\\\n\s*")


def parse_qconf_output(text: str) -> dict[str, str]:
    """Parse the 'key value' lines printed by `qconf -sq` and `qconf -sp`."""
    return parse_key_value_lines(
        CONTINUATION_REGEX.sub(" ", text), WHITESPACE_REGEX, ADAPTOR_NAME
    )


def _leading_int(value: str, what: str) -> int:
    # slots of a queue may be followed by per-host overrides: '4,[node1=8]'
    raw = value.split(",", 1)[0].strip()
    try:
        return int(raw)
    except ValueError as e:
        raise GridQError(f"Cannot parse {what}, got '{value}'.", ADAPTOR_NAME) from e


@dataclass(frozen=True)
class QueueInfo:
    """Slots and parallel environments of a cluster queue."""

    name: str
    slots: int
    parallel_environments: tuple[str, ...] = ()

    @classmethod
    def fromInfo(cls, info: dict[str, str]) -> "QueueInfo":
        """
        Create the queue info from parsed `qconf -sq` output.

        Raises:
            GridQError: If the name, slots, or parallel environments are missing or invalid.
        """
        name = info.get("qname")
        if name is None:
            raise GridQError("Cannot find name of queue in output.", ADAPTOR_NAME)

        if (slots := info.get("slots")) is None:
            raise GridQError(f"Cannot find slots for queue '{name}'.", ADAPTOR_NAME)

        if (pe_list := info.get("pe_list")) is None:
            raise GridQError(
                f"Cannot find parallel environments for queue '{name}'.", ADAPTOR_NAME
            )

        environments = () if pe_list == "NONE" else tuple(pe_list.replace(",", " ").split())
        return cls(name, _leading_int(slots, f"slots for queue '{name}'"), environments)


@dataclass(frozen=True)
class ParallelEnvironmentInfo:
    """Slots and allocation rule of a parallel environment."""

    name: str
    slots: int
    allocation_rule: str

    @classmethod
    def fromInfo(cls, info: dict[str, str]) -> "ParallelEnvironmentInfo":
        """
        Create the parallel environment info from parsed `qconf -sp` output.

        Raises:
            GridQError: If the name, slots, or allocation rule are missing or invalid.
        """
        name = info.get("pe_name")
        if name is None:
            raise GridQError(
                "Cannot find name of parallel environment in output.", ADAPTOR_NAME
            )

        slots = info.get("slots")
        rule = info.get("allocation_rule")
        if slots is None or rule is None:
            raise GridQError(
                f"Cannot find slots or allocation rule of parallel environment '{name}'.",
                ADAPTOR_NAME,
            )

        return cls(name, _leading_int(slots, f"slots for parallel environment '{name}'"), rule)


class GridEngineSetup:
    """
    Queues and parallel environments of the cluster, read once on connection.

    Attributes:
        queues (dict[str, QueueInfo]): Queues keyed by name.
        parallel_environments (dict[str, ParallelEnvironmentInfo]): Parallel environments keyed by name.
    """

    def __init__(self, connection: "GridEngineSchedulerConnection"):
        self.queues: dict[str, QueueInfo] = {}
        for name in parse_list(connection.runCheckedCommand(None, "qconf", "-sql")):
            output = connection.runCheckedCommand(None, "qconf", "-sq", name)
            self.queues[name] = QueueInfo.fromInfo(parse_qconf_output(output))

        self.parallel_environments: dict[str, ParallelEnvironmentInfo] = {}
        runner = connection.runCommand(None, "qconf", "-spl")
        # qconf fails if no parallel environment is configured
        if runner.getExitCode() != 0:
            logger.debug(f"No parallel environments found: {runner}")
            return

        for name in parse_list(runner.getStdout()):
            output = connection.runCheckedCommand(None, "qconf", "-sp", name)
            self.parallel_environments[name] = ParallelEnvironmentInfo.fromInfo(
                parse_qconf_output(output)
            )

        logger.debug(
            f"Found queues {list(self.queues)} and parallel environments "
            f"{list(self.parallel_environments)}."
        )

    def getQueueNames(self) -> list[str]:
        return list(self.queues)

    def calculateSlots(
        self, parallel_environment: str, queue_name: str | None, node_count: int
    ) -> int:
        """
        Return the number of slots to request for a job running on `node_count` nodes.

        Raises:
            InvalidJobDescriptionError: If the parallel environment is unknown, or
                its allocation rule requires a queue that is missing, unknown,
                or not configured for the parallel environment.
        """
        pe = self.parallel_environments.get(parallel_environment)
        if pe is None:
            raise InvalidJobDescriptionError(
                f"Requested parallel environment '{parallel_environment}' cannot be found at server.",
                ADAPTOR_NAME,
            )

        # an integer allocation rule is a fixed number of slots per node
        if pe.allocation_rule.isdigit():
            return int(pe.allocation_rule) * node_count

        if queue_name is None:
            raise InvalidJobDescriptionError(
                f"Parallel environment '{pe.name}' uses allocation rule "
                f"'{pe.allocation_rule}', which requires a queue.",
                ADAPTOR_NAME,
            )

        queue = self.queues.get(queue_name)
        if queue is None:
            raise InvalidJobDescriptionError(
                f"Cannot find queue '{queue_name}' to calculate slots.", ADAPTOR_NAME
            )

        if pe.name not in queue.parallel_environments:
            raise InvalidJobDescriptionError(
                f"Parallel environment '{pe.name}' is not available in queue '{queue_name}'.",
                ADAPTOR_NAME,
            )

        if pe.allocation_rule == "$pe_slots" and node_count != 1:
            raise InvalidJobDescriptionError(
                f"Parallel environment '{pe.name}' only supports jobs on a single node.",
                ADAPTOR_NAME,
            )

        return queue.slots * node_count
