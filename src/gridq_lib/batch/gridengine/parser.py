# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Parsing of the XML output of `qstat -xml`.

Grid Engine changed its XML output between releases. Output is only accepted
if it declares the qstat schema of Grid Engine 6.2, unless the version check
is explicitly disabled.
"""

from io import BytesIO
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as DefusedET
from defusedxml import DefusedXmlException

from gridq_lib.core.error import GridQError, IncompatibleVersionError
from gridq_lib.core.logger import get_logger

logger = get_logger(__name__)

ADAPTOR_NAME = "gridengine"

SGE62_SCHEMA_VALUE = (
    "http://gridengine.sunsource.net/source/browse/*checkout*/gridengine/source/"
    "dist/util/resources/schemas/qstat/qstat.xsd?revision=1.11"
)


class GridEngineXmlParser:
    """Parser of job and queue listings produced by `qstat -xml`."""

    def __init__(self, ignore_version: bool = False):
        self._ignore_version = ignore_version

    def checkVersion(self, schema: str | None) -> None:
        """
        Check the schema declared by the output against the supported one.

        Raises:
            IncompatibleVersionError: If the schema is missing or unsupported
                and the version check is not ignored.
        """
        if schema == SGE62_SCHEMA_VALUE:
            return

        if self._ignore_version:
            logger.warning(
                f"Grid Engine reports unsupported schema '{schema}'. Ignoring, "
                "output may not be parsed correctly."
            )
            return

        if schema is None:
            raise IncompatibleVersionError(
                "Cannot determine version of Grid Engine: output declares no schema.",
                ADAPTOR_NAME,
            )

        raise IncompatibleVersionError(
            f"Grid Engine version is not supported. Found schema '{schema}', "
            f"expected '{SGE62_SCHEMA_VALUE}'.",
            ADAPTOR_NAME,
        )

    def parseJobInfos(self, text: str) -> dict[str, dict[str, str]]:
        """
        Parse the output of `qstat -xml` into job info keyed by job number.

        The long state of each job ('running', 'pending') is stored under
        'long_state', the state code ('r', 'qw', 'Eqw') under 'state'.

        Raises:
            GridQError: If the output is not valid XML or a job has no number.
        """
        root = self._parse(text)

        result: dict[str, dict[str, str]] = {}
        for element in root.iter("job_list"):
            info = _children_as_dict(element)
            if long_state := element.get("state"):
                info["long_state"] = long_state

            identifier = info.get("JB_job_number")
            if identifier is None:
                raise GridQError("Found job in qstat output without job number.", ADAPTOR_NAME)

            result[identifier] = info

        logger.debug(f"Parsed info of {len(result)} jobs.")
        return result

    def parseQueueInfos(self, text: str) -> dict[str, dict[str, str]]:
        """
        Parse the output of `qstat -g c -xml` into queue info keyed by queue name.

        Raises:
            GridQError: If the output is not valid XML or lists no queues.
        """
        root = self._parse(text)

        result: dict[str, dict[str, str]] = {}
        for element in root.iter("cluster_queue_summary"):
            info = _children_as_dict(element)
            name = info.get("name")
            if name is None:
                raise GridQError("Found queue in qstat output without name.", ADAPTOR_NAME)

            result[name] = info

        if not result:
            raise GridQError("Server seems to have no queues.", ADAPTOR_NAME)

        return result

    def _parse(self, text: str) -> Element:
        root: Element | None = None
        schema: str | None = None

        try:
            for event, item in DefusedET.iterparse(
                BytesIO(text.encode()), events=("start", "start-ns")
            ):
                if event == "start-ns":
                    prefix, uri = item
                    if prefix == "xsd" and root is None:
                        schema = uri
                elif root is None:
                    root = item
        except (DefusedET.ParseError, DefusedXmlException) as e:
            raise GridQError(f"Failed to parse qstat output: {e}", ADAPTOR_NAME) from e

        if root is None:
            raise GridQError("Failed to parse qstat output: no document.", ADAPTOR_NAME)

        self.checkVersion(schema)
        return root


def _children_as_dict(element: Element) -> dict[str, str]:
    return {
        child.tag: child.text.strip()
        for child in element
        if child.text is not None and child.text.strip()
    }
