# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Parsing of the textual output of batch system command-line tools.

All functions raise `GridQError` when the output does not have the expected
structure, since that usually means the batch system is not the one the
scheduler connection expects.
"""

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from gridq_lib.core.error import GridQError
from gridq_lib.core.logger import get_logger

if TYPE_CHECKING:
    from gridq_lib.jobs import Job

logger = get_logger(__name__)

WHITESPACE_REGEX = re.compile(r"\s+")
EQUALS_REGEX = re.compile(r"\s*=\s*")
BAR_REGEX = re.compile(r"\s*\|\s*")
# lines consisting of '-' or '=' only separate the header of a table from its records
HORIZONTAL_LINE_REGEX = re.compile(r"^[\s\-=+]+$")


def contains_any(line: str, *options: str) -> bool:
    """Return True if the line contains any of the options."""
    return any(option in line for option in options)


def clean_value(value: str, *suffixes: str) -> str:
    """Strip the value and remove at most one of the suffixes from its end."""
    value = value.strip()
    for suffix in suffixes:
        if suffix and value.endswith(suffix):
            return value[: -len(suffix)]

    return value


def parse_key_value_pairs(
    text: str, adaptor_name: str, *ignored_lines: str
) -> dict[str, str]:
    """
    Parse whitespace separated 'key=value' pairs spread over any number of lines.

    Args:
        text (str): Output to parse.
        adaptor_name (str): Name of the adaptor used in error messages.
        *ignored_lines (str): Lines containing any of these strings are skipped.

    Returns:
        dict[str, str]: Dictionary mapping keys to values.

    Raises:
        GridQError: If a token is not a 'key=value' pair.
    """
    result: dict[str, str] = {}

    for line in text.splitlines():
        if contains_any(line, *ignored_lines):
            continue

        for pair in line.split():
            if "=" not in pair:
                raise GridQError(
                    f"Got invalid key/value pair in output: '{pair}'.", adaptor_name
                )

            key, value = pair.split("=", 1)
            result[key.strip()] = value.strip()

    logger.debug(f"Parsed key/value pairs: {result}.")
    return result


def parse_key_value_lines(
    text: str, separator: re.Pattern, adaptor_name: str, *ignored_lines: str
) -> dict[str, str]:
    """
    Parse output containing a single key/value pair per line.

    Empty lines and lines containing any of `ignored_lines` are skipped.

    Raises:
        GridQError: If a line does not contain a key and a value.
    """
    result: dict[str, str] = {}

    for line in text.splitlines():
        if not line.strip() or contains_any(line, *ignored_lines):
            continue

        pair = separator.split(line.strip(), maxsplit=1)
        if len(pair) != 2:
            raise GridQError(
                f"Got invalid key/value line in output: '{line}'.", adaptor_name
            )

        result[pair[0]] = pair[1]

    return result


def _split_fields(line: str, separator: re.Pattern) -> list[str]:
    fields = separator.split(line.strip())
    # trailing separators do not open a new field
    while fields and fields[-1] == "":
        fields.pop()

    return fields


def parse_table(
    text: str,
    key_field: str,
    separator: re.Pattern,
    adaptor_name: str,
    *value_suffixes: str,
) -> dict[str, dict[str, str]]:
    """
    Parse a table with a header line into a dictionary of records.

    Horizontal separator lines (e.g. '-----') are skipped. Each value is
    stripped of at most one of `value_suffixes`.

    Args:
        text (str): Output to parse.
        key_field (str): Header field whose value identifies a record.
        separator (re.Pattern): Separator of the fields.
        adaptor_name (str): Name of the adaptor used in error messages.
        *value_suffixes (str): Suffixes removed from the values.

    Returns:
        dict[str, dict[str, str]]: Records indexed by the value of their key field.

    Raises:
        GridQError: If the table is empty, the header is malformed, the key field
            is missing, or a record does not match the header.
    """
    lines = [
        line
        for line in text.splitlines()
        if line.strip() and not HORIZONTAL_LINE_REGEX.match(line)
    ]

    if not lines:
        raise GridQError("Cannot parse table, got no input.", adaptor_name)

    header = _split_fields(lines[0], separator)
    if any(not field for field in header):
        raise GridQError(
            f"Output contains an empty field in the header: '{lines[0]}'.", adaptor_name
        )

    if key_field not in header:
        raise GridQError(
            f"Output does not contain the required field '{key_field}'.", adaptor_name
        )

    result: dict[str, dict[str, str]] = {}
    for line in lines[1:]:
        values = _split_fields(line, separator)
        if len(values) != len(header):
            raise GridQError(
                f"Expected {len(header)} fields in output, got line with "
                f"{len(values)} fields: '{line}'.",
                adaptor_name,
            )

        record = {
            field: clean_value(value, *value_suffixes)
            for field, value in zip(header, values)
        }
        result[record[key_field]] = record

    logger.debug(f"Parsed table with {len(result)} records.")
    return result


def parse_list(text: str) -> list[str]:
    """Return the non-empty whitespace separated tokens of the output."""
    return text.split()


def parse_job_id_from_line(text: str, adaptor_name: str, *prefixes: str) -> str:
    """
    Extract the job identifier following one of the prefixes.

    The output is expected to be a single line such as 'Submitted batch job 1234'.
    An empty prefix matches any line, taking its first token as the identifier.

    Raises:
        GridQError: If no prefix matches or no identifier follows the prefix.
    """
    line = text.strip()

    for prefix in prefixes:
        if not line.startswith(prefix):
            continue

        rest = line[len(prefix) :].split()
        if not rest:
            raise GridQError(
                f"Failed to get job identifier from line: '{line}'.", adaptor_name
            )

        return rest[0]

    raise GridQError(
        f"Failed to get job identifier from line: '{line}'. "
        f"Line did not start with any of: {', '.join(repr(p) for p in prefixes)}.",
        adaptor_name,
    )


def verify_job_info(
    job_info: dict[str, str] | None,
    job: "Job",
    adaptor_name: str,
    job_id_field: str,
    *additional_fields: str,
) -> None:
    """
    Check that the job info belongs to the job and contains the mandatory fields.

    Raises:
        GridQError: If the info is missing, belongs to another job, or lacks a field.
    """
    identifier = job.getIdentifier()
    if job_info is None:
        raise GridQError(f"Job '{identifier}' not found in job info.", adaptor_name)

    found = job_info.get(job_id_field)
    if found is None:
        raise GridQError("Invalid job info. Info does not contain job id.", adaptor_name)

    if found != identifier:
        raise GridQError(
            f"Invalid job info. Found job id '{found}' does not match '{identifier}'.",
            adaptor_name,
        )

    for field in additional_fields:
        if field not in job_info:
            raise GridQError(
                f"Invalid job info. Info does not contain mandatory field '{field}'.",
                adaptor_name,
            )


def identifiers_as_cs_list(jobs: Iterable["Job | None"]) -> str:
    """Return the identifiers of the jobs as a comma separated list, skipping None."""
    return ",".join(job.getIdentifier() for job in jobs if job is not None)


def parse_dump_blocks(text: str, keyword: str) -> dict[str, dict[str, str]]:
    """
    Parse a PBS-style dump describing several objects into dictionaries.

    Each object starts with a line '<keyword>: <identifier>' followed by
    'key = value' lines. Continuation lines (indented lines without ' = ')
    are appended to the previous value.

    Raises:
        GridQError: If an attribute line precedes the first identifier line.
    """
    result: dict[str, dict[str, str]] = {}
    pattern = re.compile(rf"^\s*{re.escape(keyword)}:\s*(.*)$")
    current: dict[str, str] | None = None
    last_key: str | None = None

    for line in text.splitlines():
        if not line.strip():
            continue

        if m := pattern.match(line):
            current = {}
            last_key = None
            result[m.group(1).strip()] = current
            continue

        if current is None:
            raise GridQError(f"Invalid dump format. Unexpected line:\n{line}")

        if " = " in line:
            key, value = line.split(" = ", 1)
            last_key = key.strip()
            current[last_key] = value.strip()
        elif last_key is not None:
            current[last_key] += line.strip()

    logger.debug(f"Detected and parsed metadata for {len(result)} objects.")
    return result
