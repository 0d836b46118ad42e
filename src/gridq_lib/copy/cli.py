# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import sys
from typing import NoReturn

import click
from click_option_group import optgroup

from gridq_lib.core.click_format import GNUHelpColorsCommand, parse_assignments
from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError
from gridq_lib.core.logger import get_logger
from gridq_lib.engine import Engine
from gridq_lib.files import CopyMode

from .copier import Copier

logger = get_logger(__name__)


@click.command(
    short_help="Copy a file.",
    help=f"""Copy a file within a file system.

{click.style("SOURCE", fg="green")}   Path to the file to copy.
{click.style("TARGET", fg="green")}   Path to the copy.

Relative paths are resolved against the working directory of the file system.

Modes:
  create    fail if the target exists (default)
  replace   overwrite the target
  ignore    leave an existing target untouched
  append    append the source to the target
  resume    append the missing tail of the source to the target""",
    cls=GNUHelpColorsCommand,
    help_options_color="bright_blue",
)
@click.argument("source", type=str, metavar=click.style("SOURCE", fg="green"))
@click.argument("target", type=str, metavar=click.style("TARGET", fg="green"))
@optgroup.group(f"{click.style('File system', fg='yellow')}")
@optgroup.option(
    "--location",
    "-l",
    type=str,
    default=None,
    help="Location of the file system, e.g., 'ssh://user@host'. Defaults to the local machine.",
)
@optgroup.option(
    "--prop",
    "-p",
    type=str,
    multiple=True,
    help="Adaptor property as 'KEY=VALUE'. Can be repeated.",
)
@optgroup.group(f"{click.style('Copy', fg='yellow')}")
@optgroup.option(
    "--mode",
    "-m",
    type=click.Choice([str(mode) for mode in CopyMode], case_sensitive=False),
    default=str(CopyMode.CREATE),
    help="How to treat an existing target.",
)
@optgroup.option(
    "--verify",
    is_flag=True,
    help="Check that the data already in the target match the source. Only for 'resume'.",
)
def copy(
    source: str,
    target: str,
    location: str | None,
    prop: tuple[str, ...],
    mode: str,
    verify: bool,
) -> NoReturn:
    try:
        with Engine() as engine:
            file_system = engine.newFileSystem(
                None, location, None, parse_assignments(prop)
            )
            copier = Copier(file_system, source, target, CopyMode.fromStr(mode), verify)
            status = copier.run()

        sys.exit(Copier.report(status))
    except GridQError as e:
        logger.error(e)
        sys.exit(CFG.exit_codes.default)
    except Exception as e:
        logger.critical(e, exc_info=True, stack_info=True)
        sys.exit(CFG.exit_codes.unexpected_error)
