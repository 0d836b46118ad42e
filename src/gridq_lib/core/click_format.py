# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Shared building blocks of the gridq command-line interface.

- `GNUHelpColorsCommand`: a click command printing its help in GNU style,
  one option per paragraph.
- `scheduler_options`: the options selecting an adaptor, a location and
  adaptor properties, shared by all commands talking to a scheduler.
- `parse_assignments`: conversion of repeated `KEY=VALUE` options into a dictionary.
"""

from collections.abc import Callable, Iterable

import click
from click import HelpFormatter
from click_help_colors import HelpColorsCommand
from click_option_group import optgroup

from .error import GridQError


class GNUHelpFormatter(HelpFormatter):
    """Help formatter with colored headings and options listed in GNU style."""

    def __init__(
        self,
        width: int | None = None,
        headers_color: str | None = None,
        options_color: str | None = None,
    ):
        super().__init__(width=width)
        self.headers_color = headers_color or "white"
        self.options_color = options_color or "white"

    def write_heading(self, heading: str) -> None:
        self.write(f"{click.style(heading, fg=self.headers_color, bold=True)}\n")

    def write_usage(self, prog: str, args: str = "", prefix: str | None = None) -> None:
        styled = click.style(prefix or "Usage:", fg=self.headers_color, bold=True)
        self.write(f"{styled} {prog} {args}".rstrip() + "\n")

    def write_dl(self, rows, col_max: int = 30, col_spacing: int = 2) -> None:
        for term, definition in rows:
            self.write(f"  {click.style(term, fg=self.options_color, bold=True)}\n")

            for line in (definition or "").splitlines():
                if line.strip():
                    self.write(f"      {line}\n")
            self.write("\n")


class GNUHelpColorsCommand(HelpColorsCommand):
    """Click command using `GNUHelpFormatter` for its help page."""

    def get_help(self, ctx: click.Context) -> str:
        formatter = GNUHelpFormatter(
            width=ctx.terminal_width,
            headers_color=getattr(self, "help_headers_color", None),
            options_color=getattr(self, "help_options_color", None),
        )
        self.format_help(ctx, formatter)
        return formatter.getvalue()


def scheduler_options(func: Callable) -> Callable:
    """
    Add the options selecting the scheduler to a command.

    The decorated command receives the `adaptor`, `location`, and `prop` arguments.
    """
    decorators = [
        optgroup.group(f"{click.style('Scheduler', fg='yellow')}"),
        optgroup.option(
            "--adaptor",
            "-a",
            type=str,
            default=None,
            help="Name of the adaptor (local, ssh, slurm, torque, gridengine). "
            "If not specified, it is selected from the scheme of the location.",
        ),
        optgroup.option(
            "--location",
            "--scheduler",
            "-l",
            type=str,
            default=None,
            help="Location of the scheduler, e.g., 'ssh://user@host', 'slurm://host'. "
            "Defaults to the local machine.",
        ),
        optgroup.option(
            "--prop",
            "-p",
            type=str,
            multiple=True,
            help="Adaptor property as 'KEY=VALUE'. Can be repeated.",
        ),
    ]

    # click applies decorators bottom-up
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def parse_assignments(values: Iterable[str], what: str = "property") -> dict[str, str]:
    """
    Convert options of the form 'KEY=VALUE' to a dictionary.

    Raises:
        GridQError: If a value contains no '=' or has an empty key.
    """
    result = {}
    for value in values:
        key, sep, assigned = value.partition("=")
        if not sep or not key.strip():
            raise GridQError(f"Invalid {what} '{value}'. Expected 'KEY=VALUE'.")
        result[key.strip()] = assigned

    return result
