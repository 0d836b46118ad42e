# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import yaml
from rich.console import Group
from rich.panel import Panel
from rich.text import Text
from tabulate import Line, TableFormat, tabulate

from gridq_lib.core.common import load_yaml_dumper
from gridq_lib.core.config import CFG
from gridq_lib.jobs import JobStatus

Dumper: type[yaml.Dumper] = load_yaml_dumper()


class StatusPresenter:
    """
    Present the statuses of a collection of jobs.
    """

    # Mapping of color names used in the configuration to ANSI escape codes.
    _ANSI_COLORS = {
        "default": "",
        "white": "\033[37m",
        "bright_red": "\033[91m",
        "bright_green": "\033[92m",
        "bright_blue": "\033[94m",
        "bright_magenta": "\033[95m",
        "bold": "\033[1m",
        "reset": "\033[0m",
    }

    # Table formatting configuration for `tabulate`.
    _COMPACT_TABLE = TableFormat(
        lineabove=Line("", "", "", ""),
        linebelowheader="",
        linebetweenrows="",
        linebelow=Line("", "", "", ""),
        headerrow=("", "  ", ""),
        datarow=("", "  ", ""),
        padding=0,
        with_header_hide=["lineabove", "linebelow"],
    )

    _HEADERS = ["Job ID", "State", "Exit", "Error"]

    def __init__(self, statuses: list[JobStatus]):
        self._statuses = statuses

    def createStatusPanel(self) -> Group:
        """
        Create a Rich panel with one row per job.
        """
        panel = Panel(
            Text.from_ansi(self._createTable()),
            title=Text("JOBS", style=CFG.presenter.title_style, justify="center"),
            border_style=CFG.presenter.border_style,
            padding=(1, 1),
            expand=False,
        )

        return Group(Text(""), panel, Text(""))

    def dumpYaml(self) -> None:
        """Print the YAML representation of all statuses to stdout."""
        for status in self._statuses:
            print(StatusPresenter.toYaml(status))

    @staticmethod
    def toYaml(status: JobStatus) -> str:
        data = {
            "job_id": status.getJob().getIdentifier(),
            "state": status.getState(),
            "running": status.isRunning(),
            "done": status.isDone(),
            "exit_code": status.getExitCode(),
            "error": str(status.getException()) if status.hasException() else None,
            "info": dict(status.scheduler_specific_info),
        }
        return yaml.dump(data, default_flow_style=False, sort_keys=False, Dumper=Dumper)

    def _createTable(self) -> str:
        headers = [
            StatusPresenter._color(h, "bold") for h in StatusPresenter._HEADERS
        ]
        rows = [StatusPresenter._createRow(status) for status in self._statuses]

        return tabulate(
            rows,
            headers=headers,
            tablefmt=StatusPresenter._COMPACT_TABLE,
            stralign="left",
        )

    @staticmethod
    def _createRow(status: JobStatus) -> list[str]:
        main = CFG.presenter.main_style.split()[0]

        return [
            StatusPresenter._color(status.getJob().getIdentifier(), main),
            StatusPresenter._color(
                status.getState(), StatusPresenter._stateColor(status)
            ),
            StatusPresenter._color(
                "" if status.getExitCode() is None else str(status.getExitCode()), main
            ),
            StatusPresenter._color(
                str(status.getException()) if status.hasException() else "",
                CFG.presenter.error_style,
            ),
        ]

    @staticmethod
    def _stateColor(status: JobStatus) -> str:
        if status.hasException():
            return CFG.presenter.error_style
        if status.isRunning():
            return CFG.presenter.running_style
        if status.isDone():
            return CFG.presenter.done_style
        return CFG.presenter.pending_style

    @staticmethod
    def _color(string: str, color: str) -> str:
        code = StatusPresenter._ANSI_COLORS.get(color, "")
        if not code or not string:
            return string

        return f"{code}{string}{StatusPresenter._ANSI_COLORS['reset']}"
