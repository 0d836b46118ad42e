# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import yaml
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gridq_lib.core.common import load_yaml_dumper
from gridq_lib.core.config import CFG
from gridq_lib.jobs import QueueStatus

Dumper: type[yaml.Dumper] = load_yaml_dumper()

DEFAULT_MARK = "*"


class QueuesPresenter:
    """
    Presents the statuses of the queues of a scheduler.
    """

    def __init__(self, statuses: list[QueueStatus], default_queue: str | None):
        """
        Args:
            statuses (list[QueueStatus]): Statuses of the queues to present.
            default_queue (str | None): Name of the default queue of the scheduler.
        """
        self._statuses = statuses
        self._default_queue = default_queue

    def dumpYaml(self) -> None:
        """
        Print the YAML representation of all queues to stdout.
        """
        for status in self._statuses:
            data = {
                "name": status.getQueueName(),
                "default": status.getQueueName() == self._default_queue,
                "error": str(status.getException()) if status.hasException() else None,
                "info": dict(status.scheduler_specific_info),
            }
            print(yaml.dump(data, default_flow_style=False, sort_keys=False, Dumper=Dumper))

    def createQueuesInfoPanel(self, title: str) -> Group:
        """
        Create a Rich panel displaying queue information.

        Args:
            title (str): Title of the panel, typically the location of the scheduler.
        """
        panel = Panel(
            self._createQueuesTable(),
            title=Text(title, style=CFG.presenter.title_style, justify="center"),
            border_style=CFG.presenter.border_style,
            padding=(1, 1),
            expand=False,
        )

        return Group(Text(""), panel, Text(""))

    def _createQueuesTable(self) -> Table:
        table = Table(show_header=True, box=None, padding=(0, 1))

        table.add_column(justify="left")
        for header in ("Name", "Details"):
            table.add_column(
                header=Text(header, justify="center", style=CFG.presenter.headers_style),
                justify="left",
            )

        for status in self._statuses:
            self._addQueueRow(status, table)

        return table

    def _addQueueRow(self, status: QueueStatus, table: Table) -> None:
        name = status.getQueueName()
        mark = DEFAULT_MARK if name == self._default_queue else ""

        if status.hasException():
            details = Text(str(status.getException()), style=CFG.presenter.error_style)
        else:
            details = Text(
                "  ".join(
                    f"{key}={value}"
                    for key, value in status.scheduler_specific_info.items()
                ),
                style=CFG.presenter.main_style,
            )

        table.add_row(
            Text(mark, style=CFG.presenter.done_style),
            Text(name, style=CFG.presenter.main_style),
            details,
        )
