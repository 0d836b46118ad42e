# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import subprocess

import pytest

from gridq_lib.batch.scripting.transport import CommandResult, Transport


class FakeTransport(Transport):
    """
    Transport answering commands with canned results.

    Results are registered per executable, optionally narrowed down by the
    first argument (e.g. 'scontrol show'). Unregistered commands succeed
    without output. Every executed command is recorded.
    """

    def __init__(self, local: bool = True):
        super().__init__("test")
        self.local = local
        self.connected = False
        self.commands: list[tuple[list[str], str | None]] = []
        self._responses: dict[tuple[str, ...], object] = {}

    def respond(
        self,
        *command: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        handler=None,
    ) -> None:
        self._responses[command] = handler or CommandResult(exit_code, stdout, stderr)

    def connect(self) -> None:
        self.connected = True

    def execute(self, command: list[str], stdin: str | None = None) -> CommandResult:
        self.commands.append((list(command), stdin))

        for key in (tuple(command[:2]), tuple(command[:1])):
            if key in self._responses:
                response = self._responses[key]
                if callable(response):
                    return response(command, stdin)
                return response  # ty: ignore[invalid-return-type]

        return CommandResult(0, "", "")

    def popen(self, command: list[str], **kwargs) -> subprocess.Popen:
        return subprocess.Popen(command, **kwargs)

    def close(self) -> None:
        self.connected = False

    def isConnected(self) -> bool:
        return self.connected

    def isLocal(self) -> bool:
        return self.local

    def executed(self, executable: str) -> list[list[str]]:
        """Return all executed command lines starting with the executable."""
        return [command for command, _ in self.commands if command[0] == executable]


@pytest.fixture
def transport():
    return FakeTransport()
