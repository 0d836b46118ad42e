# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from gridq_lib.core.logger import get_logger

from .transport import CommandResult, Transport

logger = get_logger(__name__)


class RemoteCommandRunner:
    """
    Runs a single command through a transport and captures its result.

    The command is executed synchronously on construction. A non-zero exit code
    is never an error here; interpreting it is left to the caller.
    """

    def __init__(
        self,
        transport: Transport,
        adaptor_name: str,
        stdin: str | None,
        executable: str,
        *arguments: str,
    ):
        """
        Run the command.

        Args:
            transport (Transport): Transport executing the command.
            adaptor_name (str): Name of the adaptor running the command.
            stdin (str | None): Content passed to standard input of the command.
            executable (str): Command to run.
            *arguments (str): Arguments of the command.

        Raises:
            TransportError: If the transport fails.
            CommandNotFoundError: If a local command cannot be started.
        """
        self._adaptor_name = adaptor_name
        self._command = [executable, *arguments]
        self._result: CommandResult = transport.execute(self._command, stdin)

        logger.debug(
            f"Command '{' '.join(self._command)}' finished with exit code "
            f"'{self._result.exit_code}'."
        )

    def getCommand(self) -> list[str]:
        return list(self._command)

    def getExitCode(self) -> int:
        return self._result.exit_code

    def getStdout(self) -> str:
        return self._result.stdout

    def getStderr(self) -> str:
        return self._result.stderr

    def success(self) -> bool:
        """Return True if the command exited with zero and printed nothing to standard error."""
        return self._result.exit_code == 0 and not self._result.stderr

    def __str__(self) -> str:
        return (
            f"CommandRunner[command={' '.join(self._command)}, "
            f"exitCode={self._result.exit_code}, output={self._result.stdout!r}, "
            f"error={self._result.stderr!r}]"
        )
