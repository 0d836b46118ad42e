# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Starting native processes on behalf of the job queue scheduler.

A `ProcessLauncher` turns a job description into running OS processes and
returns a `LaunchedProcess` handle which the scheduler's poller uses to check
liveness, collect the exit code, and force-kill the job.
"""

import os
import signal
import subprocess
import threading
from abc import ABC, abstractmethod
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from gridq_lib.core.error import CommandNotFoundError, GridQError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

logger = get_logger(__name__)


class InputWriter(threading.Thread):
    """
    Write content to a stream in the background and close the stream afterwards.

    Used to feed standard input of a process without blocking the caller.
    """

    def __init__(self, content: bytes | str | None, destination: IO):
        if destination is None:
            raise GridQError("Destination of an input writer may not be None.")

        super().__init__(name="Input Writer", daemon=True)
        self._content = content.encode() if isinstance(content, str) else content
        self._destination = destination
        self._finished = threading.Event()
        self.start()

    def run(self) -> None:
        try:
            if self._content:
                self._destination.write(self._content)
        except OSError as e:
            logger.error(f"Cannot write content to stream: {e}")
        finally:
            try:
                self._destination.close()
            except OSError as e:
                logger.error(f"Cannot close input stream: {e}")
            self._finished.set()

    def isFinished(self) -> bool:
        return self._finished.is_set()

    def waitUntilFinished(self, timeout: float | None = None) -> bool:
        """Block until all content has been written. Returns False on timeout."""
        return self._finished.wait(timeout)


class OutputReader(threading.Thread):
    """
    Drain a stream in the background, collecting its content.

    Reading both output streams of a process concurrently prevents the process
    from blocking on a full pipe.
    """

    def __init__(self, source: IO):
        super().__init__(name="Output Reader", daemon=True)
        self._source = source
        self._chunks: list[bytes] = []
        self.start()

    def run(self) -> None:
        try:
            while chunk := self._source.read(4096):
                self._chunks.append(chunk)
        except (OSError, ValueError) as e:
            # ValueError is raised when the stream is closed under our hands
            logger.debug(f"Output reader stopped: {e}")

    def waitUntilFinished(self, timeout: float | None = None) -> None:
        self.join(timeout)

    def getResult(self) -> str:
        return b"".join(self._chunks).decode(errors="replace")


@dataclass
class Streams:
    """Standard streams of an interactive job."""

    # Identifier of the job the streams belong to.
    job_id: str

    # Writable standard input of the job.
    stdin: IO[bytes]

    # Readable standard output of the job.
    stdout: IO[bytes]

    # Readable standard error output of the job.
    stderr: IO[bytes]


class LaunchedProcess(ABC):
    """Handle of a process (or group of processes) started for one job."""

    @abstractmethod
    def isAlive(self) -> bool:
        """Return True while any process of the job is running."""

    @abstractmethod
    def exitValue(self) -> int:
        """
        Return the exit code of the job.

        Raises:
            GridQError: If the job is still running.
        """

    @abstractmethod
    def destroy(self) -> None:
        """Forcibly kill the job."""

    def getStreams(self, job_id: str) -> Streams:
        """
        Return the standard streams of an interactive job.

        Raises:
            GridQError: If the process was not started interactively.
        """
        raise GridQError(f"Job '{job_id}' was not started interactively.")


class ProcessLauncher(ABC):
    """Starts the processes of a job."""

    @abstractmethod
    def start(
        self, description: JobDescription, workdir: str, interactive: bool = False
    ) -> LaunchedProcess:
        """
        Start the processes described by the job description.

        Args:
            description (JobDescription): Description of the job.
            workdir (str): Default working directory, used to resolve relative paths.
            interactive (bool): Connect the standard streams of the job to pipes
                instead of the files named in the description.

        Raises:
            CommandNotFoundError: If the executable cannot be started.
        """


def kill_process(process: subprocess.Popen) -> None:
    """
    Forcibly kill a process together with its process group.

    Falls back to a plain terminate signal where process groups are not available
    or the group cannot be signalled.
    """
    if process.poll() is not None:
        return

    try:
        os.killpg(process.pid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group '{process.pid}'.")
    except (AttributeError, OSError) as e:
        logger.debug(f"Could not kill process group '{process.pid}': {e}.")
        process.terminate()


class LocalProcess(LaunchedProcess):
    """One or more identical local processes running one job."""

    def __init__(
        self,
        processes: list[subprocess.Popen],
        writers: list[InputWriter] | None = None,
    ):
        self._processes = processes
        self._writers = writers or []

    def isAlive(self) -> bool:
        return any(p.poll() is None for p in self._processes)

    def exitValue(self) -> int:
        if self.isAlive():
            raise GridQError("Cannot get the exit code of a running process.")

        for process in self._processes:
            if process.returncode != 0:
                return process.returncode

        return 0

    def destroy(self) -> None:
        for process in self._processes:
            kill_process(process)

        # reap the killed processes
        for process in self._processes:
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                logger.warning(f"Process '{process.pid}' did not terminate after SIGKILL.")

    def getStreams(self, job_id: str) -> Streams:
        process = self._processes[0]
        if process.stdin is None or process.stdout is None or process.stderr is None:
            return super().getStreams(job_id)

        return Streams(job_id, process.stdin, process.stdout, process.stderr)


class LocalProcessLauncher(ProcessLauncher):
    """
    Starts jobs as processes on the local machine.

    All processes of one job share the same output files, so their output is
    appended rather than overwritten. Every input the job needs is prepared
    before the first process starts.
    """

    def __init__(self, adaptor_name: str = "local"):
        self._adaptor_name = adaptor_name

    def start(
        self, description: JobDescription, workdir: str, interactive: bool = False
    ) -> LocalProcess:
        cwd = LocalProcessLauncher._resolve(workdir, description.working_directory)
        command = [description.executable or "", *description.arguments]
        env = os.environ | description.environment

        count = 1 if interactive else description.processes_per_node
        logger.debug(f"Starting {count} process(es) '{command}' in '{cwd}'.")

        processes: list[subprocess.Popen] = []
        writers: list[InputWriter] = []
        try:
            with ExitStack() as stack:
                if interactive:
                    content = None
                    streams = {
                        "stdin": subprocess.PIPE,
                        "stdout": subprocess.PIPE,
                        "stderr": subprocess.PIPE,
                    }
                else:
                    content, streams = LocalProcessLauncher._redirect(
                        cwd, description, stack
                    )

                # the output files are closed once all children hold their own copies
                for _ in range(count):
                    process = subprocess.Popen(
                        command, cwd=cwd, env=env, start_new_session=True, **streams
                    )
                    processes.append(process)
                    if content is not None:
                        writers.append(InputWriter(content, process.stdin))
        except (OSError, ValueError) as e:
            LocalProcess(processes, writers).destroy()
            raise CommandNotFoundError(
                f"Cannot start '{description.executable}' in '{cwd}': {e}",
                self._adaptor_name,
            ) from e

        return LocalProcess(processes, writers)

    @staticmethod
    def _redirect(
        cwd: Path, description: JobDescription, stack: ExitStack
    ) -> tuple[bytes | None, dict[str, Any]]:
        """
        Read the standard input of the job and open its output files.

        Returns the input content (None if the job has no input file) and the
        stream arguments for `subprocess.Popen`. An error output file equal to
        the output file shares its handle.
        """
        resolve = LocalProcessLauncher._resolve

        content = None
        stdin: Any = subprocess.DEVNULL
        if description.stdin:
            content = resolve(str(cwd), description.stdin).read_bytes()
            stdin = subprocess.PIPE

        stdout = LocalProcessLauncher._openOutput(cwd, description.stdout, stack)
        same_file = (
            description.stderr
            and description.stdout
            and resolve(str(cwd), description.stderr)
            == resolve(str(cwd), description.stdout)
        )
        if same_file:
            stderr = subprocess.STDOUT
        else:
            stderr = LocalProcessLauncher._openOutput(cwd, description.stderr, stack)

        return content, {"stdin": stdin, "stdout": stdout, "stderr": stderr}

    @staticmethod
    def _openOutput(cwd: Path, name: str | None, stack: ExitStack) -> Any:
        if not name:
            return subprocess.DEVNULL

        path = LocalProcessLauncher._resolve(str(cwd), name)
        return stack.enter_context(path.open("wb"))

    @staticmethod
    def _resolve(base: str, path: str | None) -> Path:
        if not path:
            return Path(base)

        return Path(base) / path if not Path(path).is_absolute() else Path(path)
