# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import posixpath
import shlex
import subprocess

from gridq_lib.batch.local.launcher import (
    LaunchedProcess,
    OutputReader,
    ProcessLauncher,
    Streams,
    kill_process,
)
from gridq_lib.batch.scripting.transport import Transport
from gridq_lib.core.error import CommandNotFoundError, GridQError, TransportError
from gridq_lib.core.logger import get_logger
from gridq_lib.jobs import JobDescription

logger = get_logger(__name__)


class SshProcess(LaunchedProcess):
    """A job running on a remote host, driven by local ssh clients."""

    def __init__(
        self,
        transport: Transport,
        clients: list[subprocess.Popen],
        remote_pids: list[str],
        readers: list[OutputReader] | None = None,
    ):
        self._transport = transport
        self._clients = clients
        self._remote_pids = remote_pids
        self._readers = readers or []

    def isAlive(self) -> bool:
        return any(c.poll() is None for c in self._clients)

    def exitValue(self) -> int:
        if self.isAlive():
            raise GridQError("Cannot get the exit code of a running process.", "ssh")

        for client in self._clients:
            if client.returncode != 0:
                return client.returncode

        return 0

    def destroy(self) -> None:
        if self._remote_pids:
            try:
                self._transport.execute(["kill", "-9", *self._remote_pids])
            except TransportError as e:
                logger.warning(f"Could not kill remote processes {self._remote_pids}: {e}")

        for client in self._clients:
            kill_process(client)
            client.wait()

    def getStreams(self, job_id: str) -> Streams:
        client = self._clients[0]
        if client.stdin is None or client.stdout is None or client.stderr is None:
            return super().getStreams(job_id)

        return Streams(job_id, client.stdin, client.stdout, client.stderr)


class SshProcessLauncher(ProcessLauncher):
    """
    Starts jobs on a remote host.

    Every process is started by its own ssh client sharing the connection of
    the transport. The remote shell reports its process id before replacing
    itself with the job, so the job can be killed on the remote side.
    """

    def __init__(self, transport: Transport):
        self._transport = transport

    def start(
        self, description: JobDescription, workdir: str, interactive: bool = False
    ) -> SshProcess:
        directory = SshProcessLauncher._resolve(workdir, description.working_directory)
        count = 1 if interactive else description.processes_per_node

        clients: list[subprocess.Popen] = []
        pids: list[str] = []
        readers: list[OutputReader] = []
        try:
            for _ in range(count):
                if interactive:
                    clients.append(self._startInteractive(description, directory))
                    continue

                client, pid = self._startBatch(description, directory)
                clients.append(client)
                pids.append(pid)
                readers.append(OutputReader(client.stderr))
        except GridQError:
            SshProcess(self._transport, clients, pids).destroy()
            raise

        return SshProcess(self._transport, clients, pids, readers)

    def _startBatch(
        self, description: JobDescription, directory: str
    ) -> tuple[subprocess.Popen, str]:
        script = SshProcessLauncher._command(description, directory, batch=True)
        logger.debug(f"Starting remote command '{script}'.")

        client = self._transport.popen(
            ["sh", "-c", script],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        pid = client.stdout.readline().decode(errors="replace").strip()  # ty: ignore[possibly-missing-attribute]
        if not pid.isdigit():
            _, stderr = client.communicate()
            raise CommandNotFoundError(
                f"Cannot start '{description.executable}' in '{directory}': "
                f"{stderr.decode(errors='replace').strip()}",
                "ssh",
            )

        return client, pid

    def _startInteractive(
        self, description: JobDescription, directory: str
    ) -> subprocess.Popen:
        script = SshProcessLauncher._command(description, directory, batch=False)
        return self._transport.popen(
            ["sh", "-c", script],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

    @staticmethod
    def _command(description: JobDescription, directory: str, batch: bool) -> str:
        """
        Return the remote shell command running the job.

        Batch commands print the process id of the job once the working directory
        has been entered and redirect all standard streams.
        """
        command = f"cd {shlex.quote(directory)} && "
        if batch:
            command += "echo $$ && "
        command += "exec"

        if description.environment:
            assignments = " ".join(
                shlex.quote(f"{k}={v}") for k, v in description.environment.items()
            )
            command += f" env {assignments}"

        command += " " + shlex.join(
            [description.executable or "", *description.arguments]
        )

        if batch:
            command += (
                f" < {shlex.quote(description.stdin or '/dev/null')}"
                f" > {shlex.quote(description.stdout or '/dev/null')}"
                f" 2> {shlex.quote(description.stderr or '/dev/null')}"
            )

        return command

    @staticmethod
    def _resolve(base: str, path: str | None) -> str:
        if not path:
            return base

        return path if posixpath.isabs(path) else posixpath.join(base, path)
