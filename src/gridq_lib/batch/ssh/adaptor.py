# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Mapping

from gridq_lib.batch.interface import Adaptor, AdaptorMeta, adaptor
from gridq_lib.batch.scripting.transport import SshTransport
from gridq_lib.core.common import parse_remote_location
from gridq_lib.core.config import CFG
from gridq_lib.core.error import GridQError, InvalidLocationError
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import Properties, PropertyDescription, PropertyType
from gridq_lib.credentials import CertificateCredential, Credential, DefaultCredential
from gridq_lib.files.ssh import SshFileSystem

from .launcher import SshProcessLauncher
from .scheduler import SshJobQueueScheduler

logger = get_logger(__name__)

PREFIX = "gridq.adaptors.ssh."
POLLING_DELAY = PREFIX + "queue.pollingDelay"
MULTI_MAX_CONCURRENT = PREFIX + "queue.multi.maxConcurrentJobs"
HISTORY_SIZE = PREFIX + "queue.historySize"
CONNECTION_TIMEOUT = PREFIX + "connection.timeout"

# number of concurrent jobs in the 'multi' queue of a remote host
DEFAULT_MULTI_MAX_CONCURRENT = 4


@adaptor
class SshAdaptor(Adaptor, metaclass=AdaptorMeta):
    def name() -> str:
        return "ssh"

    def description() -> str:
        return "Runs jobs as processes and accesses files on a remote machine using ssh."

    def schemes() -> list[str]:
        return ["ssh", "sftp"]

    def locations() -> list[str]:
        return ["host", "user@host:port", "ssh://user@host:port/path/to/workdir"]

    def supportedProperties() -> list[PropertyDescription]:
        return [
            PropertyDescription(
                POLLING_DELAY,
                PropertyType.INTEGER,
                str(CFG.local.polling_delay),
                "Delay between checks of running jobs in milliseconds.",
            ),
            PropertyDescription(
                MULTI_MAX_CONCURRENT,
                PropertyType.INTEGER,
                str(DEFAULT_MULTI_MAX_CONCURRENT),
                "Maximal number of concurrently running jobs in the 'multi' queue.",
            ),
            PropertyDescription(
                HISTORY_SIZE,
                PropertyType.INTEGER,
                str(CFG.local.history_size),
                "Number of finished jobs kept for status queries. -1 means unlimited.",
            ),
            PropertyDescription(
                CONNECTION_TIMEOUT,
                PropertyType.INTEGER,
                str(CFG.ssh.connect_timeout),
                "Timeout for establishing the connection in seconds.",
            ),
        ]

    def supportedCredentials() -> tuple[type[Credential], ...]:
        return (DefaultCredential, CertificateCredential)

    @classmethod
    def createScheduler(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> SshJobQueueScheduler:
        credential = cls.checkCredential(credential)
        props = cls.getProperties(properties)
        transport, path = SshAdaptor._connect(location, credential, props)

        try:
            workdir = path or SshAdaptor._remoteHome(transport)
            return SshJobQueueScheduler(
                unique_id,
                cls.name(),
                location or "",
                credential,
                props,
                SshProcessLauncher(transport),
                workdir,
                multi_max_concurrent=props.getInteger(MULTI_MAX_CONCURRENT),
                polling_delay=props.getInteger(POLLING_DELAY),
                history_size=props.getInteger(HISTORY_SIZE),
                transport=transport,
            )
        except GridQError:
            transport.close()
            raise

    @classmethod
    def createFileSystem(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> SshFileSystem:
        credential = cls.checkCredential(credential)
        props = cls.getProperties(properties)
        transport, path = SshAdaptor._connect(location, credential, props)

        try:
            return SshFileSystem(
                unique_id,
                location or "",
                credential,
                props,
                transport,
                entry_path=path or None,
            )
        except GridQError:
            transport.close()
            raise

    @classmethod
    def _connect(
        cls, location: str | None, credential: Credential, props: Properties
    ) -> tuple[SshTransport, str]:
        cls.checkScheme(location)

        host, user, port, path = parse_remote_location(location)
        if not host:
            raise InvalidLocationError(
                f"Location '{location}' does not name a host.", cls.name()
            )

        transport = SshTransport(
            host,
            user=user,
            port=port,
            credential=credential,
            timeout=props.getInteger(CONNECTION_TIMEOUT),
            adaptor_name=cls.name(),
        )
        transport.connect()
        return transport, path if path != "/" else ""

    @staticmethod
    def _remoteHome(transport: SshTransport) -> str:
        result = transport.execute(["pwd"])
        if result.exit_code != 0 or not result.stdout.strip():
            raise GridQError(
                f"Cannot determine the home directory on '{transport.getHost()}': "
                f"{result.stderr.strip()}",
                "ssh",
            )

        return result.stdout.strip()
