# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Mapping

from gridq_lib.batch.interface import Adaptor, AdaptorMeta, adaptor
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import PropertyDescription, PropertyType
from gridq_lib.credentials import CertificateCredential, Credential, DefaultCredential

from ..scripting.connection import poll_delay_description
from ..scripting.scheduler import ScriptingScheduler
from .connection import SlurmSchedulerConnection

logger = get_logger(__name__)

PREFIX = "gridq.adaptors.slurm."
DISABLE_ACCOUNTING = PREFIX + "disable.accounting.usage"


@adaptor
class SlurmAdaptor(Adaptor, metaclass=AdaptorMeta):
    def name() -> str:
        return "slurm"

    def description() -> str:
        return (
            "Submits jobs to a Slurm batch system using its command-line tools, "
            "either on the local machine or on a remote machine over ssh."
        )

    def schemes() -> list[str]:
        return ["slurm", "local", "ssh"]

    def locations() -> list[str]:
        return ["(empty)", "local://", "slurm://host", "ssh://user@host:port"]

    def supportedProperties() -> list[PropertyDescription]:
        return [
            poll_delay_description("slurm"),
            PropertyDescription(
                DISABLE_ACCOUNTING,
                PropertyType.BOOLEAN,
                "false",
                "Do not use the accounting (sacct) to get the status of finished jobs.",
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
    ) -> ScriptingScheduler:
        connection = SlurmSchedulerConnection(
            unique_id,
            location,
            cls.checkCredential(credential),
            properties,
            cls.supportedProperties(),
            DISABLE_ACCOUNTING,
        )
        return ScriptingScheduler(connection)
