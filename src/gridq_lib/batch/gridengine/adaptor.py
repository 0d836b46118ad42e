# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Mapping

from gridq_lib.batch.interface import Adaptor, AdaptorMeta, adaptor
from gridq_lib.core.properties import PropertyDescription, PropertyType
from gridq_lib.credentials import CertificateCredential, Credential, DefaultCredential

from ..scripting.connection import poll_delay_description
from ..scripting.scheduler import ScriptingScheduler
from .connection import GridEngineSchedulerConnection

PREFIX = "gridq.adaptors.gridengine."
IGNORE_VERSION = PREFIX + "ignore.version"
ACCOUNTING_GRACE_TIME = PREFIX + "accounting.grace.time"


@adaptor
class GridEngineAdaptor(Adaptor, metaclass=AdaptorMeta):
    def name() -> str:
        return "gridengine"

    def description() -> str:
        return (
            "Submits jobs to a Grid Engine batch system using its command-line tools, "
            "either on the local machine or on a remote machine over ssh."
        )

    def schemes() -> list[str]:
        return ["gridengine", "sge", "local", "ssh"]

    def locations() -> list[str]:
        return ["(empty)", "local://", "sge://host", "ssh://user@host:port"]

    def supportedProperties() -> list[PropertyDescription]:
        return [
            poll_delay_description("gridengine"),
            PropertyDescription(
                IGNORE_VERSION,
                PropertyType.BOOLEAN,
                "false",
                "Skip the check of the Grid Engine version.",
            ),
            PropertyDescription(
                ACCOUNTING_GRACE_TIME,
                PropertyType.LONG,
                "60000",
                "Number of milliseconds a job is allowed to take going from the "
                "queue to the qacct output.",
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
        connection = GridEngineSchedulerConnection(
            unique_id,
            location,
            cls.checkCredential(credential),
            properties,
            cls.supportedProperties(),
            IGNORE_VERSION,
            ACCOUNTING_GRACE_TIME,
        )
        return ScriptingScheduler(connection)
