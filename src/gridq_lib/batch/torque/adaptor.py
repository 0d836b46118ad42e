# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Mapping

from gridq_lib.batch.interface import Adaptor, AdaptorMeta, adaptor
from gridq_lib.core.properties import PropertyDescription, PropertyType
from gridq_lib.credentials import CertificateCredential, Credential, DefaultCredential

from ..scripting.connection import poll_delay_description
from ..scripting.scheduler import ScriptingScheduler
from .connection import TorqueSchedulerConnection

PREFIX = "gridq.adaptors.torque."
ACCOUNTING_GRACE_TIME = PREFIX + "accounting.grace.time"


@adaptor
class TorqueAdaptor(Adaptor, metaclass=AdaptorMeta):
    def name() -> str:
        return "torque"

    def description() -> str:
        return (
            "Submits jobs to a TORQUE batch system using its command-line tools, "
            "either on the local machine or on a remote machine over ssh."
        )

    def schemes() -> list[str]:
        return ["torque", "local", "ssh"]

    def locations() -> list[str]:
        return ["(empty)", "local://", "torque://host", "ssh://user@host:port"]

    def supportedProperties() -> list[PropertyDescription]:
        return [
            poll_delay_description("torque"),
            PropertyDescription(
                ACCOUNTING_GRACE_TIME,
                PropertyType.LONG,
                "60000",
                "Number of milliseconds a finished job is still reported as done "
                "after it disappeared from qstat.",
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
        connection = TorqueSchedulerConnection(
            unique_id,
            location,
            cls.checkCredential(credential),
            properties,
            cls.supportedProperties(),
            ACCOUNTING_GRACE_TIME,
        )
        return ScriptingScheduler(connection)
