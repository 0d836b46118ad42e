# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab


from abc import ABC
from collections.abc import Mapping
from typing import TYPE_CHECKING

from gridq_lib.core.common import split_location
from gridq_lib.core.error import (
    GridQError,
    InvalidCredentialError,
    InvalidLocationError,
)
from gridq_lib.core.logger import get_logger
from gridq_lib.core.properties import (
    ADAPTORS_PREFIX,
    Properties,
    PropertyDescription,
)
from gridq_lib.credentials import Credential, DefaultCredential

if TYPE_CHECKING:
    from gridq_lib.batch.scheduler import Scheduler
    from gridq_lib.files.filesystem import FileSystem

logger = get_logger(__name__)


class Adaptor(ABC):
    """
    Abstract base class for adaptors.

    An adaptor is a capability set for one kind of backend: it creates
    schedulers, file systems, and default credentials for the locations it
    supports. Adaptors are stateless; every scheduler or file system they create
    owns its own resources.

    All functions should raise GridQError when encountering an error.
    """

    @staticmethod
    def name() -> str:
        """
        Return the name of the adaptor.

        Returns:
            str: The adaptor name.
        """
        raise NotImplementedError(
            "name method is not implemented for this adaptor implementation"
        )

    @staticmethod
    def description() -> str:
        """Return a short human-readable description of the adaptor."""
        raise NotImplementedError(
            "description method is not implemented for this adaptor implementation"
        )

    @staticmethod
    def schemes() -> list[str]:
        """Return the location schemes handled by the adaptor."""
        raise NotImplementedError(
            "schemes method is not implemented for this adaptor implementation"
        )

    @staticmethod
    def locations() -> list[str]:
        """Return examples of locations supported by the adaptor."""
        return []

    @staticmethod
    def supportedProperties() -> list[PropertyDescription]:
        """Return the descriptions of all properties understood by the adaptor."""
        return []

    @staticmethod
    def supportedCredentials() -> tuple[type[Credential], ...]:
        """Return the credential types accepted by the adaptor."""
        return (DefaultCredential,)

    @classmethod
    def propertyPrefix(cls) -> str:
        """Return the prefix shared by all properties of the adaptor."""
        return f"{ADAPTORS_PREFIX}{cls.name()}."

    @classmethod
    def supportsScheduler(cls) -> bool:
        return cls.createScheduler.__func__ is not Adaptor.createScheduler.__func__

    @classmethod
    def supportsFileSystem(cls) -> bool:
        return cls.createFileSystem.__func__ is not Adaptor.createFileSystem.__func__

    @classmethod
    def createScheduler(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> "Scheduler":
        """
        Create a scheduler for the given location.

        Args:
            unique_id (str): Identifier assigned to the scheduler by the engine.
            location (str | None): Location of the scheduler.
            credential (Credential | None): Credential to use. None selects the default one.
            properties (Mapping[str, str] | None): Properties configuring the scheduler.

        Raises:
            InvalidLocationError: If the location is not supported.
            InvalidCredentialError: If the credential is not supported.
            UnknownPropertyError: If a property is not supported.
        """
        raise GridQError(f"Adaptor '{cls.name()}' does not support schedulers.")

    @classmethod
    def createFileSystem(
        cls,
        unique_id: str,
        location: str | None,
        credential: Credential | None,
        properties: Mapping[str, str] | None,
    ) -> "FileSystem":
        """
        Create a file system for the given location.

        Raises:
            InvalidLocationError: If the location is not supported.
            InvalidCredentialError: If the credential is not supported.
            UnknownPropertyError: If a property is not supported.
        """
        raise GridQError(f"Adaptor '{cls.name()}' does not support file systems.")

    @classmethod
    def createCredential(cls, username: str | None = None) -> Credential:
        """Return the default credential of the adaptor."""
        return DefaultCredential(username) if username else DefaultCredential()

    @classmethod
    def checkCredential(cls, credential: Credential | None) -> Credential:
        """
        Return the credential if the adaptor supports it, or the default credential if None.

        Raises:
            InvalidCredentialError: If the credential type is not supported.
        """
        if credential is None:
            return cls.createCredential()

        if not isinstance(credential, cls.supportedCredentials()):
            raise InvalidCredentialError(
                f"Credential type '{type(credential).__name__}' not supported.",
                cls.name(),
            )

        return credential

    @classmethod
    def checkScheme(cls, location: str | None) -> None:
        """
        Check that the scheme of the location, if any, is handled by the adaptor.

        Raises:
            InvalidLocationError: If the scheme is not supported.
        """
        scheme = split_location(location).scheme
        if scheme and scheme not in cls.schemes():
            raise InvalidLocationError(
                f"Location '{location}' has an unsupported scheme '{scheme}'.",
                cls.name(),
            )

    @classmethod
    def getProperties(cls, properties: Mapping[str, str] | None) -> Properties:
        """
        Validate the user properties against the properties supported by the adaptor.

        Raises:
            UnknownPropertyError: If a property is not supported.
            InvalidPropertyError: If a property has an invalid value.
        """
        return Properties(cls.supportedProperties(), properties, cls.name())
