# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab


from abc import ABCMeta

from gridq_lib.core.common import split_location
from gridq_lib.core.error import GridQError
from gridq_lib.core.logger import get_logger

logger = get_logger(__name__)


class AdaptorMeta(ABCMeta):
    """
    Metaclass for adaptor classes.
    """

    # registry of supported adaptors
    _registry: dict[str, type] = {}

    def __str__(cls):
        """
        Get the string representation of the adaptor class.
        """
        return cls.name()

    @classmethod
    def register(mcs, adaptor_cls: type):
        """
        Register an adaptor class in the metaclass registry.

        Args:
            adaptor_cls: Subclass of Adaptor to register.
        """
        logger.debug(f"Registering adaptor '{adaptor_cls.name()}'.")
        mcs._registry[adaptor_cls.name()] = adaptor_cls

    @classmethod
    def fromStr(mcs, name: str) -> type:
        """
        Return the adaptor class registered with the given name.

        Raises:
            GridQError: If no class is registered for the given name.
        """
        try:
            return mcs._registry[name]
        except KeyError as e:
            raise GridQError(f"No adaptor registered as '{name}'.") from e

    @classmethod
    def fromScheme(mcs, scheme: str) -> type:
        """
        Return the adaptor named after the scheme or, if there is none,
        the first registered adaptor supporting the scheme.

        Raises:
            GridQError: If no registered adaptor supports the scheme.
        """
        if (named := mcs._registry.get(scheme)) and scheme in named.schemes():
            return named

        for Adaptor in mcs._registry.values():
            if scheme in Adaptor.schemes():
                logger.debug(f"Adaptor for scheme '{scheme}': {str(Adaptor)}.")
                return Adaptor

        raise GridQError(f"No adaptor supports the scheme '{scheme}'.")

    @classmethod
    def fromLocation(mcs, location: str | None) -> type:
        """
        Select an adaptor for a location.

        Locations without a scheme are served by the 'local' adaptor if they name
        no host and by the 'ssh' adaptor otherwise.

        Raises:
            GridQError: If no registered adaptor supports the scheme of the location.
        """
        parts = split_location(location)
        if parts.scheme and parts.scheme != "file":
            return mcs.fromScheme(parts.scheme)

        return mcs.fromStr("ssh" if parts.hostname else "local")

    @classmethod
    def obtain(mcs, name: str | None, location: str | None) -> type:
        """
        Obtain an adaptor class by name or, if no name is given, from the location.

        Raises:
            GridQError: If no matching adaptor is registered.
        """
        if name:
            return mcs.fromStr(name)

        return mcs.fromLocation(location)

    @classmethod
    def all(mcs) -> list[type]:
        """Return all registered adaptor classes in the order of registration."""
        return list(mcs._registry.values())


def adaptor(cls):
    """
    Class decorator registering an adaptor with `AdaptorMeta`.
    """
    AdaptorMeta.register(cls)
    return cls
