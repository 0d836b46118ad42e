# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Typed, validated property maps for adaptors.

Every adaptor declares the properties it understands as a list of
`PropertyDescription` objects. User-provided properties are flat string
maps; `Properties` rejects unknown keys and converts values on access.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .error import InvalidPropertyError, UnknownPropertyError
from .logger import get_logger

logger = get_logger(__name__)

# Prefix shared by the properties of all adaptors.
ADAPTORS_PREFIX = "gridq.adaptors."


class PropertyType(Enum):
    """Type of the value of a property."""

    BOOLEAN = 1
    INTEGER = 2
    LONG = 3
    STRING = 4

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class PropertyDescription:
    """
    Description of a single property supported by an adaptor.

    Attributes:
        name (str): Full name of the property.
        type (PropertyType): Type of the property value.
        default (str | None): Default value as a string, or None if the property has no default.
        description (str): Human-readable description.
    """

    name: str
    type: PropertyType
    default: str | None
    description: str


def merge_property_descriptions(
    *descriptions: list[PropertyDescription] | None,
) -> list[PropertyDescription]:
    """
    Merge several lists of property descriptions into one.

    Later descriptions with the same name replace earlier ones.
    """
    merged: dict[str, PropertyDescription] = {}
    for group in descriptions:
        for desc in group or []:
            merged[desc.name] = desc

    return list(merged.values())


class Properties:
    """
    Immutable map of properties validated against a list of descriptions.
    """

    _TRUE = {"true", "1", "yes", "on"}
    _FALSE = {"false", "0", "no", "off"}

    def __init__(
        self,
        valid: list[PropertyDescription],
        given: Mapping[str, str] | None = None,
        adaptor_name: str | None = None,
    ):
        """
        Initialize the property map.

        Args:
            valid (list[PropertyDescription]): Properties supported by the adaptor.
            given (Mapping[str, str] | None): Properties provided by the user.
            adaptor_name (str | None): Name of the adaptor used in error messages.

        Raises:
            UnknownPropertyError: If a given property is not supported.
            InvalidPropertyError: If a given property cannot be converted to its type.
        """
        self._adaptor_name = adaptor_name
        self._descriptions = {desc.name: desc for desc in valid}
        self._values: dict[str, str] = {}

        for key, value in (given or {}).items():
            if key not in self._descriptions:
                raise UnknownPropertyError(f"Unknown property '{key}'.", adaptor_name)
            self._values[key] = str(value)
            # fail early on values of a wrong type
            self._convert(self._descriptions[key], self._values[key])

        logger.debug(f"Properties for adaptor '{adaptor_name}': {self._values}.")

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __repr__(self) -> str:
        return f"Properties({self._values})"

    def isSet(self, name: str) -> bool:
        """Return True if the property was explicitly provided by the user."""
        return name in self._values

    def toDict(self) -> dict[str, str]:
        """Return the explicitly provided properties as a dictionary."""
        return dict(self._values)

    def getBoolean(self, name: str) -> bool | None:
        return self._get(name, PropertyType.BOOLEAN)

    def getInteger(self, name: str) -> int | None:
        return self._get(name, PropertyType.INTEGER)

    def getLong(self, name: str) -> int | None:
        return self._get(name, PropertyType.LONG)

    def getString(self, name: str) -> str | None:
        return self._get(name, PropertyType.STRING)

    def _get(self, name: str, expected: PropertyType):
        desc = self._descriptions.get(name)
        if desc is None:
            raise UnknownPropertyError(f"Unknown property '{name}'.", self._adaptor_name)

        if desc.type != expected:
            raise InvalidPropertyError(
                f"Property '{name}' is of type '{desc.type}', not '{expected}'.",
                self._adaptor_name,
            )

        raw = self._values.get(name, desc.default)
        if raw is None:
            return None

        return self._convert(desc, raw)

    def _convert(self, desc: PropertyDescription, raw: str):
        match desc.type:
            case PropertyType.BOOLEAN:
                lowered = raw.strip().lower()
                if lowered in self._TRUE:
                    return True
                if lowered in self._FALSE:
                    return False
            case PropertyType.INTEGER | PropertyType.LONG:
                try:
                    return int(raw.strip())
                except ValueError:
                    pass
            case PropertyType.STRING:
                return raw

        raise InvalidPropertyError(
            f"Property '{desc.name}' has an invalid {desc.type} value '{raw}'.",
            self._adaptor_name,
        )
