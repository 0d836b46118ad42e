# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import pytest

from gridq_lib.core.error import InvalidPropertyError, UnknownPropertyError
from gridq_lib.core.properties import (
    Properties,
    PropertyDescription,
    PropertyType,
    merge_property_descriptions,
)

DELAY = PropertyDescription("gridq.test.delay", PropertyType.INTEGER, "100", "Delay.")
SIZE = PropertyDescription("gridq.test.size", PropertyType.LONG, None, "Size.")
FLAG = PropertyDescription("gridq.test.flag", PropertyType.BOOLEAN, "false", "Flag.")
NAME = PropertyDescription("gridq.test.name", PropertyType.STRING, None, "Name.")
VALID = [DELAY, SIZE, FLAG, NAME]


def test_defaults_are_used():
    props = Properties(VALID, None, "test")

    assert props.getInteger(DELAY.name) == 100
    assert props.getLong(SIZE.name) is None
    assert props.getBoolean(FLAG.name) is False
    assert props.getString(NAME.name) is None
    assert not props.isSet(DELAY.name)
    assert props.toDict() == {}


def test_given_values_are_converted():
    props = Properties(
        VALID,
        {DELAY.name: " 5 ", SIZE.name: 2**40, FLAG.name: "Yes", NAME.name: "gpu"},
    )

    assert props.getInteger(DELAY.name) == 5
    assert props.getLong(SIZE.name) == 2**40
    assert props.getBoolean(FLAG.name) is True
    assert props.getString(NAME.name) == "gpu"
    assert DELAY.name in props
    assert props.toDict()[SIZE.name] == str(2**40)


def test_unknown_property_raises():
    with pytest.raises(UnknownPropertyError, match="test adaptor: Unknown property 'x'"):
        Properties(VALID, {"x": "1"}, "test")

    with pytest.raises(UnknownPropertyError):
        Properties(VALID).getInteger("x")


@pytest.mark.parametrize(
    "name, value", [(DELAY.name, "fast"), (FLAG.name, "maybe"), (SIZE.name, "1.5")]
)
def test_invalid_value_raises_on_construction(name, value):
    with pytest.raises(InvalidPropertyError, match="invalid"):
        Properties(VALID, {name: value})


def test_wrong_getter_raises():
    with pytest.raises(InvalidPropertyError, match="is of type 'integer'"):
        Properties(VALID).getString(DELAY.name)


def test_merge_property_descriptions_later_wins():
    override = PropertyDescription(DELAY.name, PropertyType.INTEGER, "5", "Other.")

    merged = merge_property_descriptions([DELAY, FLAG], None, [override])

    assert merged == [override, FLAG]
