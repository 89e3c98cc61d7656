"""
Shared fixtures for adjudicator tests.
"""

import pytest

from diplomacy_adjudicator.core.map import Location, create_standard_map
from diplomacy_adjudicator.core.orders import OrderParser
from diplomacy_adjudicator.core.position import Position, Unit, UnitType


@pytest.fixture(scope="session")
def game_map():
    return create_standard_map()


@pytest.fixture
def position(game_map):
    """An empty board on the standard map."""
    return Position(game_map)


def place(position, power, spec):
    """Put a unit described like "A Par" or "F StP/sc" on the board."""
    kind, where = spec.split()
    unit_type = UnitType.ARMY if kind == "A" else UnitType.FLEET
    unit = Unit(power, unit_type, Location.parse(where))
    position.add_unit(unit)
    return unit


def setup(position, units):
    """Place units from a {Power: ["A Par", ...]} mapping."""
    for power, specs in units.items():
        for spec in specs:
            place(position, power, spec)
    return position


def parse(position, *texts, power=None):
    """Parse order strings against a position; every one must parse."""
    orders = []
    for text in texts:
        order = OrderParser.parse_order(text, position, power)
        assert order is not None, f"could not parse {text!r}"
        orders.append(order)
    return orders


def result_types(results, order):
    """Result types recorded against one order, in emission sequence."""
    return [r.result_type for r in results.for_order(order)]
