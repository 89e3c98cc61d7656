"""
Retreat phase tests.

Scenario used by most tests:
- Russia A Gal -> Vie, supported by A Bud
- Austria A Vie holds and is dislodged; it may retreat to Boh, Tri or Tyr
"""

import pytest

from conftest import parse, result_types, setup

from diplomacy_adjudicator.core.errors import StateInvariantError
from diplomacy_adjudicator.core.map import Location, Power
from diplomacy_adjudicator.core.orders import DisbandOrder, HoldOrder
from diplomacy_adjudicator.core.position import DislodgedUnit, Unit, UnitType
from diplomacy_adjudicator.core.resolver import resolve_movement_phase, resolve_retreat_phase
from diplomacy_adjudicator.core.results import ResultType


def _after_vienna_falls(position):
    setup(position, {Power.AUSTRIA: ["A Vie"], Power.RUSSIA: ["A Gal", "A Bud"]})
    orders = parse(position, "A Gal - Vie", "A Bud S A Gal - Vie")
    outcome = resolve_movement_phase(position, orders)
    assert len(outcome.dislodged_units) == 1
    return outcome.new_position


def test_retreat_succeeds(position):
    after = _after_vienna_falls(position)
    # Vienna now holds the Russian army; the order names the dislodged one
    [retreat] = parse(after, "A Vie R Tyr")
    assert retreat.power == Power.AUSTRIA

    outcome = resolve_retreat_phase(after, [retreat])

    assert result_types(outcome.results, retreat) == [ResultType.SUCCESS]
    assert outcome.new_position.get_unit_at("Tyr").power == Power.AUSTRIA
    assert outcome.new_position.get_unit_at("Vie").power == Power.RUSSIA
    assert not outcome.new_position.dislodged_units


def test_retreat_to_attacker_origin_is_invalid(position):
    after = _after_vienna_falls(position)
    [retreat] = parse(after, "A Vie R Gal")

    outcome = resolve_retreat_phase(after, [retreat])

    assert result_types(outcome.results, retreat) == [ResultType.INVALID]
    assert outcome.new_position.get_unit_count(Power.AUSTRIA) == 0
    assert [u.province for u in outcome.destroyed_units] == ["Vie"]


def test_missing_retreat_order_disbands(position):
    after = _after_vienna_falls(position)

    outcome = resolve_retreat_phase(after, [])

    [result] = outcome.results.order_results()
    assert isinstance(result.order, DisbandOrder)
    assert result.result_type == ResultType.SUCCESS
    assert outcome.new_position.get_unit_count(Power.AUSTRIA) == 0


def test_explicit_disband(position):
    after = _after_vienna_falls(position)
    [disband] = parse(after, "A Vie D")
    assert disband.power == Power.AUSTRIA

    outcome = resolve_retreat_phase(after, [disband])

    assert result_types(outcome.results, disband) == [ResultType.SUCCESS]
    assert len(outcome.destroyed_units) == 1


def test_movement_order_in_retreat_phase(position):
    after = _after_vienna_falls(position)
    hold = HoldOrder(after.get_unit_at("Vie"))

    outcome = resolve_retreat_phase(after, [hold])

    assert result_types(outcome.results, hold) == [ResultType.INVALID]


def test_retreats_to_same_province_both_destroyed(position):
    vie = Unit(Power.AUSTRIA, UnitType.ARMY, Location("Vie"))
    ven = Unit(Power.ITALY, UnitType.ARMY, Location("Ven"))
    position.dislodged_units["Vie"] = DislodgedUnit(vie, "Gal", retreat_options=(Location("Tyr"),))
    position.dislodged_units["Ven"] = DislodgedUnit(ven, "Apu", retreat_options=(Location("Tyr"),))
    retreats = parse(position, "A Vie R Tyr", "A Ven R Tyr")

    outcome = resolve_retreat_phase(position, retreats)

    for retreat in retreats:
        assert result_types(outcome.results, retreat) == [ResultType.BOUNCED, ResultType.DESTROYED]
    assert outcome.new_position.get_unit_at("Tyr") is None
    assert len(outcome.destroyed_units) == 2


def test_movement_blocked_while_retreats_pending(position):
    after = _after_vienna_falls(position)
    with pytest.raises(StateInvariantError):
        resolve_movement_phase(after, [])


def test_retreat_options_must_be_computed():
    unit = Unit(Power.AUSTRIA, UnitType.ARMY, Location("Vie"))
    dislodged = DislodgedUnit(unit, "Gal")
    with pytest.raises(StateInvariantError):
        dislodged.get_retreat_options()
