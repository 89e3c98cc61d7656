"""
Adjustment phase tests: build counts, build sites, disbands and civil disorder.
"""

import pytest

from conftest import parse, result_types, setup

from diplomacy_adjudicator.core.errors import OrderValidationError
from diplomacy_adjudicator.core.map import Location, Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, DisbandOrder, ValidationError, WaiveOrder
)
from diplomacy_adjudicator.core.phase import Phase, PhaseType, Season
from diplomacy_adjudicator.core.position import UnitType
from diplomacy_adjudicator.core.resolver import AdjustmentResolver, resolve_adjustment_phase
from diplomacy_adjudicator.core.results import ResultType
from diplomacy_adjudicator.core.rules import BuildRule, RuleOptions
from diplomacy_adjudicator.core.turn import TurnState, adjudicate, submit_orders

WINTER_1901 = Phase(1901, Season.WINTER, PhaseType.ADJUSTMENT)


def _own(position, power, *centers):
    for abbr in centers:
        position.set_sc_owner(abbr, power)


def _france_owed_two(position):
    """France: five centers, three units, all home centers empty."""
    setup(position, {Power.FRANCE: ["A Spa", "A Por", "F MAO"]})
    _own(position, Power.FRANCE, "Par", "Mar", "Bre", "Spa", "Por")
    return position


def test_scenario_e_build_count(position):
    turn = TurnState(WINTER_1901, _france_owed_two(position))
    assert turn.get_adjustments()[Power.FRANCE] == 2

    too_many = [
        BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Par")),
        BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Mar")),
        BuildOrder(Power.FRANCE, UnitType.FLEET, Location("Bre")),
    ]
    with pytest.raises(OrderValidationError) as excinfo:
        submit_orders(turn, Power.FRANCE, too_many)
    assert excinfo.value.kind == ValidationError.ADJUSTMENT_COUNT
    assert turn.get_orders(Power.FRANCE) == ()

    builds = too_many[:2]
    submit_orders(turn, Power.FRANCE, builds)
    resolved = adjudicate(turn)

    for build in builds:
        assert result_types(resolved.results, build) == [ResultType.SUCCESS]
    new_position = resolved.resolved_position
    assert new_position.get_unit_count(Power.FRANCE) == 5
    assert new_position.get_unit_at("Par").unit_type == UnitType.ARMY


def test_waive_counts_as_build(position):
    turn = TurnState(WINTER_1901, _france_owed_two(position))
    orders = [BuildOrder(Power.FRANCE, UnitType.FLEET, Location("Bre")), WaiveOrder(Power.FRANCE)]
    submit_orders(turn, Power.FRANCE, orders)

    resolved = adjudicate(turn)

    assert resolved.resolved_position.get_unit_count(Power.FRANCE) == 4
    assert result_types(resolved.results, orders[1]) == [ResultType.SUCCESS]


def test_no_adjustment_owed_rejects_orders(position):
    setup(position, {Power.FRANCE: ["A Par"]})
    _own(position, Power.FRANCE, "Par")
    turn = TurnState(WINTER_1901, position)

    with pytest.raises(OrderValidationError):
        submit_orders(turn, Power.FRANCE, [WaiveOrder(Power.FRANCE)])


def test_disband_count(position):
    setup(position, {Power.FRANCE: ["A Par", "A Bur", "A Pic"]})
    _own(position, Power.FRANCE, "Par", "Mar")
    turn = TurnState(WINTER_1901, position)
    assert turn.get_adjustments()[Power.FRANCE] == -1

    with pytest.raises(OrderValidationError):
        submit_orders(turn, Power.FRANCE, [BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Mar"))])

    [disband] = parse(position, "A Pic D")
    submit_orders(turn, Power.FRANCE, [disband])
    resolved = adjudicate(turn)

    assert result_types(resolved.results, disband) == [ResultType.SUCCESS]
    assert resolved.resolved_position.get_unit_at("Pic") is None
    assert resolved.resolved_position.get_unit_count(Power.FRANCE) == 2


def test_civil_disorder_builds_are_waived(position):
    _france_owed_two(position)

    outcome = resolve_adjustment_phase(position, {})

    waives = [r for r in outcome.results.order_results() if isinstance(r.order, WaiveOrder)]
    assert len(waives) == 2
    assert all("civil disorder" in r.message for r in waives)
    assert outcome.new_position.get_unit_count(Power.FRANCE) == 3


def test_civil_disorder_disbands_farthest_unit(position):
    setup(position, {Power.FRANCE: ["A Par", "A Bur", "A Mun"]})
    _own(position, Power.FRANCE, "Par", "Mar")

    outcome = resolve_adjustment_phase(position, {})

    assert outcome.new_position.get_unit_at("Mun") is None
    assert [u.province for u in outcome.destroyed_units] == ["Mun"]
    [result] = outcome.results.order_results()
    assert isinstance(result.order, DisbandOrder)
    assert "civil disorder" in result.message


def test_civil_disorder_tie_broken_by_name(position):
    setup(position, {Power.FRANCE: ["A Par", "A Pic", "A Bur"]})
    _own(position, Power.FRANCE, "Par", "Mar")

    chosen = AdjustmentResolver.civil_disorder_disbands(position, Power.FRANCE, 1)

    assert [u.province for u in chosen] == ["Bur"]


def test_invalid_build_site_reported(position):
    _france_owed_two(position)
    orders = {
        Power.FRANCE: [
            BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Spa")),
            BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Par")),
        ]
    }

    outcome = resolve_adjustment_phase(position, orders)

    bad, good = orders[Power.FRANCE]
    assert result_types(outcome.results, bad) == [ResultType.INVALID]
    assert result_types(outcome.results, good) == [ResultType.SUCCESS]
    assert outcome.new_position.get_unit_count(Power.FRANCE) == 4


def test_build_in_any_owned_center(position):
    setup(position, {Power.FRANCE: ["A Par"]})
    _own(position, Power.FRANCE, "Par", "Bel")
    build = BuildOrder(Power.FRANCE, UnitType.FLEET, Location("Bel"))

    home_only = resolve_adjustment_phase(position, {Power.FRANCE: [build]})
    any_owned = resolve_adjustment_phase(
        position, {Power.FRANCE: [build]}, RuleOptions(build_rule=BuildRule.ANY_OWNED)
    )

    assert result_types(home_only.results, build) == [ResultType.INVALID]
    assert result_types(any_owned.results, build) == [ResultType.SUCCESS]
    assert any_owned.new_position.get_unit_at("Bel").is_fleet


def test_elimination_reported(position):
    setup(position, {Power.AUSTRIA: ["A Ser"]})

    outcome = resolve_adjustment_phase(position, {})

    [general] = outcome.results.general()
    assert general.result_type == ResultType.ELIMINATED
    assert general.power == Power.AUSTRIA
    assert outcome.new_position.is_eliminated(Power.AUSTRIA)
