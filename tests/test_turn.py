"""
Tests for turn states: submission rules, adjudication and phase advancement.
"""

import pytest

from conftest import parse, setup

from diplomacy_adjudicator.core.errors import OrderValidationError, StateInvariantError
from diplomacy_adjudicator.core.map import Location, Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, HoldOrder, MoveOrder, RetreatOrder, ValidationError
)
from diplomacy_adjudicator.core.phase import Phase, PhaseManager, PhaseType, Season
from diplomacy_adjudicator.core.position import Unit, UnitType, create_starting_position
from diplomacy_adjudicator.core.results import ResultType
from diplomacy_adjudicator.core.rules import RuleOptions
from diplomacy_adjudicator.core.turn import TurnState, adjudicate, advance_phase, submit_orders


def _spring(position=None):
    return TurnState(Phase.first(), position or create_starting_position())


def test_submit_and_replace_orders():
    turn = _spring()
    first = parse(turn.position, "A Par - Bur")
    second = parse(turn.position, "A Par - Pic", "A Mar H")

    submit_orders(turn, Power.FRANCE, first)
    submit_orders(turn, Power.FRANCE, second)
    assert turn.get_orders(Power.FRANCE) == tuple(second)

    submit_orders(turn, Power.FRANCE, [])
    assert turn.get_orders(Power.FRANCE) == ()


def test_submit_rejects_foreign_units():
    turn = _spring()
    orders = parse(turn.position, "A Mun - Bur")
    with pytest.raises(OrderValidationError) as excinfo:
        submit_orders(turn, Power.FRANCE, orders)
    assert excinfo.value.kind == ValidationError.UNIT_NOT_OWNED


def test_submit_rejects_wrong_phase():
    turn = _spring()
    build = BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Par"))
    with pytest.raises(OrderValidationError) as excinfo:
        submit_orders(turn, Power.FRANCE, [build])
    assert excinfo.value.kind == ValidationError.WRONG_PHASE


def test_submit_rejects_duplicate_unit():
    turn = _spring()
    orders = parse(turn.position, "A Par - Bur", "A Par H")
    with pytest.raises(OrderValidationError) as excinfo:
        submit_orders(turn, Power.FRANCE, orders)
    assert excinfo.value.kind == ValidationError.DUPLICATE_ORDER


def test_illegal_move_is_accepted_and_reported():
    """Illegal orders are reported in the results, not rejected at submission."""
    turn = _spring()
    orders = parse(turn.position, "A Par - Mun")
    submit_orders(turn, Power.FRANCE, orders)

    resolved = adjudicate(turn)

    [result] = resolved.results.for_order(orders[0])
    assert result.result_type == ResultType.INVALID


def test_order_for_another_powers_unit_is_reported():
    """Germany orders a fleet in Paris; France's army there still moves."""
    turn = _spring()
    french = parse(turn.position, "A Par - Bur")
    german = MoveOrder(Unit(Power.GERMANY, UnitType.FLEET, Location("Par")), Location("Pic"))
    submit_orders(turn, Power.FRANCE, french)
    submit_orders(turn, Power.GERMANY, [german])

    resolved = adjudicate(turn)

    assert [r.result_type for r in resolved.results.for_order(german)] == [ResultType.INVALID]
    assert [r.result_type for r in resolved.results.for_order(french[0])] == [ResultType.SUCCESS]
    assert resolved.resolved_position.get_unit_at("Bur").power == Power.FRANCE


def test_retreat_for_another_powers_unit_is_reported(position):
    setup(position, {Power.AUSTRIA: ["A Vie"], Power.RUSSIA: ["A Gal", "A Bud"]})
    turn = _spring(position)
    submit_orders(turn, Power.RUSSIA, parse(position, "A Gal - Vie", "A Bud S A Gal - Vie"))
    retreat_turn = advance_phase(adjudicate(turn))

    austrian = parse(retreat_turn.position, "A Vie R Boh")
    russian = RetreatOrder(Unit(Power.RUSSIA, UnitType.ARMY, Location("Vie")), Location("Boh"))
    submit_orders(retreat_turn, Power.RUSSIA, [russian])
    submit_orders(retreat_turn, Power.AUSTRIA, austrian)

    resolved = adjudicate(retreat_turn)

    assert [r.result_type for r in resolved.results.for_order(russian)] == [ResultType.INVALID]
    assert [r.result_type for r in resolved.results.for_order(austrian[0])] == [ResultType.SUCCESS]
    assert resolved.resolved_position.get_unit_at("Boh").power == Power.AUSTRIA
    assert resolved.resolved_position.get_unit_at("Vie").power == Power.RUSSIA


def test_adjudicate_leaves_input_open():
    turn = _spring()
    submit_orders(turn, Power.FRANCE, parse(turn.position, "A Par - Bur"))

    resolved = adjudicate(turn)

    assert resolved.resolved
    assert not turn.resolved
    assert len(turn.results) == 0
    assert turn.position.get_unit_at("Par") is not None
    assert resolved.resolved_position.get_unit_at("Bur") is not None
    assert resolved.results.frozen


def test_resolved_turn_is_closed():
    resolved = adjudicate(_spring())
    orders = parse(resolved.position, "A Par - Bur")

    with pytest.raises(StateInvariantError):
        submit_orders(resolved, Power.FRANCE, orders)
    with pytest.raises(StateInvariantError):
        adjudicate(resolved)
    with pytest.raises(StateInvariantError):
        resolved.results.add(orders[0], ResultType.SUCCESS)


def test_advance_requires_resolution():
    with pytest.raises(StateInvariantError):
        advance_phase(_spring())


def test_phase_sequence_without_retreats():
    turn = _spring()
    seen = []
    for _ in range(4):
        seen.append(turn.phase)
        turn = advance_phase(adjudicate(turn))

    assert [str(p) for p in seen] == [
        "Spring 1901 Movement",
        "Fall 1901 Movement",
        "Winter 1901 Adjustment",
        "Spring 1902 Movement",
    ]
    assert turn.phase == Phase(1902, Season.FALL, PhaseType.MOVEMENT)


def test_retreat_phase_follows_dislodgement(position):
    setup(position, {Power.AUSTRIA: ["A Vie"], Power.RUSSIA: ["A Gal", "A Bud"]})
    turn = _spring(position)
    submit_orders(turn, Power.RUSSIA, parse(position, "A Gal - Vie", "A Bud S A Gal - Vie"))

    retreat_turn = advance_phase(adjudicate(turn))

    assert retreat_turn.phase == Phase(1901, Season.SPRING, PhaseType.RETREAT)
    assert "Vie" in retreat_turn.position.dislodged_units

    fall = advance_phase(adjudicate(retreat_turn))
    assert fall.phase == Phase(1901, Season.FALL, PhaseType.MOVEMENT)
    assert not fall.position.dislodged_units


def test_ownership_changes_entering_winter(position):
    setup(position, {Power.FRANCE: ["A Bel", "A Par"]})
    for abbr in ("Par", "Mar", "Bre"):
        position.set_sc_owner(abbr, Power.FRANCE)
    fall = TurnState(Phase(1901, Season.FALL, PhaseType.MOVEMENT), position, static_years=3)

    winter = advance_phase(adjudicate(fall))

    assert winter.phase.phase_type == PhaseType.ADJUSTMENT
    assert winter.position.get_sc_owner("Bel") == Power.FRANCE
    [change] = winter.results.general()
    assert change.result_type == ResultType.OWNERSHIP_CHANGE
    assert change.power == Power.FRANCE
    assert winter.static_years == 0
    assert winter.get_adjustments()[Power.FRANCE] == 2

    # The change is reported with the adjustment results
    resolved = adjudicate(winter)
    assert ResultType.OWNERSHIP_CHANGE in [r.result_type for r in resolved.results.general()]


def test_static_years_count_up(position):
    setup(position, {Power.FRANCE: ["A Par"]})
    position.set_sc_owner("Par", Power.FRANCE)
    fall = TurnState(Phase(1901, Season.FALL, PhaseType.MOVEMENT), position, static_years=1)

    winter = advance_phase(adjudicate(fall))

    assert winter.static_years == 2


def test_draw_at_final_year():
    rules = RuleOptions(max_year=1901)
    winter = TurnState(Phase(1901, Season.WINTER, PhaseType.ADJUSTMENT), create_starting_position())

    resolved = adjudicate(winter, rules)

    assert resolved.ended
    assert resolved.winner is None
    assert [r.result_type for r in resolved.results.general()] == [ResultType.DRAW]
    assert advance_phase(resolved, rules) is None


def test_draw_after_static_years():
    rules = RuleOptions(max_static_years=2)
    winter = TurnState(
        Phase(1903, Season.WINTER, PhaseType.ADJUSTMENT), create_starting_position(), static_years=2
    )
    resolved = adjudicate(winter, rules)
    assert resolved.ended


def test_victory(position):
    centers = [p.name for p in position.game_map.get_supply_centers()][:18]
    for abbr in centers:
        position.set_sc_owner(abbr, Power.FRANCE)
    setup(position, {Power.FRANCE: ["A Par"]})
    winter = TurnState(Phase(1905, Season.WINTER, PhaseType.ADJUSTMENT), position)

    resolved = adjudicate(winter)

    assert resolved.ended
    assert resolved.winner == Power.FRANCE
    assert ResultType.VICTORY in [r.result_type for r in resolved.results.general()]


def test_victory_threshold():
    rules = RuleOptions()
    assert rules.get_victory_centers(34) == 18
    assert RuleOptions(victory_centers=10).get_victory_centers(34) == 10


def test_phase_manager_next_phase():
    spring = Phase.first()
    assert PhaseManager.determine_next_phase(spring, True).phase_type == PhaseType.RETREAT
    assert PhaseManager.determine_next_phase(spring, False).season == Season.FALL
    winter = Phase(1901, Season.WINTER, PhaseType.ADJUSTMENT)
    assert PhaseManager.determine_next_phase(winter, False) == Phase.first(1902)


def test_phase_parse():
    assert Phase.parse("Spring 1901") == Phase.first()
    assert Phase.parse("winter 1902").phase_type == PhaseType.ADJUSTMENT
    assert Phase.parse("Fall 1901 Retreat") == Phase(1901, Season.FALL, PhaseType.RETREAT)
    with pytest.raises(ValueError):
        Phase.parse("1901")


def test_move_orders_survive_in_resolved_turn():
    turn = _spring()
    orders = parse(turn.position, "A Par - Bur")
    submit_orders(turn, Power.FRANCE, orders)
    resolved = adjudicate(turn)
    assert isinstance(resolved.get_orders(Power.FRANCE)[0], MoveOrder)
    assert not any(isinstance(o, HoldOrder) for o in resolved.all_orders())
