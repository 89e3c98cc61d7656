"""
Turn states and the three operations that drive a game:
submit_orders, adjudicate and advance_phase.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from diplomacy_adjudicator.core.errors import OrderValidationError, StateInvariantError
from diplomacy_adjudicator.core.map import Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, ConvoyOrder, DisbandOrder, HoldOrder, MoveOrder, RetreatOrder,
    SupportHoldOrder, SupportMoveOrder, ValidationError, WaiveOrder
)
from diplomacy_adjudicator.core.phase import Phase, PhaseManager, PhaseType
from diplomacy_adjudicator.core.position import Position
from diplomacy_adjudicator.core.resolver import (
    resolve_adjustment_phase, resolve_movement_phase, resolve_retreat_phase
)
from diplomacy_adjudicator.core.results import ResultLog, ResultType
from diplomacy_adjudicator.core.rules import RuleOptions

logger = logging.getLogger(__name__)


ALLOWED_ORDERS = {
    PhaseType.MOVEMENT: (HoldOrder, MoveOrder, SupportHoldOrder, SupportMoveOrder, ConvoyOrder),
    PhaseType.RETREAT: (RetreatOrder, DisbandOrder),
    PhaseType.ADJUSTMENT: (BuildOrder, WaiveOrder, DisbandOrder),
}


class TurnState:
    """
    One phase of a game. Orders may change until the turn is adjudicated;
    after that the turn is read-only and a successor is created by
    advance_phase.
    """

    def __init__(self, phase: Phase, position: Position, static_years: int = 0):
        self.phase = phase
        self.position = position
        self.orders: Dict[Power, Tuple] = {}
        self.results = ResultLog()
        self.resolved = False
        self.ended = False
        self.resolved_position: Optional[Position] = None
        self.static_years = static_years
        self.winner: Optional[Power] = None

    def get_orders(self, power: Power) -> Tuple:
        return self.orders.get(power, ())

    def all_orders(self) -> List:
        orders = []
        for power in Power:
            orders.extend(self.orders.get(power, ()))
        return orders

    def get_adjustments(self) -> Dict[Power, int]:
        """Builds (positive) or disbands (negative) owed in an adjustment phase."""
        if self.phase.phase_type != PhaseType.ADJUSTMENT:
            return {power: 0 for power in Power}
        return PhaseManager.calculate_adjustments(self.position)

    def __repr__(self) -> str:
        state = "resolved" if self.resolved else "open"
        return f"TurnState({self.phase}, {state})"


def _unit_key(order) -> Optional[str]:
    unit = getattr(order, "unit", None)
    return unit.province if unit is not None else None


def submit_orders(turn_state: TurnState, power: Power, orders: Iterable) -> None:
    """
    Replace a power's orders for an open turn.

    Raises OrderValidationError when an order is of the wrong kind for the
    phase, belongs to another power, repeats a unit, or when adjustment
    orders do not match the number of builds or disbands owed. An empty list
    withdraws the power's orders.
    """
    if turn_state.resolved:
        raise StateInvariantError(f"Cannot submit orders to resolved turn {turn_state.phase}")

    orders = tuple(orders)
    if not orders:
        turn_state.orders.pop(power, None)
        return

    allowed = ALLOWED_ORDERS[turn_state.phase.phase_type]
    seen = set()
    for order in orders:
        if not isinstance(order, allowed):
            raise OrderValidationError(
                f"{order} is not allowed in a {turn_state.phase.phase_type.value} phase",
                ValidationError.WRONG_PHASE,
            )
        if order.power != power:
            raise OrderValidationError(
                f"{power.value} cannot order {order}", ValidationError.UNIT_NOT_OWNED
            )
        key = _unit_key(order)
        if key is not None:
            if key in seen:
                raise OrderValidationError(
                    f"More than one order for the unit in {key}", ValidationError.DUPLICATE_ORDER
                )
            seen.add(key)

    if turn_state.phase.phase_type == PhaseType.ADJUSTMENT:
        _check_adjustment_count(turn_state.position, power, orders)

    turn_state.orders[power] = orders
    logger.debug(f"{power.value} submitted {len(orders)} orders for {turn_state.phase}")


def _check_adjustment_count(position: Position, power: Power, orders: Tuple) -> None:
    owed = PhaseManager.calculate_adjustments(position)[power]
    builds = sum(1 for o in orders if isinstance(o, (BuildOrder, WaiveOrder)))
    disbands = sum(1 for o in orders if isinstance(o, DisbandOrder))

    if owed > 0:
        ok = disbands == 0 and builds == owed
    elif owed < 0:
        ok = builds == 0 and disbands == -owed
    else:
        ok = False
    if not ok:
        raise OrderValidationError(
            f"{power.value} owes {owed:+d} adjustments but submitted "
            f"{builds} builds/waives and {disbands} disbands",
            ValidationError.ADJUSTMENT_COUNT,
        )


def adjudicate(turn_state: TurnState, rules: Optional[RuleOptions] = None) -> TurnState:
    """
    Resolve an open turn. The input is left untouched; a new resolved
    TurnState holding the same orders, the results and the resulting
    position is returned.
    """
    if turn_state.resolved:
        raise StateInvariantError(f"Turn {turn_state.phase} is already resolved")
    rules = rules or RuleOptions()
    phase_type = turn_state.phase.phase_type

    logger.info(f"Adjudicating {turn_state.phase}")
    if phase_type == PhaseType.MOVEMENT:
        outcome = resolve_movement_phase(turn_state.position, turn_state.all_orders())
    elif phase_type == PhaseType.RETREAT:
        outcome = resolve_retreat_phase(turn_state.position, turn_state.all_orders())
    else:
        outcome = resolve_adjustment_phase(turn_state.position, dict(turn_state.orders), rules)

    resolved = TurnState(turn_state.phase, turn_state.position, turn_state.static_years)
    resolved.orders = dict(turn_state.orders)
    resolved.results.merge(turn_state.results)
    resolved.results.merge(outcome.results)
    resolved.resolved_position = outcome.new_position
    resolved.resolved = True

    if phase_type == PhaseType.ADJUSTMENT:
        _check_game_end(resolved, rules)

    resolved.results.freeze()
    return resolved


def _check_game_end(turn_state: TurnState, rules: RuleOptions) -> None:
    position = turn_state.resolved_position
    winner = PhaseManager.check_victory(position, rules)
    if winner is not None:
        turn_state.ended = True
        turn_state.winner = winner
        turn_state.results.add_general(
            ResultType.VICTORY,
            f"{winner.value} wins with {position.get_sc_count(winner)} supply centers",
            winner,
        )
        return

    reason = PhaseManager.check_draw(turn_state.phase, turn_state.static_years, rules)
    if reason is not None:
        turn_state.ended = True
        survivors = [p.value for p in Power if not position.is_eliminated(p)]
        turn_state.results.add_general(
            ResultType.DRAW, f"Draw between {', '.join(survivors)}: {reason}"
        )
        logger.info(f"Game drawn: {reason}")


def advance_phase(
    turn_state: TurnState,
    rules: Optional[RuleOptions] = None
) -> Optional[TurnState]:
    """
    Create the open turn that follows a resolved one, or return None once
    the game has ended. Supply centers change hands when the adjustment
    phase is entered.
    """
    if not turn_state.resolved:
        raise StateInvariantError(f"Turn {turn_state.phase} has not been adjudicated")
    if turn_state.ended:
        return None

    position = turn_state.resolved_position.clone()
    next_phase = PhaseManager.determine_next_phase(
        turn_state.phase, bool(position.dislodged_units)
    )
    logger.info(f"Advancing from {turn_state.phase} to {next_phase}")

    successor = TurnState(next_phase, position, turn_state.static_years)
    if next_phase.phase_type == PhaseType.ADJUSTMENT:
        logger.info("Updating supply center ownership")
        changes = PhaseManager.update_sc_ownership(position)
        for abbr, old_owner, new_owner in changes:
            old_str = old_owner.value if old_owner else "neutral"
            successor.results.add_general(
                ResultType.OWNERSHIP_CHANGE,
                f"{abbr} changes from {old_str} to {new_owner.value}",
                new_owner,
            )
        successor.static_years = 0 if changes else turn_state.static_years + 1
    return successor
