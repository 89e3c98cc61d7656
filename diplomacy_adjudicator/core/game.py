"""
Game manager for the Diplomacy adjudicator.
Holds the open turn and the history of resolved turns.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from diplomacy_adjudicator.core.map import Power
from diplomacy_adjudicator.core.phase import Phase, PhaseType
from diplomacy_adjudicator.core.position import Position, Unit, create_starting_position
from diplomacy_adjudicator.core.results import OrderResult
from diplomacy_adjudicator.core.rules import RuleOptions
from diplomacy_adjudicator.core.turn import TurnState, adjudicate, advance_phase, submit_orders

logger = logging.getLogger(__name__)


class Game:
    """Main game controller for Diplomacy."""

    def __init__(
        self,
        position: Optional[Position] = None,
        phase: Optional[Phase] = None,
        rules: Optional[RuleOptions] = None
    ):
        """
        Initialize a new game.

        Args:
            position: Optional starting position. If None, the standard 1901 start.
            phase: Phase of the first turn. Defaults to Spring 1901 movement.
            rules: Victory, draw and build options.
        """
        self.rules = rules or RuleOptions()
        self.current: Optional[TurnState] = TurnState(
            phase or Phase.first(), position or create_starting_position()
        )
        self.game_history: List[TurnState] = []

    @property
    def is_over(self) -> bool:
        return self.current is None

    def get_current_turn(self) -> TurnState:
        if self.current is None:
            raise RuntimeError("The game has ended")
        return self.current

    def get_current_phase(self) -> Phase:
        return self.get_current_turn().phase

    def get_position(self) -> Position:
        """Position of the open turn, or the final position once the game ended."""
        if self.current is not None:
            return self.current.position
        return self.game_history[-1].resolved_position

    def submit_orders(self, power: Power, orders: Iterable) -> None:
        """Replace a power's orders for the open turn."""
        submit_orders(self.get_current_turn(), power, orders)

    def process_phase(self) -> TurnState:
        """
        Adjudicate the open turn and move on to the next one.

        Returns:
            The resolved turn, with its results
        """
        resolved = adjudicate(self.get_current_turn(), self.rules)
        self.game_history.append(resolved)
        self.current = advance_phase(resolved, self.rules)
        if self.current is None:
            logger.info(f"Game over after {resolved.phase}")
        return resolved

    def get_last_resolved(self) -> Optional[TurnState]:
        return self.game_history[-1] if self.game_history else None

    def get_unit_count(self, power: Power) -> int:
        return self.get_position().get_unit_count(power)

    def get_supply_center_count(self, power: Power) -> int:
        """Get the number of supply centers controlled by a power."""
        return self.get_position().get_sc_count(power)

    def get_occupant(self, province: str) -> Optional[Unit]:
        return self.get_position().get_unit_at(province)

    def get_owner(self, province: str) -> Optional[Power]:
        return self.get_position().get_sc_owner(province)

    def get_order_results(self, order) -> List[OrderResult]:
        """Results of an order in the most recent turn that contains it."""
        for turn in reversed(self.game_history):
            results = turn.results.for_order(order)
            if results:
                return results
        return []

    def get_adjustments(self) -> Dict[Power, int]:
        """Builds or disbands owed in the open turn; zero outside adjustment phases."""
        if self.current is None:
            return {power: 0 for power in Power}
        return self.current.get_adjustments()

    def needs_orders_from(self) -> List[Power]:
        """
        Determine which powers still need to submit orders.
        Missing orders are treated as holds, disbands or civil disorder.
        """
        if self.current is None:
            return []
        turn = self.current
        position = turn.position
        powers = []

        for power in Power:
            if turn.orders.get(power):
                continue
            if turn.phase.phase_type == PhaseType.MOVEMENT:
                needed = position.get_unit_count(power) > 0
            elif turn.phase.phase_type == PhaseType.RETREAT:
                needed = any(d.unit.power == power for d in position.dislodged_units.values())
            else:
                needed = turn.get_adjustments()[power] != 0
            if needed:
                powers.append(power)
        return powers

    def get_game_summary(self) -> Dict[str, Any]:
        """Get a summary of the current game state."""
        last = self.get_last_resolved()
        summary = {
            "phase": str(self.current.phase) if self.current else None,
            "ended": self.current is None,
            "winner": last.winner.value if last and last.winner else None,
            "powers": {}
        }
        for power in Power:
            summary["powers"][power.value] = {
                "supply_centers": self.get_supply_center_count(power),
                "units": self.get_unit_count(power)
            }
        return summary

    def get_board_state_string(self) -> str:
        """Get a simple string representation of the board state."""
        position = self.get_position()
        lines = []
        title = str(self.current.phase) if self.current else "Game over"
        lines.append(f"\n{title}")
        lines.append("=" * 50)

        for power in Power:
            units = position.get_units_by_power(power)
            sc_count = position.get_sc_count(power)
            lines.append(f"\n{power.value}: {sc_count} SCs, {len(units)} units")
            for unit in units:
                lines.append(f"  {unit}")

        if position.dislodged_units:
            lines.append("\nDislodged Units:")
            for abbr in sorted(position.dislodged_units):
                dislodged = position.dislodged_units[abbr]
                options = ", ".join(str(loc) for loc in dislodged.get_retreat_options())
                lines.append(f"  {dislodged.unit} (attacked from {dislodged.attacker_origin}; "
                             f"may retreat to {options})")

        return "\n".join(lines)
