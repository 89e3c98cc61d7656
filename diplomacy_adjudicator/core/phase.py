"""
Phase sequencing and year-end bookkeeping.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from diplomacy_adjudicator.core.map import Power
from diplomacy_adjudicator.core.position import Position
from diplomacy_adjudicator.core.rules import RuleOptions

logger = logging.getLogger(__name__)


class Season(Enum):
    """Game seasons."""
    SPRING = "Spring"
    FALL = "Fall"
    WINTER = "Winter"


class PhaseType(Enum):
    """What kind of orders a phase takes."""
    MOVEMENT = "Movement"
    RETREAT = "Retreat"
    ADJUSTMENT = "Adjustment"


@dataclass(frozen=True)
class Phase:
    """A single phase. Retreat phases keep the season of their movement phase."""
    year: int
    season: Season
    phase_type: PhaseType

    def __str__(self) -> str:
        return f"{self.season.value} {self.year} {self.phase_type.value}"

    @property
    def sort_key(self):
        return (self.year, list(Season).index(self.season), list(PhaseType).index(self.phase_type))

    @staticmethod
    def first(year: int = 1901) -> 'Phase':
        return Phase(year, Season.SPRING, PhaseType.MOVEMENT)

    @staticmethod
    def parse(text: str) -> 'Phase':
        """
        Parse names like "Spring 1901", "Fall 1901 Retreat" or "Winter 1901".
        Spring and Fall default to movement, Winter to adjustment.
        """
        parts = text.split()
        if len(parts) < 2:
            raise ValueError(f"Invalid phase name: {text}")
        season = Season(parts[0].capitalize())
        year = int(parts[1])
        if len(parts) > 2:
            phase_type = PhaseType(parts[2].capitalize())
        elif season == Season.WINTER:
            phase_type = PhaseType.ADJUSTMENT
        else:
            phase_type = PhaseType.MOVEMENT
        return Phase(year, season, phase_type)


class PhaseManager:
    """Manages phase transitions and game flow logic."""

    @staticmethod
    def determine_next_phase(phase: Phase, has_dislodged_units: bool) -> Phase:
        """
        Determine the phase that follows a resolved one.

        Args:
            phase: The phase just resolved
            has_dislodged_units: Whether dislodged units are waiting to retreat

        Returns:
            The next phase
        """
        if phase.phase_type == PhaseType.MOVEMENT and has_dislodged_units:
            return Phase(phase.year, phase.season, PhaseType.RETREAT)

        if phase.phase_type == PhaseType.ADJUSTMENT:
            return Phase(phase.year + 1, Season.SPRING, PhaseType.MOVEMENT)

        if phase.season == Season.SPRING:
            return Phase(phase.year, Season.FALL, PhaseType.MOVEMENT)
        return Phase(phase.year, Season.WINTER, PhaseType.ADJUSTMENT)

    @staticmethod
    def calculate_adjustments(position: Position) -> Dict[Power, int]:
        """
        Calculate build/disband adjustments for each power.

        Returns:
            Dictionary mapping Power to adjustment count
            Positive = builds owed, Negative = disbands owed, 0 = no adjustment
        """
        adjustments = {}
        for power in Power:
            sc_count = position.get_sc_count(power)
            unit_count = position.get_unit_count(power)
            adjustments[power] = sc_count - unit_count
            if sc_count != unit_count:
                logger.debug(
                    f"{power.value}: {sc_count} SCs, {unit_count} units, "
                    f"adjustment: {sc_count - unit_count:+d}"
                )
        return adjustments

    @staticmethod
    def update_sc_ownership(position: Position) -> List[Tuple[str, Optional[Power], Power]]:
        """
        Give each supply center to the power whose unit stands on it.
        Empty centers keep their owner. Returns (province, old, new) changes.
        """
        changes = []
        for province in position.game_map.get_supply_centers():
            unit = position.get_unit_at(province.name)
            if unit is None:
                continue
            current_owner = position.get_sc_owner(province.name)
            if current_owner != unit.power:
                changes.append((province.name, current_owner, unit.power))
                position.set_sc_owner(province.name, unit.power)

        for abbr, old_owner, new_owner in changes:
            old_str = old_owner.value if old_owner else "Neutral"
            logger.info(f"  {abbr}: {old_str} -> {new_owner.value}")
        if not changes:
            logger.info("No supply center ownership changes")
        return changes

    @staticmethod
    def check_victory(position: Position, rules: RuleOptions) -> Optional[Power]:
        """
        Check if any power owns enough supply centers for a solo win.

        Returns:
            The winning power, or None if no winner yet
        """
        needed = rules.get_victory_centers(len(position.game_map.get_supply_centers()))
        for power in Power:
            sc_count = position.get_sc_count(power)
            if sc_count >= needed:
                logger.info(f"VICTORY: {power.value} has {sc_count} supply centers!")
                return power
        return None

    @staticmethod
    def check_draw(phase: Phase, static_years: int, rules: RuleOptions) -> Optional[str]:
        """Reason the game ends in a draw after this adjustment, or None."""
        if rules.max_year is not None and phase.year >= rules.max_year:
            return f"game reached the final year {rules.max_year}"
        if rules.max_static_years is not None and static_years >= rules.max_static_years:
            return f"no supply center changed hands for {static_years} years"
        return None
