"""
Position module for the Diplomacy adjudicator.
Represents units, supply-center ownership and dislodged units for one phase.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from diplomacy_adjudicator.core.errors import StateInvariantError
from diplomacy_adjudicator.core.map import Coast, Location, Map, Power, create_standard_map


class UnitType(Enum):
    """Type of military unit."""
    ARMY = "Army"
    FLEET = "Fleet"

    @property
    def abbreviation(self) -> str:
        return self.value[0]


@dataclass(frozen=True)
class Unit:
    """A military unit on the board."""
    power: Power
    unit_type: UnitType
    location: Location

    def __post_init__(self):
        if self.unit_type == UnitType.ARMY and self.location.coast is not None:
            raise ValueError("Armies cannot have a coast specification")

    @property
    def province(self) -> str:
        return self.location.province

    @property
    def is_fleet(self) -> bool:
        return self.unit_type == UnitType.FLEET

    def moved_to(self, location: Location) -> 'Unit':
        """The same unit standing somewhere else."""
        return Unit(self.power, self.unit_type, location)

    def __repr__(self) -> str:
        return f"{self.unit_type.abbreviation} {self.location}"


@dataclass
class DislodgedUnit:
    """
    A unit driven out of its province, waiting for the retreat phase.

    `retreat_options` stays None until movement resolution has computed it.
    """
    unit: Unit
    attacker_origin: str
    by_convoy: bool = False
    retreat_options: Optional[Tuple[Location, ...]] = None

    def get_retreat_options(self) -> Tuple[Location, ...]:
        if self.retreat_options is None:
            raise StateInvariantError(
                f"Retreat options for {self.unit} requested before they were computed"
            )
        return self.retreat_options


class Position:
    """
    Snapshot of the board: units keyed by province, supply-center owners and
    units awaiting retreat.
    """

    def __init__(self, game_map: Map):
        self.game_map = game_map
        self.units: Dict[str, Unit] = {}
        self.supply_centers: Dict[str, Power] = {}
        self.dislodged_units: Dict[str, DislodgedUnit] = {}

    def add_unit(self, unit: Unit) -> None:
        """Place a unit. Raises StateInvariantError if the province is taken."""
        if self.game_map.get_province(unit.province) is None:
            raise StateInvariantError(f"Unknown province: {unit.province}")
        existing = self.units.get(unit.province)
        if existing is not None:
            raise StateInvariantError(
                f"Cannot place {unit}: {unit.province} is already occupied by {existing}"
            )
        self.units[unit.province] = unit

    def remove_unit(self, province: str) -> Optional[Unit]:
        return self.units.pop(province, None)

    def get_unit_at(self, province: str) -> Optional[Unit]:
        """Get the non-dislodged unit in a province."""
        return self.units.get(province)

    def get_all_units(self) -> List[Unit]:
        return [self.units[abbr] for abbr in sorted(self.units)]

    def get_units_by_power(self, power: Power) -> List[Unit]:
        return [unit for unit in self.get_all_units() if unit.power == power]

    def get_unit_count(self, power: Power) -> int:
        return len(self.get_units_by_power(power))

    def get_sc_count(self, power: Power) -> int:
        return sum(1 for owner in self.supply_centers.values() if owner == power)

    def get_sc_owner(self, province: str) -> Optional[Power]:
        return self.supply_centers.get(province)

    def set_sc_owner(self, province: str, power: Optional[Power]) -> None:
        """Set the owner of a supply center."""
        if power is None:
            self.supply_centers.pop(province, None)
        else:
            self.supply_centers[province] = power

    def get_owned_centers(self, power: Power) -> List[str]:
        return sorted(abbr for abbr, owner in self.supply_centers.items() if owner == power)

    def get_dislodged_unit(self, province: str) -> Optional[DislodgedUnit]:
        return self.dislodged_units.get(province)

    def is_eliminated(self, power: Power) -> bool:
        """A power with no units, no dislodged units and no centers is out."""
        if self.get_sc_count(power) or self.get_unit_count(power):
            return False
        return not any(d.unit.power == power for d in self.dislodged_units.values())

    def clone(self) -> 'Position':
        """Copy of this position; units are immutable so sharing them is safe."""
        new_position = Position(self.game_map)
        new_position.units = dict(self.units)
        new_position.supply_centers = dict(self.supply_centers)
        new_position.dislodged_units = {
            abbr: DislodgedUnit(d.unit, d.attacker_origin, d.by_convoy, d.retreat_options)
            for abbr, d in self.dislodged_units.items()
        }
        return new_position


def create_starting_position(game_map: Optional[Map] = None) -> Position:
    """Create the standard 1901 starting position."""
    game_map = game_map or create_standard_map()
    position = Position(game_map)

    starting_units = [
        # England
        (Power.ENGLAND, UnitType.FLEET, "Lon", None),
        (Power.ENGLAND, UnitType.FLEET, "Edi", None),
        (Power.ENGLAND, UnitType.ARMY, "Lvp", None),

        # France
        (Power.FRANCE, UnitType.ARMY, "Par", None),
        (Power.FRANCE, UnitType.ARMY, "Mar", None),
        (Power.FRANCE, UnitType.FLEET, "Bre", None),

        # Germany
        (Power.GERMANY, UnitType.ARMY, "Ber", None),
        (Power.GERMANY, UnitType.ARMY, "Mun", None),
        (Power.GERMANY, UnitType.FLEET, "Kie", None),

        # Italy
        (Power.ITALY, UnitType.ARMY, "Rom", None),
        (Power.ITALY, UnitType.ARMY, "Ven", None),
        (Power.ITALY, UnitType.FLEET, "Nap", None),

        # Austria-Hungary
        (Power.AUSTRIA, UnitType.ARMY, "Vie", None),
        (Power.AUSTRIA, UnitType.ARMY, "Bud", None),
        (Power.AUSTRIA, UnitType.FLEET, "Tri", None),

        # Russia
        (Power.RUSSIA, UnitType.ARMY, "Mos", None),
        (Power.RUSSIA, UnitType.FLEET, "Sev", None),
        (Power.RUSSIA, UnitType.ARMY, "War", None),
        (Power.RUSSIA, UnitType.FLEET, "StP", Coast.SOUTH),

        # Turkey
        (Power.TURKEY, UnitType.ARMY, "Con", None),
        (Power.TURKEY, UnitType.ARMY, "Smy", None),
        (Power.TURKEY, UnitType.FLEET, "Ank", None),
    ]

    for power, unit_type, abbr, coast in starting_units:
        position.add_unit(Unit(power, unit_type, Location(abbr, coast)))

    for power in Power:
        for province in game_map.get_home_centers(power):
            position.set_sc_owner(province.name, power)

    return position
