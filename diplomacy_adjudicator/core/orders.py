"""
Order system for the Diplomacy adjudicator.
Defines the order types, their local validation and a text parser.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from diplomacy_adjudicator.core.map import Location, Power
from diplomacy_adjudicator.core.position import Position, Unit, UnitType
from diplomacy_adjudicator.core.rules import BuildRule


class ValidationError(Enum):
    """Reasons an order can be rejected."""
    UNIT_NOT_FOUND = "unit not found"
    UNIT_NOT_OWNED = "unit not owned by ordering power"
    ILLEGAL_DESTINATION = "illegal destination"
    WRONG_UNIT_KIND = "wrong unit kind for order"
    AMBIGUOUS_COAST = "ambiguous coast"
    SUPPORT_TARGET_INVALID = "invalid support target"
    CONVOY_ROUTE_IMPOSSIBLE = "convoy route impossible"
    WRONG_PHASE = "order not allowed in this phase"
    BUILD_SITE_INVALID = "invalid build site"
    ADJUSTMENT_COUNT = "wrong number of adjustment orders"
    DUPLICATE_ORDER = "more than one order for a unit"


def _check_unit(unit: Unit, position: Position) -> Optional[ValidationError]:
    """Check that the ordered unit is on the board as described."""
    actual = position.get_unit_at(unit.province)
    if actual is None:
        return ValidationError.UNIT_NOT_FOUND
    if actual.unit_type != unit.unit_type or not actual.location.matches(unit.location):
        return ValidationError.UNIT_NOT_FOUND
    if actual.power != unit.power:
        return ValidationError.UNIT_NOT_OWNED
    return None


def _can_reach(position: Position, unit: Unit, province: str) -> bool:
    """Whether a unit could move to a province, by convoy if it is an army."""
    game_map = position.game_map
    if unit.is_fleet:
        return bool(game_map.fleet_coasts_to(unit.location, province))
    target = game_map.get_province(province)
    if target is None or target.is_sea():
        return False
    return (game_map.is_adjacent(False, unit.location, Location(province))
            or game_map.can_convoy(unit.province, province))


@dataclass(frozen=True)
class Order:
    """Base class for orders given to a single unit."""
    unit: Unit

    @property
    def power(self) -> Power:
        return self.unit.power

    @property
    def sort_key(self) -> str:
        return str(self.unit.location)

    def validate(self, position: Position) -> Optional[ValidationError]:
        """Return the reason this order is illegal, or None."""
        return _check_unit(self.unit, position)

    def to_string(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class HoldOrder(Order):
    """Order for a unit to hold its current position."""

    def to_string(self) -> str:
        return f"{self.unit} H"


@dataclass(frozen=True)
class MoveOrder(Order):
    """Order for a unit to move to an adjacent province, or by convoy."""
    destination: Location = None
    via_convoy: bool = False

    def validate(self, position: Position) -> Optional[ValidationError]:
        """
        Check the move:
        - destination exists and differs from the unit's province
        - armies move by land, or by convoy when a sea route exists
        - fleets follow coast-specific adjacency and name a coast when
          more than one coast of the destination is reachable
        """
        error = super().validate(position)
        if error:
            return error

        game_map = position.game_map
        dest_province = game_map.get_province(self.destination.province)
        if dest_province is None or self.destination.province == self.unit.province:
            return ValidationError.ILLEGAL_DESTINATION

        if self.unit.unit_type == UnitType.ARMY:
            if dest_province.is_sea():
                return ValidationError.ILLEGAL_DESTINATION
            convoyable = game_map.can_convoy(self.unit.province, dest_province.name)
            if self.via_convoy:
                return None if convoyable else ValidationError.CONVOY_ROUTE_IMPOSSIBLE
            if game_map.is_adjacent(False, self.unit.location, self.destination.bare()):
                return None
            return None if convoyable else ValidationError.ILLEGAL_DESTINATION

        if self.via_convoy:
            return ValidationError.WRONG_UNIT_KIND
        reachable = game_map.fleet_coasts_to(self.unit.location, dest_province.name)
        if not reachable:
            return ValidationError.ILLEGAL_DESTINATION
        if self.destination.coast is not None:
            if self.destination not in reachable:
                return ValidationError.ILLEGAL_DESTINATION
        elif dest_province.has_multiple_coasts() and len(reachable) > 1:
            return ValidationError.AMBIGUOUS_COAST
        return None

    def resolved_destination(self, position: Position) -> Location:
        """The destination with the coast filled in where only one fits."""
        if self.unit.unit_type == UnitType.ARMY:
            return self.destination.bare()
        if self.destination.coast is None:
            reachable = position.game_map.fleet_coasts_to(
                self.unit.location, self.destination.province
            )
            if len(reachable) == 1:
                return reachable[0]
        return self.destination

    def to_string(self) -> str:
        convoy_str = " via convoy" if self.via_convoy else ""
        return f"{self.unit} - {self.destination}{convoy_str}"


@dataclass(frozen=True)
class SupportHoldOrder(Order):
    """Order for a unit to support another unit in place."""
    supported: Location = None

    def validate(self, position: Position) -> Optional[ValidationError]:
        error = super().validate(position)
        if error:
            return error
        if self.supported.province == self.unit.province:
            return ValidationError.SUPPORT_TARGET_INVALID
        if position.get_unit_at(self.supported.province) is None:
            return ValidationError.SUPPORT_TARGET_INVALID
        if not position.game_map.is_adjacent(
            self.unit.is_fleet, self.unit.location, self.supported.bare()
        ):
            return ValidationError.SUPPORT_TARGET_INVALID
        return None

    def to_string(self) -> str:
        return f"{self.unit} S {self.supported}"


@dataclass(frozen=True)
class SupportMoveOrder(Order):
    """Order for a unit to support another unit's move."""
    supported: Location = None
    destination: Location = None

    def validate(self, position: Position) -> Optional[ValidationError]:
        """
        The supporter must reach the destination province without a convoy,
        and the supported unit must be able to make the move itself.
        """
        error = super().validate(position)
        if error:
            return error
        supported_unit = position.get_unit_at(self.supported.province)
        if supported_unit is None or supported_unit == self.unit:
            return ValidationError.SUPPORT_TARGET_INVALID
        if self.destination.province in (self.supported.province, self.unit.province):
            return ValidationError.SUPPORT_TARGET_INVALID
        if position.game_map.get_province(self.destination.province) is None:
            return ValidationError.SUPPORT_TARGET_INVALID
        if not position.game_map.is_adjacent(
            self.unit.is_fleet, self.unit.location, self.destination.bare()
        ):
            return ValidationError.SUPPORT_TARGET_INVALID
        if not _can_reach(position, supported_unit, self.destination.province):
            return ValidationError.SUPPORT_TARGET_INVALID
        return None

    def to_string(self) -> str:
        return f"{self.unit} S {self.supported} - {self.destination}"


@dataclass(frozen=True)
class ConvoyOrder(Order):
    """Order for a fleet to convoy an army across water."""
    convoyed: Location = None
    destination: Location = None

    def validate(self, position: Position) -> Optional[ValidationError]:
        error = super().validate(position)
        if error:
            return error
        game_map = position.game_map
        if self.unit.unit_type != UnitType.FLEET:
            return ValidationError.WRONG_UNIT_KIND
        if not game_map.get_province(self.unit.province).convoy_capable:
            return ValidationError.CONVOY_ROUTE_IMPOSSIBLE

        army = position.get_unit_at(self.convoyed.province)
        if army is None:
            return ValidationError.UNIT_NOT_FOUND
        if army.unit_type != UnitType.ARMY:
            return ValidationError.WRONG_UNIT_KIND
        if game_map.get_province(self.destination.province) is None:
            return ValidationError.ILLEGAL_DESTINATION
        if not game_map.can_convoy(army.province, self.destination.province):
            return ValidationError.CONVOY_ROUTE_IMPOSSIBLE
        return None

    def to_string(self) -> str:
        return f"{self.unit} C A {self.convoyed} - {self.destination}"


@dataclass(frozen=True)
class RetreatOrder(Order):
    """Order for a dislodged unit to retreat."""
    destination: Location = None

    def validate(self, position: Position) -> Optional[ValidationError]:
        dislodged = position.get_dislodged_unit(self.unit.province)
        if dislodged is None or dislodged.unit.unit_type != self.unit.unit_type:
            return ValidationError.UNIT_NOT_FOUND
        if dislodged.unit.power != self.unit.power:
            return ValidationError.UNIT_NOT_OWNED
        matching = [
            option for option in dislodged.get_retreat_options()
            if self.destination.matches(option)
        ]
        if not matching:
            return ValidationError.ILLEGAL_DESTINATION
        if len(matching) > 1:
            return ValidationError.AMBIGUOUS_COAST
        return None

    def resolved_destination(self, position: Position) -> Location:
        dislodged = position.get_dislodged_unit(self.unit.province)
        for option in dislodged.get_retreat_options():
            if self.destination.matches(option):
                return option
        return self.destination

    def to_string(self) -> str:
        return f"{self.unit} R {self.destination}"


@dataclass(frozen=True)
class DisbandOrder(Order):
    """Order to disband a unit, either a dislodged one or one on the board."""

    def validate(self, position: Position) -> Optional[ValidationError]:
        dislodged = position.get_dislodged_unit(self.unit.province)
        if dislodged is not None and dislodged.unit.unit_type == self.unit.unit_type:
            if dislodged.unit.power != self.unit.power:
                return ValidationError.UNIT_NOT_OWNED
            return None
        return super().validate(position)

    def to_string(self) -> str:
        return f"{self.unit} D"


@dataclass(frozen=True)
class BuildOrder:
    """Order to build a new unit (adjustment phase only)."""
    power: Power
    unit_type: UnitType
    location: Location

    @property
    def sort_key(self) -> str:
        return str(self.location)

    def validate(
        self,
        position: Position,
        build_rule: BuildRule = BuildRule.HOME_ONLY
    ) -> Optional[ValidationError]:
        """
        Check if build is valid:
        - location is a supply center owned by the power
        - it is one of the power's home centers, unless any owned center may be used
        - it is vacant
        - the terrain suits the unit, with a coast named where needed
        """
        province = position.game_map.get_province(self.location.province)
        if province is None or not province.is_supply_center:
            return ValidationError.BUILD_SITE_INVALID
        if position.get_sc_owner(province.name) != self.power:
            return ValidationError.BUILD_SITE_INVALID
        if build_rule == BuildRule.HOME_ONLY and province.home_center_of != self.power:
            return ValidationError.BUILD_SITE_INVALID
        if position.get_unit_at(province.name) is not None:
            return ValidationError.BUILD_SITE_INVALID

        if self.unit_type == UnitType.ARMY:
            if province.is_sea():
                return ValidationError.WRONG_UNIT_KIND
            if self.location.coast is not None:
                return ValidationError.BUILD_SITE_INVALID
            return None

        if province.is_land():
            return ValidationError.WRONG_UNIT_KIND
        if province.has_multiple_coasts():
            if self.location.coast is None:
                return ValidationError.AMBIGUOUS_COAST
            if self.location.coast not in province.coasts:
                return ValidationError.BUILD_SITE_INVALID
        elif self.location.coast is not None:
            return ValidationError.BUILD_SITE_INVALID
        return None

    def to_unit(self) -> Unit:
        return Unit(self.power, self.unit_type, self.location)

    def to_string(self) -> str:
        return f"Build {self.unit_type.abbreviation} {self.location}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class WaiveOrder:
    """Order declining one owed build."""
    power: Power

    @property
    def sort_key(self) -> str:
        return f"~{self.power.value}"

    def validate(self, position: Position, build_rule: BuildRule = BuildRule.HOME_ONLY):
        return None

    def to_string(self) -> str:
        return f"{self.power.value} waives a build"

    def __str__(self) -> str:
        return self.to_string()


class OrderParser:
    """Parse order strings into Order objects."""

    UNIT_TYPES = {"A": UnitType.ARMY, "F": UnitType.FLEET}

    @staticmethod
    def _tokens(order_str: str) -> list:
        text = order_str.replace("->", " - ").replace(" (", "/").replace("(", "/").replace(")", "")
        tokens = []
        for part in text.split():
            # "Par-Bur" style moves
            if "-" in part and part != "-":
                first, second = part.split("-", 1)
                tokens.extend(t for t in (first, "-", second) if t)
            else:
                tokens.append(part)
        return tokens

    @staticmethod
    def _unit_at(
        position: Position,
        unit_code: str,
        location: str,
        power: Optional[Power],
        dislodged_first: bool = False
    ):
        loc = Location.parse(location)
        unit_type = OrderParser.UNIT_TYPES.get(unit_code.upper())
        if unit_type is None:
            return None
        dislodged = position.get_dislodged_unit(loc.province)
        unit = position.get_unit_at(loc.province)
        # Retreat orders name the dislodged unit, not the one that replaced it
        if dislodged is not None and (dislodged_first or unit is None):
            unit = dislodged.unit
        if unit is not None and unit.unit_type == unit_type:
            return unit
        if power is None:
            return None
        # Describe the unit as written so validation reports it
        if unit_type == UnitType.ARMY:
            loc = loc.bare()
        return Unit(power, unit_type, loc)

    @staticmethod
    def parse_order(order_str: str, position: Position, power: Optional[Power] = None):
        """
        Parse an order string into an Order object.

        Format examples:
        - "A Par H" - Army Paris holds
        - "A Par - Bur" or "A Par-Bur" - Army Paris to Burgundy
        - "F MAO - Spa/nc" - Fleet to the north coast of Spain
        - "F Bre S A Par - Pic" - Fleet Brest supports Army Paris to Picardy
        - "F Bre S A Par" - Fleet Brest supports Army Paris (hold)
        - "F NTH C A Lon - Bel" - Fleet North Sea convoys Army London to Belgium
        - "A Lon - Bel via convoy" - Army London to Belgium via convoy
        - "F Tri R Alb" - retreat, "A Mun D" - disband
        - "Build A Par", "Waive" - adjustments (need `power`)

        Returns None when the text cannot be understood.
        """
        parts = OrderParser._tokens(order_str.strip())
        if not parts:
            return None

        keyword = parts[0].lower()
        if keyword == "build" and len(parts) >= 3 and power is not None:
            unit_type = OrderParser.UNIT_TYPES.get(parts[1].upper())
            if unit_type is None:
                return None
            return BuildOrder(power, unit_type, Location.parse(parts[2]))
        if keyword == "waive" and power is not None:
            return WaiveOrder(power)

        if len(parts) < 2:
            return None
        rest = parts[2:]
        retreating = bool(rest) and rest[0].upper() in ("R", "D")
        unit = OrderParser._unit_at(position, parts[0], parts[1], power, retreating)
        if unit is None:
            return None

        via_convoy = "convoy" in order_str.lower()
        if not rest or rest[0].upper() == "H":
            return HoldOrder(unit)

        action = rest[0].upper()
        if action == "-" and len(rest) >= 2:
            return MoveOrder(unit, Location.parse(rest[1]), via_convoy=via_convoy)
        if action == "R" and len(rest) >= 2:
            return RetreatOrder(unit, Location.parse(rest[1]))
        if action == "D":
            return DisbandOrder(unit)
        if action == "S" and len(rest) >= 3:
            # Skip the unit type of the supported unit
            supported = Location.parse(rest[2])
            if len(rest) >= 5 and rest[3] == "-":
                return SupportMoveOrder(unit, supported, Location.parse(rest[4]))
            return SupportHoldOrder(unit, supported)
        if action == "C" and len(rest) >= 5 and rest[3] == "-":
            return ConvoyOrder(unit, Location.parse(rest[2]), Location.parse(rest[4]))
        return None
