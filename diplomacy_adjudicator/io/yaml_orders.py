"""
YAML order file loader for the Diplomacy adjudicator.
Supports structured YAML format with validation and auto-correction.
"""

import logging
from typing import Dict, List, Optional

import yaml

from diplomacy_adjudicator.core.map import Coast, Location, Map, Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, ConvoyOrder, DisbandOrder, HoldOrder, MoveOrder, RetreatOrder,
    SupportHoldOrder, SupportMoveOrder, WaiveOrder
)
from diplomacy_adjudicator.core.position import Position, Unit, UnitType

logger = logging.getLogger(__name__)


class OrderFormatError(ValueError):
    """Raised when an order entry cannot be understood or corrected."""
    pass


def parse_power(text: str) -> Power:
    """Accept 'France', 'FRANCE', 'Austria' or 'Austria-Hungary'."""
    wanted = str(text).strip().lower()
    for power in Power:
        if wanted in (power.value.lower(), power.name.lower()):
            return power
    raise OrderFormatError(f"Unknown power: {text}")


def parse_coast(coast_str: Optional[str]) -> Optional[Coast]:
    """Parse coast specification."""
    if not coast_str:
        return None

    coast_str = str(coast_str).lower().strip()
    if coast_str in ['nc', 'north']:
        return Coast.NORTH
    elif coast_str in ['sc', 'south']:
        return Coast.SOUTH
    elif coast_str in ['ec', 'east']:
        return Coast.EAST
    elif coast_str in ['wc', 'west']:
        return Coast.WEST
    return None


class YAMLOrderLoader:
    """Loads and validates orders from YAML files."""

    ACTION_ALIASES = {
        'm': 'move',
        'h': 'hold',
        's': 'support',
        'c': 'convoy',
        'r': 'retreat',
        'd': 'disband',
        'b': 'build',
        'w': 'waive',
    }

    def __init__(self, position: Position):
        self.position = position
        self.game_map = position.game_map
        self.warnings: List[str] = []
        self.corrections: List[str] = []

    def load_from_file(self, filepath: str) -> Dict:
        """Load YAML order file."""
        with open(filepath, 'r') as f:
            data = yaml.safe_load(f)
        return data or {}

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def parse_orders(self, yaml_data: Dict) -> Dict[Power, List]:
        """
        Parse movement orders from YAML data.
        Returns dict of Power -> list of orders
        """
        orders: Dict[Power, List] = {}
        for order_data in yaml_data.get('orders') or []:
            try:
                order = self._parse_single_order(order_data)
            except (OrderFormatError, ValueError, AttributeError) as e:
                self._warn(f"Failed to parse order {order_data}: {e}")
                continue
            if order is not None:
                orders.setdefault(order.power, []).append(order)
        return orders

    def _parse_single_order(self, order_data: Dict):
        """Parse a single order from YAML data."""
        unit_spec = str(order_data.get('unit', '')).strip()
        if not unit_spec:
            raise OrderFormatError("Missing unit specification")

        unit = self._find_unit(unit_spec)
        if unit is None:
            self._warn(f"Unit not found: {unit_spec}")
            return None

        action = self._normalize_action(order_data.get('action', 'hold'))

        if action == 'hold':
            return HoldOrder(unit)

        elif action == 'move':
            destination = self._parse_location(
                order_data.get('destination'), order_data.get('coast')
            )
            if destination is None:
                raise OrderFormatError("Missing destination for move order")
            return MoveOrder(unit, destination, bool(order_data.get('via_convoy', False)))

        elif action == 'support':
            # Accept both 'supports' and 'supporting' field names
            supported_spec = order_data.get('supports') or order_data.get('supporting') or ''
            supported = self._find_unit(supported_spec)
            if supported is None:
                self._warn(f"Supported unit not found: {supported_spec}")
                return None
            destination = self._parse_location(
                order_data.get('destination'), order_data.get('coast')
            )
            if destination is not None:
                return SupportMoveOrder(unit, supported.location, destination)
            return SupportHoldOrder(unit, supported.location)

        elif action == 'convoy':
            convoyed_spec = (order_data.get('convoys') or order_data.get('convoying')
                             or order_data.get('convoy') or '')
            convoyed = self._find_unit(convoyed_spec)
            if convoyed is None:
                self._warn(f"Convoyed unit not found: {convoyed_spec}")
                return None
            destination = self._parse_location(order_data.get('destination'))
            if destination is None:
                raise OrderFormatError("Missing destination for convoy order")
            return ConvoyOrder(unit, convoyed.location, destination)

        self._warn(f"Unknown action: {action}")
        return None

    def _find_unit(self, unit_spec: str, dislodged: bool = False) -> Optional[Unit]:
        """
        Find a unit from specification like "F Lon", "A Paris" or "F Spa/sc".
        Auto-corrects case and expands province names.
        """
        parts = str(unit_spec).strip().split(None, 1)
        if len(parts) < 2:
            return None

        unit_type = {'A': UnitType.ARMY, 'F': UnitType.FLEET}.get(parts[0].upper())
        if unit_type is None:
            return None

        location = self._parse_location(parts[1])
        if location is None:
            return None

        if dislodged:
            entry = self.position.get_dislodged_unit(location.province)
            unit = entry.unit if entry else None
        else:
            unit = self.position.get_unit_at(location.province)
        if unit is None or unit.unit_type != unit_type:
            return None
        if location.coast is not None and unit.location.coast != location.coast:
            return None
        return unit

    def _normalize_province(self, province: str) -> Optional[str]:
        """
        Normalize province name to standard abbreviation.
        Auto-corrects case and expands full names.
        """
        if not province:
            return None
        province = str(province).strip()
        abbr = self.game_map.find_province(province)
        if abbr is None:
            return None
        if abbr != province:
            if len(province) == len(abbr):
                self.corrections.append(f"Corrected '{province}' to '{abbr}'")
            else:
                self.corrections.append(f"Expanded '{province}' to '{abbr}'")
        return abbr

    def _parse_location(self, text, coast_text=None) -> Optional[Location]:
        """Parse "Spa", "Spa/sc", "Spain (sc)" plus an optional separate coast field."""
        if not text:
            return None
        text = str(text).replace('(', '/').replace(')', '')
        coast = parse_coast(coast_text)
        if '/' in text:
            province_part, coast_part = text.split('/', 1)
            coast = parse_coast(coast_part) or coast
        else:
            province_part = text
        abbr = self._normalize_province(province_part)
        if abbr is None:
            raise OrderFormatError(f"Unknown province: {province_part.strip()}")
        return Location(abbr, coast)

    def _normalize_action(self, action) -> str:
        """Normalize action name with aliases."""
        action = str(action).lower().strip()
        if action in self.ACTION_ALIASES:
            normalized = self.ACTION_ALIASES[action]
            self.corrections.append(f"Expanded action '{action}' to '{normalized}'")
            return normalized
        return action

    def parse_retreats(self, yaml_data: Dict) -> Dict[Power, List]:
        """Parse retreat and disband orders for dislodged units."""
        retreats: Dict[Power, List] = {}
        for retreat_data in yaml_data.get('retreats') or []:
            try:
                unit_spec = retreat_data.get('unit', '')
                unit = self._find_unit(unit_spec, dislodged=True)
                if unit is None:
                    self._warn(f"Unit not found for retreat: {unit_spec}")
                    continue

                action = self._normalize_action(retreat_data.get('action', 'retreat'))
                if action == 'disband':
                    order = DisbandOrder(unit)
                else:
                    destination = self._parse_location(
                        retreat_data.get('destination'), retreat_data.get('coast')
                    )
                    if destination is None:
                        raise OrderFormatError("Missing destination for retreat order")
                    order = RetreatOrder(unit, destination)
                retreats.setdefault(unit.power, []).append(order)
            except (OrderFormatError, ValueError, AttributeError) as e:
                self._warn(f"Failed to parse retreat {retreat_data}: {e}")
        return retreats

    def parse_builds(self, yaml_data: Dict) -> Dict[Power, List]:
        """Parse build and waive orders from YAML data."""
        builds: Dict[Power, List] = {}
        for build_data in yaml_data.get('builds') or []:
            try:
                power = parse_power(build_data.get('power', ''))
                unit_type_str = str(build_data.get('unit_type', '')).lower()
                if unit_type_str in ('army', 'a'):
                    unit_type = UnitType.ARMY
                elif unit_type_str in ('fleet', 'f'):
                    unit_type = UnitType.FLEET
                else:
                    raise OrderFormatError(f"Unknown unit type: {unit_type_str}")
                location = self._parse_location(
                    build_data.get('location'), build_data.get('coast')
                )
                if location is None:
                    raise OrderFormatError("Missing location for build order")
                builds.setdefault(power, []).append(BuildOrder(power, unit_type, location))
            except (OrderFormatError, ValueError, AttributeError) as e:
                self._warn(f"Failed to parse build {build_data}: {e}")

        for waive_data in yaml_data.get('waives') or []:
            try:
                power = parse_power(waive_data.get('power', ''))
                count = int(waive_data.get('count', 1))
                builds.setdefault(power, []).extend(WaiveOrder(power) for _ in range(count))
            except (OrderFormatError, ValueError, AttributeError) as e:
                self._warn(f"Failed to parse waive {waive_data}: {e}")
        return builds

    def parse_disbands(self, yaml_data: Dict) -> Dict[Power, List]:
        """Parse adjustment-phase disband orders from YAML data."""
        disbands: Dict[Power, List] = {}
        for disband_data in yaml_data.get('disbands') or []:
            try:
                unit_spec = disband_data.get('unit', '')
                unit = self._find_unit(unit_spec)
                if unit is None:
                    self._warn(f"Unit not found for disband: {unit_spec}")
                    continue
                if disband_data.get('power') and parse_power(disband_data['power']) != unit.power:
                    self._warn(f"{unit_spec} does not belong to {disband_data['power']}")
                    continue
                disbands.setdefault(unit.power, []).append(DisbandOrder(unit))
            except (OrderFormatError, ValueError, AttributeError) as e:
                self._warn(f"Failed to parse disband {disband_data}: {e}")
        return disbands

    def parse_adjustments(self, yaml_data: Dict) -> Dict[Power, List]:
        """Builds, waives and disbands together, grouped by power."""
        adjustments = self.parse_builds(yaml_data)
        for power, orders in self.parse_disbands(yaml_data).items():
            adjustments.setdefault(power, []).extend(orders)
        return adjustments

    def get_warnings(self) -> List[str]:
        """Get all warnings from parsing."""
        return self.warnings

    def get_corrections(self) -> List[str]:
        """Get all auto-corrections made."""
        return self.corrections


def parse_position(data: Dict, game_map: Map) -> Position:
    """
    Build a position from YAML data of the form:

        units:
          England: [F Lon, A Wal]
          Russia: [F StP/sc]
        supply_centers:
          England: [Lon, Edi]
    """
    position = Position(game_map)
    loader = YAMLOrderLoader(position)
    for power_name, unit_specs in (data.get('units') or {}).items():
        power = parse_power(power_name)
        for spec in unit_specs or []:
            parts = str(spec).split(None, 1)
            unit_type = {'A': UnitType.ARMY, 'F': UnitType.FLEET}.get(parts[0].upper())
            if unit_type is None or len(parts) < 2:
                raise OrderFormatError(f"Invalid unit specification: {spec}")
            location = loader._parse_location(parts[1])
            position.add_unit(Unit(power, unit_type, location))
    for power_name, centers in (data.get('supply_centers') or {}).items():
        power = parse_power(power_name)
        for center in centers or []:
            abbr = loader._normalize_province(center)
            if abbr is None:
                raise OrderFormatError(f"Unknown province: {center}")
            position.set_sc_owner(abbr, power)
    return position


def load_position(filepath: str, game_map: Map) -> Position:
    """Load a position from a YAML file."""
    with open(filepath, 'r') as f:
        data = yaml.safe_load(f) or {}
    return parse_position(data, game_map)
