"""
Resolution engine for the Diplomacy adjudicator.
Turns a position and a set of orders into a new position and a result log
for movement, retreat and adjustment phases.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from diplomacy_adjudicator.core.decisions import DecisionGraph, MoveSpec
from diplomacy_adjudicator.core.errors import AdjudicationError, StateInvariantError
from diplomacy_adjudicator.core.map import Location, Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, ConvoyOrder, DisbandOrder, HoldOrder, MoveOrder, Order, RetreatOrder,
    SupportHoldOrder, SupportMoveOrder, ValidationError, WaiveOrder
)
from diplomacy_adjudicator.core.position import DislodgedUnit, Position, Unit
from diplomacy_adjudicator.core.results import ResultLog, ResultType
from diplomacy_adjudicator.core.rules import RuleOptions

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    """Result of resolving a phase."""
    new_position: Position
    results: ResultLog
    dislodged_units: List[DislodgedUnit] = field(default_factory=list)
    destroyed_units: List[Unit] = field(default_factory=list)
    standoff_provinces: Set[str] = field(default_factory=set)


def _with_rule(message: str, decision) -> str:
    if decision is not None and decision.paradox_rule:
        return f"{message} (decided by the {decision.paradox_rule})"
    return message


class MovementResolver:
    """Resolves movement phase orders."""

    def __init__(self, position: Position, orders: Iterable):
        self.position = position
        self.orders = list(orders)
        self.results = ResultLog()
        # Province -> order followed during adjudication
        self.effective: Dict[str, Order] = {}
        # Province -> order the results are reported against
        self.reported: Dict[str, Order] = {}
        self.invalid: Dict[str, ValidationError] = {}

    def resolve(self) -> ResolutionResult:
        """Validate, adjudicate and apply the orders."""
        if self.position.dislodged_units:
            raise StateInvariantError("Movement phase started with unresolved dislodged units")

        self._collect_orders()
        graph = DecisionGraph(self.position, self.effective)
        graph.resolve()
        result = self._apply(graph)
        self._report(graph, result)
        logger.debug(f"Movement resolved: {len(self.results)} results")
        return result

    def _collect_orders(self) -> None:
        """Pick the order each unit follows. Bad orders become holds."""
        seen: Set[str] = set()
        for order in self.orders:
            if not isinstance(order, Order) or isinstance(order, (RetreatOrder, DisbandOrder)):
                self.results.add(order, ResultType.INVALID, ValidationError.WRONG_PHASE.value)
                continue

            province = order.unit.province
            error = order.validate(self.position)
            if error in (ValidationError.UNIT_NOT_FOUND, ValidationError.UNIT_NOT_OWNED):
                self.results.add(order, ResultType.INVALID, error.value)
                continue

            # Only orders matching the unit on the board compete for it
            if province in seen:
                raise StateInvariantError(f"More than one order for the unit in {province}")
            seen.add(province)

            actual = self.position.get_unit_at(province)
            self.reported[province] = order
            if error is not None:
                self.invalid[province] = error
                self.effective[province] = HoldOrder(actual)
            else:
                self.effective[province] = replace(order, unit=actual)

        for unit in self.position.get_all_units():
            if unit.province not in self.effective:
                hold = HoldOrder(unit)
                self.effective[unit.province] = hold
                self.reported[unit.province] = hold

    def _apply(self, graph: DecisionGraph) -> ResolutionResult:
        """Move units and work out who must retreat."""
        new_position = self.position.clone()
        new_position.units = {}
        moved: Dict[str, MoveSpec] = {}

        try:
            for unit in self.position.get_all_units():
                spec = graph.moves.get(unit.province)
                if spec is not None and spec.move.is_passed:
                    new_position.add_unit(unit.moved_to(spec.destination))
                    moved[unit.province] = spec
                elif not graph.dislodges[unit.province].is_passed:
                    new_position.add_unit(unit)
        except StateInvariantError as e:
            raise AdjudicationError(f"Resolution placed two units together: {e}") from e

        standoffs = set()
        for province in graph.holds:
            if province in new_position.units:
                continue
            if any(spec.path.is_passed and spec.move.is_failed
                   for spec in graph.moves_into(province)):
                standoffs.add(province)

        dislodged_units = []
        destroyed_units = []
        for unit in self.position.get_all_units():
            if not graph.dislodges[unit.province].is_passed:
                continue
            attacker = next(
                spec for spec in graph.moves_into(unit.province) if spec.move.is_passed
            )
            options = tuple(
                loc for loc in self.position.game_map.adjacent_locations(unit.is_fleet, unit.location)
                if loc.province not in new_position.units
                and loc.province not in standoffs
                and (loc.province != attacker.origin or attacker.by_convoy)
            )
            if options:
                dislodged = DislodgedUnit(unit, attacker.origin, attacker.by_convoy, options)
                new_position.dislodged_units[unit.province] = dislodged
                dislodged_units.append(dislodged)
            else:
                destroyed_units.append(unit)

        before = len(self.position.units)
        after = len(new_position.units) + len(dislodged_units) + len(destroyed_units)
        if before != after:
            raise AdjudicationError(f"Unit count changed from {before} to {after} during movement")

        return ResolutionResult(
            new_position=new_position,
            results=self.results,
            dislodged_units=dislodged_units,
            destroyed_units=destroyed_units,
            standoff_provinces=standoffs,
        )

    def _report(self, graph: DecisionGraph, result: ResolutionResult) -> None:
        """Record one or more results for every unit's order."""
        destroyed = {unit.province for unit in result.destroyed_units}

        for province in sorted(self.reported):
            order = self.reported[province]
            effective = self.effective[province]

            if province in self.invalid:
                self.results.add(
                    order, ResultType.INVALID, f"{self.invalid[province].value}; unit holds"
                )
            elif effective in graph.void_orders:
                self.results.add(order, ResultType.VOID, "no matching order from the unit concerned")
            elif isinstance(effective, MoveOrder):
                self._report_move(order, graph.moves[province])
            elif isinstance(effective, (SupportHoldOrder, SupportMoveOrder)):
                support = graph.supports[province]
                if support.is_passed:
                    self.results.add(order, ResultType.SUCCESS, _with_rule("support given", support))
                elif graph.dislodges[province].is_passed:
                    self.results.add(order, ResultType.CUT, "supporting unit dislodged")
                else:
                    self.results.add(order, ResultType.CUT, _with_rule("support cut", support))
            elif isinstance(effective, ConvoyOrder):
                spec = graph.convoys[province]
                if not graph.dislodges[province].is_passed:
                    self.results.add(order, ResultType.SUCCESS, f"convoying {spec.unit}")
            elif not graph.dislodges[province].is_passed:
                self.results.add(order, ResultType.SUCCESS, "held")

            dislodge = graph.dislodges[province]
            if dislodge.is_passed:
                attacker = next(s for s in graph.moves_into(province) if s.move.is_passed)
                self.results.add(
                    order, ResultType.DISLODGED,
                    _with_rule(f"dislodged by {attacker.unit}", attacker.move)
                )
                if province in destroyed:
                    self.results.add(order, ResultType.DESTROYED, "no retreat available")

    def _report_move(self, order: Order, spec: MoveSpec) -> None:
        decision = spec.move
        if decision.is_passed:
            via = " by convoy" if spec.by_convoy else ""
            self.results.add(
                order, ResultType.SUCCESS,
                _with_rule(f"moved to {spec.destination}{via}", decision)
            )
        elif spec.path.is_failed:
            if spec.path.has_any_route():
                self.results.add(order, ResultType.CONVOY_DISRUPTED, "convoying fleet dislodged")
            else:
                self.results.add(order, ResultType.NO_CONVOY, "no convoy route ordered")
        elif spec.head_to_head and spec.opponent.move.is_passed:
            self.results.add(
                order, ResultType.BOUNCED,
                _with_rule(f"lost head-to-head battle with {spec.opponent.unit}", decision)
            )
        else:
            self.results.add(
                order, ResultType.BOUNCED,
                _with_rule(f"bounced at {spec.destination.province}", decision)
            )


class RetreatResolver:
    """Resolves retreat phase orders."""

    def __init__(self, position: Position, orders: Iterable):
        self.position = position
        self.orders = list(orders)
        self.results = ResultLog()

    def resolve(self) -> ResolutionResult:
        """Resolve retreat orders. Units without a usable retreat are disbanded."""
        new_position = self.position.clone()
        new_position.dislodged_units = {}

        chosen: Dict[str, Order] = {}
        for order in self.orders:
            if not isinstance(order, (RetreatOrder, DisbandOrder)):
                self.results.add(order, ResultType.INVALID, ValidationError.WRONG_PHASE.value)
                continue
            province = order.unit.province
            error = order.validate(self.position)
            if self.position.get_dislodged_unit(province) is None:
                error = ValidationError.UNIT_NOT_FOUND
            if error in (ValidationError.UNIT_NOT_FOUND, ValidationError.UNIT_NOT_OWNED):
                self.results.add(order, ResultType.INVALID, error.value)
                continue

            if province in chosen:
                raise StateInvariantError(f"More than one order for the unit in {province}")
            if error is not None:
                self.results.add(order, ResultType.INVALID, f"{error.value}; unit disbanded")
                chosen[province] = None
                continue
            chosen[province] = order

        retreats: Dict[str, List[Tuple[RetreatOrder, Location]]] = {}
        destroyed = []
        for province in sorted(self.position.dislodged_units):
            dislodged = self.position.dislodged_units[province]
            order = chosen.get(province, DisbandOrder(dislodged.unit))
            if isinstance(order, RetreatOrder):
                destination = order.resolved_destination(self.position)
                retreats.setdefault(destination.province, []).append((order, destination))
                continue
            if order is not None:
                self.results.add(order, ResultType.SUCCESS, "disbanded")
            destroyed.append(dislodged.unit)

        for province in sorted(retreats):
            contenders = retreats[province]
            if len(contenders) == 1:
                order, destination = contenders[0]
                new_position.add_unit(order.unit.moved_to(destination))
                self.results.add(order, ResultType.SUCCESS, f"retreated to {destination}")
                continue
            for order, _ in contenders:
                self.results.add(order, ResultType.BOUNCED, f"retreat bounced at {province}")
                self.results.add(order, ResultType.DESTROYED, "unit disbanded")
                destroyed.append(self.position.get_dislodged_unit(order.unit.province).unit)

        logger.debug(f"Retreats resolved: {len(destroyed)} units disbanded")
        return ResolutionResult(
            new_position=new_position,
            results=self.results,
            destroyed_units=destroyed,
        )


class AdjustmentResolver:
    """Resolves adjustment phase builds, waives and disbands."""

    def __init__(
        self,
        position: Position,
        orders: Dict[Power, Optional[List]],
        rules: Optional[RuleOptions] = None
    ):
        self.position = position
        self.orders = orders
        self.rules = rules or RuleOptions()
        self.results = ResultLog()

    def resolve(self) -> ResolutionResult:
        """Resolve adjustments for every power."""
        new_position = self.position.clone()
        destroyed: List[Unit] = []

        for power in Power:
            adjustment = self.position.get_sc_count(power) - self.position.get_unit_count(power)
            power_orders = self.orders.get(power)
            if adjustment > 0:
                self._resolve_builds(new_position, power, adjustment, power_orders)
            elif adjustment < 0:
                destroyed.extend(
                    self._resolve_disbands(new_position, power, -adjustment, power_orders)
                )
            elif power_orders:
                for order in power_orders:
                    self.results.add(order, ResultType.INVALID, ValidationError.ADJUSTMENT_COUNT.value)

        for power in Power:
            had_something = (self.position.get_unit_count(power)
                             or self.position.get_sc_count(power))
            if had_something and new_position.is_eliminated(power):
                self.results.add_general(
                    ResultType.ELIMINATED, f"{power.value} has been eliminated", power
                )
                logger.info(f"{power.value} eliminated")

        return ResolutionResult(
            new_position=new_position,
            results=self.results,
            destroyed_units=destroyed,
        )

    def _resolve_builds(
        self,
        new_position: Position,
        power: Power,
        allowed: int,
        orders: Optional[List]
    ) -> None:
        if orders is None:
            for _ in range(allowed):
                self.results.add(WaiveOrder(power), ResultType.SUCCESS, "build waived (civil disorder)")
            return

        used = 0
        for order in orders:
            if used >= allowed:
                self.results.add(order, ResultType.INVALID, ValidationError.ADJUSTMENT_COUNT.value)
                continue
            if isinstance(order, WaiveOrder):
                self.results.add(order, ResultType.SUCCESS, "build waived")
                used += 1
                continue
            if not isinstance(order, BuildOrder) or order.power != power:
                self.results.add(order, ResultType.INVALID, ValidationError.WRONG_PHASE.value)
                continue
            error = order.validate(new_position, self.rules.build_rule)
            if error is not None:
                self.results.add(order, ResultType.INVALID, error.value)
                continue
            new_position.add_unit(order.to_unit())
            self.results.add(order, ResultType.SUCCESS, f"built {order.unit_type.value.lower()}")
            used += 1

    def _resolve_disbands(
        self,
        new_position: Position,
        power: Power,
        required: int,
        orders: Optional[List]
    ) -> List[Unit]:
        removed: List[Unit] = []
        for order in orders or []:
            if len(removed) >= required:
                self.results.add(order, ResultType.INVALID, ValidationError.ADJUSTMENT_COUNT.value)
                continue
            if not isinstance(order, DisbandOrder):
                self.results.add(order, ResultType.INVALID, ValidationError.WRONG_PHASE.value)
                continue
            error = order.validate(new_position)
            if error is not None or order.power != power:
                kind = error or ValidationError.UNIT_NOT_OWNED
                self.results.add(order, ResultType.INVALID, kind.value)
                continue
            removed.append(new_position.remove_unit(order.unit.province))
            self.results.add(order, ResultType.SUCCESS, "disbanded")

        if len(removed) < required:
            for unit in self.civil_disorder_disbands(new_position, power, required - len(removed)):
                new_position.remove_unit(unit.province)
                removed.append(unit)
                self.results.add(DisbandOrder(unit), ResultType.SUCCESS, "disbanded (civil disorder)")
        return removed

    @staticmethod
    def civil_disorder_disbands(position: Position, power: Power, count: int) -> List[Unit]:
        """
        Units removed for a power that did not order enough disbands: those
        farthest from its owned home centers first, ties by province name.
        """
        game_map = position.game_map
        homes = [p.name for p in game_map.get_home_centers(power)]
        targets = [abbr for abbr in homes if position.get_sc_owner(abbr) == power] or homes

        def priority(unit: Unit):
            return (-game_map.distance(unit.province, targets), unit.province.lower())

        return sorted(position.get_units_by_power(power), key=priority)[:count]


def resolve_movement_phase(position: Position, orders: Iterable) -> ResolutionResult:
    """Convenience function to resolve a movement phase."""
    resolver = MovementResolver(position, orders)
    return resolver.resolve()


def resolve_retreat_phase(position: Position, orders: Iterable) -> ResolutionResult:
    """Convenience function to resolve a retreat phase."""
    resolver = RetreatResolver(position, orders)
    return resolver.resolve()


def resolve_adjustment_phase(
    position: Position,
    orders: Dict[Power, Optional[List]],
    rules: Optional[RuleOptions] = None
) -> ResolutionResult:
    """Convenience function to resolve an adjustment phase."""
    resolver = AdjustmentResolver(position, orders, rules)
    return resolver.resolve()
