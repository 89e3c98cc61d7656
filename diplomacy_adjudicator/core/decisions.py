"""
Decision graph for movement adjudication.

Each order is broken into decisions that depend on one another:

- PATH: does a move have a way to its destination (convoys only)?
- ATTACK / PREVENT / DEFEND: strength of a move against the occupant,
  against rival moves, and in a head-to-head battle.
- HOLD: strength of whatever stays in a province that is moved into.
- SUPPORT: is a matching support given or cut?
- MOVE: does a move succeed?
- DISLODGE: is a unit driven out?

Yes/no decisions start undecided and are settled once. Strength decisions
carry a [min, max] range that only narrows. The graph is evaluated in passes
until nothing is undecided; when a pass makes no progress the smallest
self-contained group of undecided decisions is settled by a paradox rule.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from diplomacy_adjudicator.core.errors import AdjudicationError
from diplomacy_adjudicator.core.map import Location
from diplomacy_adjudicator.core.orders import (
    ConvoyOrder, MoveOrder, Order, SupportHoldOrder, SupportMoveOrder
)
from diplomacy_adjudicator.core.position import Position, Unit

logger = logging.getLogger(__name__)


CIRCULAR_MOVEMENT_RULE = "circular movement rule"
CONVOY_PARADOX_RULE = "convoy paradox rule"
SUPPORT_DEADLOCK_RULE = "paradox fallback rule"


def _support_range(supports: List['SupportDecision'], excluded_power=None) -> Tuple[int, int]:
    """Count given and possibly given supports, ignoring one power's supports."""
    counted = [s for s in supports if s.order.power != excluded_power]
    given = sum(1 for s in counted if s.passed is True)
    possible = sum(1 for s in counted if s.passed is not False)
    return given, possible


class Decision:
    """Base class for a single decision in the graph."""
    kind = "decision"
    rank = 0

    def __init__(self, subject: str):
        self.subject = subject
        self.depends: List['Decision'] = []
        self.paradox_rule: Optional[str] = None

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.rank, self.subject)

    def is_decided(self) -> bool:
        raise NotImplementedError

    def update(self) -> bool:
        """Recalculate from dependencies. Returns True if anything changed."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.kind.upper()}({self.subject}) = {self.state()}"

    def state(self) -> str:
        raise NotImplementedError


class TristateDecision(Decision):
    """A decision that is undecided, passed or failed."""

    def __init__(self, subject: str):
        super().__init__(subject)
        self.passed: Optional[bool] = None

    def is_decided(self) -> bool:
        return self.passed is not None

    @property
    def is_passed(self) -> bool:
        return self.passed is True

    @property
    def is_failed(self) -> bool:
        return self.passed is False

    def decide(self, value: bool, rule: Optional[str] = None) -> bool:
        if self.passed is not None:
            if self.passed != value:
                raise AdjudicationError(f"{self!r} cannot change to {value}")
            return False
        self.passed = value
        self.paradox_rule = rule
        return True

    def evaluate(self) -> Optional[bool]:
        raise NotImplementedError

    def update(self) -> bool:
        if self.passed is not None:
            return False
        value = self.evaluate()
        if value is None:
            return False
        return self.decide(value)

    def state(self) -> str:
        return {None: "undecided", True: "passed", False: "failed"}[self.passed]


class StrengthDecision(Decision):
    """A numeric decision with bounds that only narrow."""

    def __init__(self, subject: str, ceiling: int):
        super().__init__(subject)
        self.min_value = 0
        self.max_value = ceiling

    def is_decided(self) -> bool:
        return self.min_value == self.max_value

    def evaluate(self) -> Tuple[int, int]:
        raise NotImplementedError

    def update(self) -> bool:
        low, high = self.evaluate()
        low = max(self.min_value, low)
        high = min(self.max_value, high)
        if low > high:
            raise AdjudicationError(f"{self!r} has no consistent value in [{low}, {high}]")
        changed = (low, high) != (self.min_value, self.max_value)
        self.min_value, self.max_value = low, high
        return changed

    def state(self) -> str:
        if self.is_decided():
            return str(self.min_value)
        return f"[{self.min_value}, {self.max_value}]"


@dataclass(eq=False)
class MoveSpec:
    """A move as the adjudicator sees it, with its decisions."""
    order: MoveOrder
    unit: Unit
    destination: Location
    by_convoy: bool
    supports: List['SupportDecision'] = field(default_factory=list)
    convoy_fleets: List[str] = field(default_factory=list)
    opponent: Optional['MoveSpec'] = None
    path: 'PathDecision' = None
    attack: 'AttackDecision' = None
    prevent: 'PreventDecision' = None
    defend: 'DefendDecision' = None
    move: 'MoveDecision' = None

    @property
    def origin(self) -> str:
        return self.unit.province

    @property
    def target(self) -> str:
        return self.destination.province

    @property
    def head_to_head(self) -> bool:
        return self.opponent is not None


class PathDecision(TristateDecision):
    """Whether a convoyed army has an intact chain of fleets."""
    kind = "path"
    rank = 1

    def __init__(self, spec: MoveSpec, graph: 'DecisionGraph'):
        super().__init__(str(spec.order))
        self.spec = spec
        self.graph = graph
        if not spec.by_convoy:
            self.passed = True

    def link(self) -> None:
        self.depends = [self.graph.dislodges[p] for p in self.spec.convoy_fleets]

    def _route(self, fleets: List[str]) -> Optional[List[str]]:
        return self.graph.position.game_map.find_convoy_path(
            self.spec.origin, self.spec.target, fleets
        )

    def evaluate(self) -> Optional[bool]:
        fleets = self.spec.convoy_fleets
        safe = [p for p in fleets if self.graph.dislodges[p].is_failed]
        if self._route(safe) is not None:
            return True
        possible = [p for p in fleets if not self.graph.dislodges[p].is_passed]
        if self._route(possible) is None:
            return False
        return None

    def has_any_route(self) -> bool:
        return self._route(self.spec.convoy_fleets) is not None


class AttackDecision(StrengthDecision):
    """Strength of a move against whatever stays in its destination."""
    kind = "attack"
    rank = 2

    def __init__(self, spec: MoveSpec, graph: 'DecisionGraph'):
        super().__init__(str(spec.order), 1 + len(spec.supports))
        self.spec = spec
        self.graph = graph
        self.occupant = graph.position.get_unit_at(spec.target)
        self.occupant_move = graph.moves.get(spec.target)

    def link(self) -> None:
        self.depends = [self.spec.path] + list(self.spec.supports)
        if self.occupant_move is not None and not self.spec.head_to_head:
            self.depends.append(self.occupant_move.move)

    def _staying(self) -> Tuple[int, int]:
        if self.occupant.power == self.spec.unit.power:
            return 0, 0
        given, possible = _support_range(self.spec.supports, self.occupant.power)
        return 1 + given, 1 + possible

    def evaluate(self) -> Tuple[int, int]:
        spec = self.spec
        if spec.path.is_failed:
            return 0, 0

        given, possible = _support_range(spec.supports)
        leaving = (1 + given, 1 + possible)
        if self.occupant is None:
            low, high = leaving
        elif self.occupant_move is None or spec.head_to_head:
            low, high = self._staying()
        elif self.occupant_move.move.is_passed:
            low, high = leaving
        elif self.occupant_move.move.is_failed:
            low, high = self._staying()
        else:
            staying = self._staying()
            low, high = min(staying[0], leaving[0]), max(staying[1], leaving[1])

        if not spec.path.is_passed:
            low = 0
        return low, high


class PreventDecision(StrengthDecision):
    """Strength with which a move keeps rival moves out of its destination."""
    kind = "prevent"
    rank = 3

    def __init__(self, spec: MoveSpec):
        super().__init__(str(spec.order), 1 + len(spec.supports))
        self.spec = spec

    def link(self) -> None:
        self.depends = [self.spec.path] + list(self.spec.supports)
        if self.spec.head_to_head:
            self.depends.append(self.spec.opponent.move)

    def evaluate(self) -> Tuple[int, int]:
        spec = self.spec
        if spec.path.is_failed:
            return 0, 0
        given, possible = _support_range(spec.supports)
        low, high = 1 + given, 1 + possible
        if spec.head_to_head:
            if spec.opponent.move.is_passed:
                return 0, 0
            if not spec.opponent.move.is_decided():
                low = 0
        if not spec.path.is_passed:
            low = 0
        return low, high


class DefendDecision(StrengthDecision):
    """Strength of a unit defending its province in a head-to-head battle."""
    kind = "defend"
    rank = 4

    def __init__(self, spec: MoveSpec):
        super().__init__(str(spec.order), 1 + len(spec.supports))
        self.spec = spec

    def link(self) -> None:
        self.depends = list(self.spec.supports)

    def evaluate(self) -> Tuple[int, int]:
        given, possible = _support_range(self.spec.supports)
        return 1 + given, 1 + possible


class HoldDecision(StrengthDecision):
    """Strength of the unit (if any) staying in a province that is moved into."""
    kind = "hold"
    rank = 5

    def __init__(self, province: str, graph: 'DecisionGraph'):
        self.supports = graph.hold_supports.get(province, [])
        super().__init__(province, 1 + len(self.supports))
        self.province = province
        self.graph = graph
        self.occupant = graph.position.get_unit_at(province)
        self.occupant_move = graph.moves.get(province)

    def link(self) -> None:
        if self.occupant_move is not None:
            self.depends = [self.occupant_move.move]
        else:
            self.depends = list(self.supports)

    def evaluate(self) -> Tuple[int, int]:
        if self.occupant is None:
            return 0, 0
        if self.occupant_move is not None:
            if self.occupant_move.move.is_passed:
                return 0, 0
            if self.occupant_move.move.is_failed:
                return 1, 1
            return 0, 1
        given, possible = _support_range(self.supports)
        return 1 + given, 1 + possible


class SupportDecision(TristateDecision):
    """Whether a matching support is given or cut."""
    kind = "support"
    rank = 6

    def __init__(self, order: Order, graph: 'DecisionGraph'):
        super().__init__(str(order))
        self.order = order
        self.graph = graph
        self.province = order.unit.province
        # A support is never cut from the province it supports a move into
        if isinstance(order, SupportMoveOrder):
            self.excluded = order.destination.province
        else:
            self.excluded = None
        self.attackers: List[MoveSpec] = []

    def link(self) -> None:
        self.attackers = [
            spec for spec in self.graph.moves_into(self.province)
            if spec.origin != self.excluded
        ]
        self.depends = [self.graph.dislodges[self.province]]
        self.depends.extend(spec.attack for spec in self.attackers)

    def evaluate(self) -> Optional[bool]:
        dislodge = self.graph.dislodges[self.province]
        if dislodge.is_passed:
            return False
        if any(spec.attack.min_value >= 1 for spec in self.attackers):
            return False
        if dislodge.is_failed and all(spec.attack.max_value == 0 for spec in self.attackers):
            return True
        return None


class MoveDecision(TristateDecision):
    """Whether a move succeeds."""
    kind = "move"
    rank = 7

    def __init__(self, spec: MoveSpec, graph: 'DecisionGraph'):
        super().__init__(str(spec.order))
        self.spec = spec
        self.graph = graph
        self.opposition: List[StrengthDecision] = []

    def link(self) -> None:
        spec = self.spec
        if spec.head_to_head:
            self.opposition = [spec.opponent.defend]
        else:
            self.opposition = [self.graph.holds[spec.target]]
        self.opposition.extend(
            other.prevent for other in self.graph.moves_into(spec.target)
            if other is not spec
        )
        self.depends = [spec.path, spec.attack] + self.opposition

    def evaluate(self) -> Optional[bool]:
        if self.spec.path.is_failed:
            return False
        attack = self.spec.attack
        if attack.min_value > max(o.max_value for o in self.opposition):
            return True
        if attack.max_value <= max(o.min_value for o in self.opposition):
            return False
        return None


class DislodgeDecision(TristateDecision):
    """Whether the unit in a province is dislodged."""
    kind = "dislodge"
    rank = 8

    def __init__(self, unit: Unit, graph: 'DecisionGraph'):
        super().__init__(repr(unit))
        self.unit = unit
        self.graph = graph
        self.own_move = graph.moves.get(unit.province)
        self.incoming: List[MoveSpec] = []

    def link(self) -> None:
        self.incoming = self.graph.moves_into(self.unit.province)
        self.depends = [spec.move for spec in self.incoming]
        if self.own_move is not None:
            self.depends.append(self.own_move.move)

    def evaluate(self) -> Optional[bool]:
        own = self.own_move.move if self.own_move is not None else None
        if own is not None and own.is_passed:
            return False
        if own is None or own.is_failed:
            if any(spec.move.is_passed for spec in self.incoming):
                return True
        if all(spec.move.is_failed for spec in self.incoming):
            return False
        return None


class DecisionGraph:
    """
    All decisions for one movement phase.

    `orders` maps each occupied province to the order its unit will follow.
    Orders that do not match what the supported or convoyed unit actually
    does are collected in `void_orders` and have no effect.
    """

    def __init__(self, position: Position, orders: Dict[str, Order]):
        self.position = position
        self.orders = orders
        self.moves: Dict[str, MoveSpec] = {}
        self.hold_supports: Dict[str, List[SupportDecision]] = {}
        self.supports: Dict[str, SupportDecision] = {}
        self.convoys: Dict[str, MoveSpec] = {}
        self.dislodges: Dict[str, DislodgeDecision] = {}
        self.holds: Dict[str, HoldDecision] = {}
        self.void_orders: Set[Order] = set()
        self._into: Dict[str, List[MoveSpec]] = {}
        self._build()

    def moves_into(self, province: str) -> List[MoveSpec]:
        return self._into.get(province, [])

    def _goes_by_convoy(self, order: MoveOrder, destination: Location) -> bool:
        """
        Armies use a convoy when told to, when the destination is not next
        to them, or when a fleet of their own power convoys them there.
        """
        if order.unit.is_fleet:
            return False
        if order.via_convoy:
            return True
        game_map = self.position.game_map
        if not game_map.is_adjacent(False, order.unit.location, destination):
            return True
        for other in self.orders.values():
            if (isinstance(other, ConvoyOrder)
                    and other.power == order.power
                    and other.convoyed.province == order.unit.province
                    and other.destination.province == destination.province):
                return True
        return False

    def _build(self) -> None:
        position = self.position
        provinces = sorted(self.orders)

        for province in provinces:
            order = self.orders[province]
            if isinstance(order, MoveOrder):
                destination = order.resolved_destination(position)
                spec = MoveSpec(
                    order=order,
                    unit=position.get_unit_at(province),
                    destination=destination,
                    by_convoy=self._goes_by_convoy(order, destination),
                )
                self.moves[province] = spec
                self._into.setdefault(spec.target, []).append(spec)

        for province in provinces:
            order = self.orders[province]
            if isinstance(order, ConvoyOrder):
                spec = self.moves.get(order.convoyed.province)
                if spec is not None and spec.by_convoy and spec.target == order.destination.province:
                    spec.convoy_fleets.append(province)
                    self.convoys[province] = spec
                else:
                    self.void_orders.add(order)
            elif isinstance(order, SupportHoldOrder):
                target = order.supported.province
                if position.get_unit_at(target) is not None and target not in self.moves:
                    support = SupportDecision(order, self)
                    self.supports[province] = support
                    self.hold_supports.setdefault(target, []).append(support)
                else:
                    self.void_orders.add(order)
            elif isinstance(order, SupportMoveOrder):
                spec = self.moves.get(order.supported.province)
                if spec is not None and spec.target == order.destination.province:
                    support = SupportDecision(order, self)
                    self.supports[province] = support
                    spec.supports.append(support)
                else:
                    self.void_orders.add(order)

        for spec in self.moves.values():
            other = self.moves.get(spec.target)
            if (other is not None and other.target == spec.origin
                    and not spec.by_convoy and not other.by_convoy):
                spec.opponent = other

        for spec in self.moves.values():
            spec.path = PathDecision(spec, self)
            spec.attack = AttackDecision(spec, self)
            spec.prevent = PreventDecision(spec)
            spec.defend = DefendDecision(spec) if spec.head_to_head else None
            spec.move = MoveDecision(spec, self)
            if spec.target not in self.holds:
                self.holds[spec.target] = HoldDecision(spec.target, self)

        for unit in position.get_all_units():
            self.dislodges[unit.province] = DislodgeDecision(unit, self)

        for decision in self.all_decisions():
            decision.link()

    def all_decisions(self) -> List[Decision]:
        decisions: List[Decision] = []
        for spec in self.moves.values():
            decisions.extend([spec.path, spec.attack, spec.prevent, spec.move])
            if spec.defend is not None:
                decisions.append(spec.defend)
        decisions.extend(self.holds.values())
        decisions.extend(self.supports.values())
        decisions.extend(self.dislodges.values())
        return sorted(decisions, key=lambda d: d.sort_key)

    def resolve(self) -> None:
        """Run passes until every decision is made."""
        decisions = self.all_decisions()
        pending = [d for d in decisions if not d.is_decided()]
        limit = len(decisions) * (len(self.position.units) + 2) + 10
        passes = 0

        while pending:
            passes += 1
            if passes > limit:
                raise AdjudicationError(
                    f"Adjudication did not converge after {limit} passes", pending
                )
            progress = False
            for decision in pending:
                if decision.update():
                    progress = True
            if not progress:
                self._break_paradox(pending)
            pending = [d for d in pending if not d.is_decided()]
            logger.debug(f"Pass {passes}: {len(pending)} decisions left")

    def _reachable(self, decision: Decision, undecided: Set[Decision]) -> Set[Decision]:
        seen: Set[Decision] = set()
        stack = [d for d in decision.depends if d in undecided]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(d for d in current.depends if d in undecided and d not in seen)
        return seen

    def find_core(self, pending: List[Decision]) -> List[Decision]:
        """
        The smallest group of undecided decisions that depend only on each
        other. Ties go to the group with the lowest sorted keys.
        """
        undecided = set(pending)
        reach = {d: self._reachable(d, undecided) for d in pending}
        best = None
        for decision in pending:
            group = reach[decision]
            if decision not in group:
                continue
            if any(reach[other] != group for other in group):
                continue
            candidate = sorted(group, key=lambda d: d.sort_key)
            if best is None or (len(candidate), [d.sort_key for d in candidate]) < (
                    len(best), [d.sort_key for d in best]):
                best = candidate
        if best is None:
            raise AdjudicationError("No progress and no paradox core", pending)
        return best

    def _break_paradox(self, pending: List[Decision]) -> None:
        core = self.find_core(pending)
        logger.debug(f"Paradox core: {core}")
        if self._apply_convoy_rule(core):
            return
        if self._apply_circular_rule(core):
            return
        if self._apply_fallback_rule(core):
            return
        raise AdjudicationError("Paradox could not be broken", core)

    def _apply_convoy_rule(self, core: List[Decision]) -> bool:
        """
        A convoy is not disrupted by an attack whose success depends on the
        convoy failing: the path passes and attacks in the core on its fleets fail.
        """
        paths = [d for d in core if isinstance(d, PathDecision) and not d.is_decided()]
        if not paths:
            return False
        path = paths[0]
        fleets = set(path.spec.convoy_fleets)
        logger.info(f"Applying {CONVOY_PARADOX_RULE} to {path.subject}")
        path.decide(True, CONVOY_PARADOX_RULE)
        for decision in core:
            if (isinstance(decision, MoveDecision) and not decision.is_decided()
                    and decision.spec.target in fleets):
                decision.decide(False, CONVOY_PARADOX_RULE)
        return True

    def _apply_circular_rule(self, core: List[Decision]) -> bool:
        """Undecided moves in the core that form a ring all succeed."""
        by_origin = {
            d.spec.origin: d for d in core
            if isinstance(d, MoveDecision) and not d.is_decided()
        }
        for origin in sorted(by_origin):
            ring = []
            current = by_origin[origin]
            while current is not None and current not in ring:
                ring.append(current)
                current = by_origin.get(current.spec.target)
            if current is not by_origin[origin]:
                continue
            if len(ring) == 2 and all(not d.spec.by_convoy for d in ring):
                continue
            logger.info(
                f"Applying {CIRCULAR_MOVEMENT_RULE} to {', '.join(d.subject for d in ring)}"
            )
            for decision in ring:
                decision.decide(True, CIRCULAR_MOVEMENT_RULE)
            return True
        return False

    def _apply_fallback_rule(self, core: List[Decision]) -> bool:
        """Cut the undecided supports in the core; failing that, fail its moves."""
        supports = [d for d in core if isinstance(d, SupportDecision) and not d.is_decided()]
        if supports:
            logger.info(f"Applying {SUPPORT_DEADLOCK_RULE}: cutting {len(supports)} supports")
            for decision in supports:
                decision.decide(False, SUPPORT_DEADLOCK_RULE)
            return True
        moves = [d for d in core if isinstance(d, MoveDecision) and not d.is_decided()]
        if moves:
            logger.info(f"Applying {SUPPORT_DEADLOCK_RULE}: failing {len(moves)} moves")
            for decision in moves:
                decision.decide(False, SUPPORT_DEADLOCK_RULE)
            return True
        return False
