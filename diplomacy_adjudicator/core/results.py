"""
Structured results produced by adjudication.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from diplomacy_adjudicator.core.errors import StateInvariantError
from diplomacy_adjudicator.core.map import Power


class ResultType(Enum):
    """Outcome categories for orders and general events."""
    SUCCESS = "success"
    FAILURE = "failure"
    BOUNCED = "bounced"
    CUT = "cut"
    DISLODGED = "dislodged"
    CONVOY_DISRUPTED = "convoy disrupted"
    NO_CONVOY = "no convoy"
    VOID = "void"
    INVALID = "invalid"
    DESTROYED = "destroyed"
    OWNERSHIP_CHANGE = "ownership change"
    ELIMINATED = "eliminated"
    VICTORY = "victory"
    DRAW = "draw"


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a single order."""
    order: Any
    result_type: ResultType
    message: str = ""

    @property
    def power(self) -> Power:
        return self.order.power

    def __str__(self) -> str:
        text = f"{self.order}: {self.result_type.value}"
        return f"{text} ({self.message})" if self.message else text


@dataclass(frozen=True)
class GeneralResult:
    """An event not tied to one order: ownership change, elimination, game end."""
    result_type: ResultType
    message: str
    power: Optional[Power] = None

    def __str__(self) -> str:
        return self.message


class ResultLog:
    """
    Append-only list of results for one turn.

    Order results are grouped by order, orders sorted by location; results of
    one order keep the sequence they were added in. General results follow in
    the sequence they were added.
    """

    def __init__(self):
        self._order_results: List[OrderResult] = []
        self._general_results: List[GeneralResult] = []
        self._frozen = False

    def append(self, result) -> None:
        if self._frozen:
            raise StateInvariantError("Result log of a resolved turn cannot change")
        if isinstance(result, OrderResult):
            self._order_results.append(result)
        elif isinstance(result, GeneralResult):
            self._general_results.append(result)
        else:
            raise TypeError(f"Not a result: {result!r}")

    def add(self, order, result_type: ResultType, message: str = "") -> OrderResult:
        result = OrderResult(order, result_type, message)
        self.append(result)
        return result

    def add_general(
        self,
        result_type: ResultType,
        message: str,
        power: Optional[Power] = None
    ) -> GeneralResult:
        result = GeneralResult(result_type, message, power)
        self.append(result)
        return result

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def order_results(self) -> List[OrderResult]:
        # sorted() is stable, so one order's results stay in emission sequence
        return sorted(self._order_results, key=lambda r: r.order.sort_key)

    def general(self) -> List[GeneralResult]:
        return list(self._general_results)

    def all(self) -> list:
        return self.order_results() + self.general()

    def for_power(self, power: Power) -> list:
        """Order results of the power's orders, then general results naming it."""
        return (
            [r for r in self.order_results() if r.power == power]
            + [r for r in self._general_results if r.power == power]
        )

    def for_order(self, order) -> List[OrderResult]:
        return [r for r in self.order_results() if r.order == order]

    def merge(self, other: 'ResultLog') -> None:
        for result in other._order_results + other._general_results:
            self.append(result)

    def __len__(self) -> int:
        return len(self._order_results) + len(self._general_results)

    def __iter__(self):
        return iter(self.all())
