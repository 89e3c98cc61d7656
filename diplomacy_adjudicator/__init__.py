"""
Diplomacy Adjudicator
Order adjudication for the Diplomacy board game: movement, retreats,
adjustments and the phase sequence that ties them together.
"""

from diplomacy_adjudicator.core.errors import (
    AdjudicationError, OrderValidationError, StateInvariantError
)
from diplomacy_adjudicator.core.map import Coast, Location, Map, Power, create_standard_map
from diplomacy_adjudicator.core.position import (
    DislodgedUnit, Position, Unit, UnitType, create_starting_position
)
from diplomacy_adjudicator.core.orders import (
    BuildOrder, ConvoyOrder, DisbandOrder, HoldOrder, MoveOrder, OrderParser,
    RetreatOrder, SupportHoldOrder, SupportMoveOrder, ValidationError, WaiveOrder
)
from diplomacy_adjudicator.core.results import GeneralResult, OrderResult, ResultLog, ResultType
from diplomacy_adjudicator.core.rules import BuildRule, RuleOptions
from diplomacy_adjudicator.core.phase import Phase, PhaseType, Season
from diplomacy_adjudicator.core.resolver import (
    resolve_adjustment_phase, resolve_movement_phase, resolve_retreat_phase
)
from diplomacy_adjudicator.core.turn import TurnState, adjudicate, advance_phase, submit_orders
from diplomacy_adjudicator.core.game import Game
from diplomacy_adjudicator.io.yaml_orders import YAMLOrderLoader

__version__ = "1.0.0"
__all__ = [
    'AdjudicationError', 'OrderValidationError', 'StateInvariantError',
    'Coast', 'Location', 'Map', 'Power', 'create_standard_map',
    'DislodgedUnit', 'Position', 'Unit', 'UnitType', 'create_starting_position',
    'BuildOrder', 'ConvoyOrder', 'DisbandOrder', 'HoldOrder', 'MoveOrder', 'OrderParser',
    'RetreatOrder', 'SupportHoldOrder', 'SupportMoveOrder', 'ValidationError', 'WaiveOrder',
    'GeneralResult', 'OrderResult', 'ResultLog', 'ResultType',
    'BuildRule', 'RuleOptions',
    'Phase', 'PhaseType', 'Season',
    'resolve_movement_phase', 'resolve_retreat_phase', 'resolve_adjustment_phase',
    'TurnState', 'adjudicate', 'advance_phase', 'submit_orders',
    'Game',
    'YAMLOrderLoader',
]
