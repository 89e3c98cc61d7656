"""
Exception types raised by the adjudicator.

Individual order problems never raise: they are reported as INVALID results
and the unit holds. Exceptions are reserved for callers breaking a contract
and for internal failures.
"""

from typing import Optional


class OrderValidationError(ValueError):
    """Raised when a submission breaks the submission contract."""

    def __init__(self, message: str, kind=None):
        super().__init__(message)
        self.kind = kind


class StateInvariantError(RuntimeError):
    """Raised when a position or turn is used in a way that cannot be valid."""


class AdjudicationError(RuntimeError):
    """Raised when resolution fails to converge. Indicates a bug, not bad input."""

    def __init__(self, message: str, undecided: Optional[list] = None):
        super().__init__(message)
        self.undecided = undecided or []
