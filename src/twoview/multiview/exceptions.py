"""
Exception taxonomy of the estimation core.

Two families are kept apart on purpose:
- ContractViolationError: the caller passed malformed input
  (mismatched point sets, short or out-of-range samples).
- DegenerateConditioningError: a point set has no spread, so it cannot be
  normalized.

A degenerate sample that simply has no solution is NOT an exception:
solvers return None or append no model.
"""


class TwoViewError(Exception):
    """Base class for all errors raised by twoview."""


class ContractViolationError(TwoViewError, ValueError):
    """Input does not satisfy the calling contract."""


class PointSetMismatchError(ContractViolationError):
    """The two point sets differ in shape or have the wrong dimension."""


class SampleSizeError(ContractViolationError):
    """The sample holds fewer indices than the solver's minimum."""

    def __init__(self, got: int, minimum: int):
        super().__init__(f"Sample has {got} indices, solver needs at least {minimum}")
        self.got = got
        self.minimum = minimum


class SampleIndexError(ContractViolationError, IndexError):
    """A sample index does not address a column of the point sets."""


class DegenerateConditioningError(TwoViewError, ArithmeticError):
    """The point set has zero spread, no normalization transform exists."""
