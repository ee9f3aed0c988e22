"""Exceptions raised for structurally invalid input.

Constraint conflicts are never raised; they are reported as
:class:`~class_balance.constraints.Violation` values.
"""


class ClassBalanceError(Exception):
    """Base class for all errors raised by this package."""


class InvalidWeights(ClassBalanceError, ValueError):
    """A weight set is negative somewhere or sums to zero."""


class InvalidSectionCount(ClassBalanceError, ValueError):
    """A distribution was requested with fewer than one section."""


class InvalidMove(ClassBalanceError, ValueError):
    """A single-student move or swap does not describe a possible change."""
