"""
Error kinds raised by the discrete random variable core.

All errors derive from `DRVError`, which is itself a `ValueError`, so callers
that already guard construction with `except ValueError` keep working.
"""

from __future__ import annotations


class DRVError(ValueError):
    """Base class for all library errors."""


class ShapeMismatch(DRVError):
    """Outcome and probability inputs (or joint tuple arities) disagree in shape."""


class InvalidProbability(DRVError):
    """Negative, non-finite or non-normalised probability mass."""


class UnknownFamily(DRVError):
    """A named distribution family is not registered."""


class InvalidParameters(DRVError):
    """Family parameters (or a support descriptor) were rejected."""


class IndexOutOfRange(DRVError, IndexError):
    """A joint component position lies outside the joint's arity."""


class DivisionByZero(DRVError, ZeroDivisionError):
    """A conditional probability or distribution given a zero-probability event."""


class NoJointAvailable(DRVError):
    """A dependence-aware query needs a joint table that is not available."""


class EmptySample(DRVError):
    """An empirical query was made over a sample set with no values."""
