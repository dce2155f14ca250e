"""
Outcome tables: the explicit outcome/probability representation of a discrete
random variable.

An `OutcomeTable` is immutable. Every transformation (combination, mapping,
restriction) returns a new table built through the same validating
constructor, so an invalid table is never handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from drv.config import PROBABILITY_TOL
from drv.errors import DivisionByZero, InvalidProbability, ShapeMismatch

Outcome = Any
Predicate = Callable[[Outcome], bool]
Transform = Callable[[Outcome], float]

# Float outcomes are rounded to this many significant digits so that sums such
# as 0.1 + 0.2 and 0.3 merge into one outcome, whatever their magnitude.
OUTCOME_DIGITS = 12


def canonical_outcome(value: Outcome) -> Outcome:
    """
    Return a hashable, plain-Python form of an outcome value.
    """
    if isinstance(value, np.ndarray):
        value = tuple(value.tolist())
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (list, tuple)):
        return tuple(canonical_outcome(v) for v in value)
    if isinstance(value, float) and np.isfinite(value):
        r = float(f"{value:.{OUTCOME_DIGITS}g}")
        return int(r) if r.is_integer() else r
    return value


def merge_outcomes(
    outcomes: Iterable[Outcome], probabilities: Iterable[float]
) -> Tuple[Tuple[Outcome, ...], np.ndarray]:
    """
    Merge duplicate outcomes by summing their mass; the result is sorted by outcome.
    """
    outs = [canonical_outcome(o) for o in outcomes]
    probs = np.asarray(list(probabilities), dtype=float)
    if probs.ndim != 1:
        raise ShapeMismatch("probabilities must be one-dimensional")
    if len(outs) != int(probs.shape[0]):
        raise ShapeMismatch(
            f"outcomes and probabilities differ in length ({len(outs)} != {int(probs.shape[0])})"
        )
    acc: Dict[Outcome, float] = {}
    for o, p in zip(outs, probs):
        acc[o] = acc.get(o, 0.0) + float(p)
    try:
        keys = sorted(acc)
    except TypeError:
        keys = list(acc)
    return tuple(keys), np.array([acc[k] for k in keys], dtype=float)


@dataclass(frozen=True, eq=False)
class OutcomeTable:
    """
    Ordered mapping from distinct outcome values to probability mass.

    Outcomes are numbers (or tuples of numbers for joint tables), stored sorted.
    Probabilities are non-negative and sum to 1 within `PROBABILITY_TOL`.
    """

    outcomes: Tuple[Outcome, ...]
    probabilities: np.ndarray

    def __post_init__(self) -> None:
        outs = tuple(self.outcomes)
        p = np.array(self.probabilities, dtype=float)
        if p.ndim != 1:
            raise ShapeMismatch("probabilities must be one-dimensional")
        if len(outs) != int(p.shape[0]):
            raise ShapeMismatch(
                f"outcomes and probabilities differ in length ({len(outs)} != {int(p.shape[0])})"
            )
        if len(set(outs)) != len(outs):
            raise InvalidProbability("outcomes must be distinct; use construct() to merge duplicates")
        if not np.all(np.isfinite(p)):
            raise InvalidProbability("probabilities must be finite")
        if np.any(p < 0.0):
            raise InvalidProbability("probabilities must be non-negative")
        s = float(np.sum(p))
        if abs(s - 1.0) > PROBABILITY_TOL:
            raise InvalidProbability(f"probabilities must sum to 1 (got {s})")
        p.setflags(write=False)
        object.__setattr__(self, "outcomes", outs)
        object.__setattr__(self, "probabilities", p)

    # Construction

    @classmethod
    def construct(cls, outcomes: Iterable[Outcome], probabilities: Iterable[float], **kwargs: Any):
        """
        Build a table from index-aligned outcome and probability vectors.

        Duplicate outcomes are merged by summing their mass before the
        sum-to-one check.
        """
        outs, probs = merge_outcomes(outcomes, probabilities)
        return cls(outcomes=outs, probabilities=probs, **kwargs)

    @classmethod
    def construct_from_odds(cls, outcomes: Iterable[Outcome], odds: Iterable[float], **kwargs: Any):
        """
        Build a table from relative odds, normalised to probabilities.
        """
        w = np.asarray(list(odds), dtype=float)
        if w.ndim != 1:
            raise ShapeMismatch("odds must be one-dimensional")
        if not np.all(np.isfinite(w)):
            raise InvalidProbability("odds must be finite")
        if np.any(w < 0.0):
            raise InvalidProbability("odds must be non-negative")
        total = float(np.sum(w))
        if total <= 0.0:
            raise InvalidProbability("odds cannot all be zero")
        return cls.construct(outcomes, w / total, **kwargs)

    def _rebuild(self, outcomes: Iterable[Outcome], probabilities: Iterable[float]) -> "OutcomeTable":
        return OutcomeTable.construct(outcomes, probabilities)

    # Read-only accessors

    def __len__(self) -> int:
        return len(self.outcomes)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(support_size={len(self.outcomes)})"

    @property
    def support_size(self) -> int:
        return len(self.outcomes)

    def probability(self, outcome: Outcome) -> float:
        """Mass of a single outcome (0 when it is not in the support)."""
        key = canonical_outcome(outcome)
        for o, p in zip(self.outcomes, self.probabilities):
            if o == key:
                return float(p)
        return 0.0

    def as_dict(self) -> Dict[Outcome, float]:
        return {o: float(p) for o, p in zip(self.outcomes, self.probabilities)}

    def snapshot(self) -> Tuple[Tuple[Outcome, float], ...]:
        """
        Read-only (outcome, probability) pairs sorted by outcome, for display layers.
        """
        return tuple((o, float(p)) for o, p in zip(self.outcomes, self.probabilities))

    def mask(self, predicate: Predicate) -> np.ndarray:
        return np.fromiter(
            (bool(predicate(o)) for o in self.outcomes), dtype=bool, count=len(self.outcomes)
        )

    # Queries

    def probability_of(self, predicate: Predicate) -> float:
        """
        Sum of the mass of outcomes satisfying `predicate` (0 when none match).
        """
        m = self.mask(predicate)
        return float(min(1.0, float(np.sum(self.probabilities[m]))))

    def expected_value(self, transform: Optional[Transform] = None) -> float:
        if transform is None:
            values = np.asarray(self.outcomes, dtype=float)
        else:
            values = np.asarray([transform(o) for o in self.outcomes], dtype=float)
        if values.ndim != 1:
            raise TypeError("tuple outcomes need a transform returning a number")
        return float(np.dot(values, self.probabilities))

    def variance(self) -> float:
        mu = self.expected_value()
        return self.expected_value(lambda x: (x - mu) ** 2)

    def std(self) -> float:
        return float(np.sqrt(self.variance()))

    def _standardized_moment(self, k: int) -> float:
        mu = self.expected_value()
        var = self.variance()
        if var <= 0.0:
            raise DivisionByZero("standardized moments are undefined for a degenerate variable")
        return self.expected_value(lambda x: (x - mu) ** k) / var ** (k / 2.0)

    def skewness(self) -> float:
        return self._standardized_moment(3)

    def kurtosis(self) -> float:
        """Non-excess kurtosis E[(X - mu)^4] / var^2."""
        return self._standardized_moment(4)

    def cdf(self, x: float) -> float:
        return self.probability_of(lambda o: o <= x)

    def quantile(self, q: float) -> Outcome:
        """
        Smallest outcome whose cumulative mass reaches q.
        """
        q = float(q)
        if not (0.0 <= q <= 1.0):
            raise ValueError("q must be in [0, 1]")
        cum = np.cumsum(self.probabilities)
        idx = int(np.searchsorted(cum, q - 1e-12, side="left"))
        return self.outcomes[min(idx, len(self.outcomes) - 1)]

    # Transformations

    def combine(self, other: "OutcomeTable", binary_op: Callable[[Outcome, Outcome], Outcome]) -> "OutcomeTable":
        """
        Distribution of binary_op(X, Y) for independent X ~ self, Y ~ other.

        Every pair of outcomes contributes P(a) * P(b) to binary_op(a, b);
        colliding results are summed (a convolution for addition).
        """
        acc: Dict[Outcome, float] = {}
        for a, pa in zip(self.outcomes, self.probabilities):
            for b, pb in zip(other.outcomes, other.probabilities):
                key = canonical_outcome(binary_op(a, b))
                acc[key] = acc.get(key, 0.0) + float(pa) * float(pb)
        return OutcomeTable.construct(list(acc.keys()), list(acc.values()))

    def apply(self, fn: Callable[[Outcome], Outcome]) -> "OutcomeTable":
        """Distribution of fn(X); outcomes mapping to the same value are merged."""
        return OutcomeTable.construct([fn(o) for o in self.outcomes], self.probabilities)

    def restrict(self, predicate: Predicate) -> "OutcomeTable":
        """
        Conditional distribution of X given predicate(X), renormalised.
        """
        m = self.mask(predicate)
        mass = float(np.sum(self.probabilities[m]))
        if mass <= 0.0:
            raise DivisionByZero("cannot condition on an event with zero probability")
        outs: List[Outcome] = [o for o, keep in zip(self.outcomes, m) if keep]
        return self._rebuild(outs, self.probabilities[m] / mass)

    def allclose(self, other: "OutcomeTable", *, tol: float = PROBABILITY_TOL) -> bool:
        """
        Outcome-wise comparison of two tables; missing outcomes count as zero mass.
        """
        a = self.as_dict()
        b = other.as_dict()
        for k in set(a) | set(b):
            if abs(a.get(k, 0.0) - b.get(k, 0.0)) > float(tol):
                return False
        return True


def outcome_table(outcomes: Sequence[Outcome], probabilities: Sequence[float]) -> OutcomeTable:
    """Functional alias for `OutcomeTable.construct`."""
    return OutcomeTable.construct(outcomes, probabilities)
