"""
Distribution construction from explicit vectors, odds, or named families.
"""

from __future__ import annotations

import warnings
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from drv.config import TruncationConfig
from drv.errors import InvalidParameters
from drv.families import DEFAULT_REGISTRY, FamilyRegistry, FamilySpec, Support
from drv.table import Outcome, OutcomeTable


def from_vectors(outcomes: Iterable[Outcome], probabilities: Iterable[float]) -> OutcomeTable:
    return OutcomeTable.construct(outcomes, probabilities)


def from_odds(outcomes: Iterable[Outcome], odds: Iterable[float]) -> OutcomeTable:
    return OutcomeTable.construct_from_odds(outcomes, odds)


def uniform(outcomes: Iterable[Outcome]) -> OutcomeTable:
    """Equal mass on each listed outcome (duplicates accumulate mass)."""
    outs = list(outcomes)
    if not outs:
        raise InvalidParameters("uniform needs at least one outcome")
    return OutcomeTable.construct(outs, np.full(len(outs), 1.0 / len(outs)))


def constant(value: Outcome) -> OutcomeTable:
    return OutcomeTable.construct([value], [1.0])


def _parse_support(support: Optional[Sequence[Any]], default: Support) -> Support:
    if support is None:
        lo, hi = default
    else:
        if len(support) != 2:
            raise InvalidParameters("support must be a (lo, hi) pair")
        lo, hi = support
    if lo is None or not np.isfinite(float(lo)):
        raise InvalidParameters("the support must be bounded below")
    if hi is not None and not np.isfinite(float(hi)):
        hi = None
    if float(lo) != int(lo) or (hi is not None and float(hi) != int(hi)):
        raise InvalidParameters("support bounds must be integers")
    lo = int(lo)
    hi = None if hi is None else int(hi)
    if hi is not None and hi < lo:
        raise InvalidParameters(f"support upper bound {hi} is below lower bound {lo}")
    return lo, hi


def _evaluate_mass(spec: FamilySpec, x: np.ndarray, params: dict) -> np.ndarray:
    try:
        m = np.asarray(spec.mass(x, **params), dtype=float)
    except TypeError as exc:
        raise InvalidParameters(f"Family {spec.name!r} rejected parameters {params!r}: {exc}") from exc
    if m.shape != x.shape:
        raise InvalidParameters(f"Family {spec.name!r} returned mass of the wrong shape")
    if not np.all(np.isfinite(m)) or np.any(m < 0.0):
        raise InvalidParameters(f"Family {spec.name!r} rejected parameters {params!r}")
    return m


def enumerate_support(
    spec: FamilySpec,
    lo: int,
    hi: Optional[int],
    params: dict,
    truncation: TruncationConfig,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Enumerate (outcomes, raw mass) over a support, truncating where needed.

    A bounded support is always enumerated in full. An unbounded one is
    enumerated chunk by chunk from `lo` until a whole chunk adds no more than
    `1 - completeness` of the mass accumulated so far, or the `max_support` cap
    is hit. Both criteria are relative to the accumulated mass, so mass rules
    need not be normalised.
    """
    if hi is not None:
        x = np.arange(lo, hi + 1, dtype=np.int64)
        return x, _evaluate_mass(spec, x, params)

    cap = int(truncation.max_support)
    completeness = float(truncation.completeness)
    chunk = int(truncation.chunk_size)
    xs: List[np.ndarray] = []
    ms: List[np.ndarray] = []
    total = 0.0
    count = 0
    start = lo
    reached = False
    while count < cap:
        stop = start + min(chunk, cap - count)
        x = np.arange(start, stop, dtype=np.int64)
        m = _evaluate_mass(spec, x, params)
        xs.append(x)
        ms.append(m)
        added = float(np.sum(m))
        total += added
        count += int(x.shape[0])
        start = stop
        if total > 0.0 and added <= (1.0 - completeness) * total:
            reached = True
            break
    x_all = np.concatenate(xs)
    m_all = np.concatenate(ms)
    if not reached:
        warnings.warn(
            f"Support enumeration for family {spec.name!r} stopped at the cap of {cap} "
            f"outcomes with accumulated mass {total:.10g}; the retained mass is renormalised. "
            "Increase `TruncationConfig.max_support` to enumerate further.",
            UserWarning,
            stacklevel=3,
        )
    if total > 0.0:
        # Trailing outcomes past the completeness point are dropped.
        cum = np.cumsum(m_all)
        keep = int(np.searchsorted(cum, completeness * total, side="left")) + 1
        keep = min(keep, int(x_all.shape[0]))
        x_all = x_all[:keep]
        m_all = m_all[:keep]
    return x_all, m_all


def from_family(
    name: str,
    support: Optional[Sequence[Any]] = None,
    *,
    registry: Optional[FamilyRegistry] = None,
    truncation: Optional[TruncationConfig] = None,
    **params: Any,
) -> OutcomeTable:
    """
    Build a table from a registered family.

    Args:
        name: Registered family name (e.g. "binomial", "poisson").
        support: Optional (lo, hi) descriptor; hi may be None or inf for an
            unbounded support. Defaults to the family's own support.
        registry: Family registry; the module default when omitted.
        truncation: Truncation policy for unbounded supports.
        **params: Family parameters passed to the mass function.

    Raises:
        UnknownFamily: If `name` is not registered.
        InvalidParameters: If the parameters or the support are rejected, or the
            support carries no mass.
    """
    reg = registry if registry is not None else DEFAULT_REGISTRY
    truncation = truncation or TruncationConfig()
    truncation.validate()
    spec = reg.get(name)

    if spec.check is not None:
        try:
            spec.check(**params)
        except TypeError as exc:
            raise InvalidParameters(f"Family {spec.name!r} rejected parameters {params!r}: {exc}") from exc
    try:
        default = spec.support(**params)
    except TypeError as exc:
        raise InvalidParameters(f"Family {spec.name!r} rejected parameters {params!r}: {exc}") from exc

    lo, hi = _parse_support(support, default)
    x, m = enumerate_support(spec, lo, hi, dict(params), truncation)
    total = float(np.sum(m))
    if total <= 0.0:
        raise InvalidParameters(f"Family {spec.name!r} has no mass on the support [{lo}, {hi}]")
    return OutcomeTable.construct(x.tolist(), m / total)
