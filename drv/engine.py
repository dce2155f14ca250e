"""
Probability evaluation over events and expressions.

Queries are answered by enumerating a *frame*: every combination of outcomes
of the home tables an event references, with its probability mass.

- A single home table is enumerated directly.
- Marginals of the same live joint table (and the joint itself) are
  enumerated together over the joint's outcome tuples, so dependence between
  them is respected exactly.
- Home tables with no shared joint are combined as if independent (the
  product of their masses). This is an assumption, not something the data
  establishes; with `EngineConfig(strict=True)` such queries fail with
  `NoJointAvailable` instead.
- Marginals whose joint has been garbage collected fall into the last case;
  a `UserWarning` is emitted when that happens.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from drv.config import INDEPENDENCE_TOL, EngineConfig
from drv.errors import DivisionByZero, NoJointAvailable
from drv.events import Event, Expression, as_expression
from drv.joint import JointTable, MarginalVariable
from drv.table import Outcome, OutcomeTable, canonical_outcome


@dataclass(frozen=True)
class Frame:
    """
    Enumerated outcome assignments of a set of home tables.

    `assignments[k]` maps id(table) to an outcome for every table in `tables`
    and has mass `probabilities[k]`.
    """

    tables: Tuple[OutcomeTable, ...]
    assignments: Tuple[Dict[int, Outcome], ...]
    probabilities: np.ndarray
    n_groups: int

    def mask(self, event: Event) -> np.ndarray:
        return np.fromiter(
            (bool(event.holds(a)) for a in self.assignments), dtype=bool, count=len(self.assignments)
        )

    def values(self, expression: Expression) -> List[Outcome]:
        return [expression.evaluate(a) for a in self.assignments]

    def mass(self, event: Event) -> float:
        return float(np.sum(self.probabilities[self.mask(event)]))


def _unique(*groups: Iterable[OutcomeTable]) -> Tuple[OutcomeTable, ...]:
    seen: Dict[int, OutcomeTable] = {}
    for g in groups:
        for t in g:
            seen.setdefault(id(t), t)
    return tuple(seen.values())


def _anchor(table: OutcomeTable) -> OutcomeTable:
    """The table whose outcomes a group is enumerated over."""
    if isinstance(table, MarginalVariable):
        joint = table.joint
        if joint is not None:
            return joint
    return table


def _enumerate_group(
    anchor: OutcomeTable, members: Sequence[OutcomeTable]
) -> Tuple[List[Dict[int, Outcome]], np.ndarray]:
    if len(members) == 1:
        # A lone table (marginal or not) is enumerated over its own outcomes.
        t = members[0]
        return [{id(t): o} for o in t.outcomes], np.asarray(t.probabilities, dtype=float)

    rows: List[Dict[int, Outcome]] = []
    for tup in anchor.outcomes:
        row: Dict[int, Outcome] = {}
        for m in members:
            if m is anchor:
                row[id(m)] = tup
            else:
                assert isinstance(m, MarginalVariable) and m.position is not None
                row[id(m)] = tup[m.position]
        rows.append(row)
    return rows, np.asarray(anchor.probabilities, dtype=float)


def resolve_frame(tables: Sequence[OutcomeTable], *, strict: bool = False) -> Frame:
    """
    Build the frame for a set of home tables.

    Raises:
        NoJointAvailable: If `strict` and the tables fall into more than one
            joint group, so answering would require assuming independence.
    """
    tables = _unique(tables)
    anchors: Dict[int, OutcomeTable] = {}
    members: Dict[int, List[OutcomeTable]] = {}
    for t in tables:
        a = _anchor(t)
        anchors.setdefault(id(a), a)
        members.setdefault(id(a), []).append(t)

    if strict and len(members) > 1:
        raise NoJointAvailable(
            f"The query spans {len(members)} variables with no shared joint table; "
            "build them as marginals of one JointTable or disable strict mode."
        )
    if len(members) > 1:
        orphaned = [t for t in tables if isinstance(t, MarginalVariable) and t.joint_ref is not None and t.joint is None]
        if orphaned:
            warnings.warn(
                f"{len(orphaned)} marginal(s) in this query have lost their joint table, which was "
                "garbage collected; they are combined as if independent. Keep a reference to the "
                "JointTable for as long as its marginals are queried together.",
                UserWarning,
                stacklevel=3,
            )

    rows: List[Dict[int, Outcome]] = [{}]
    probs = np.ones(1, dtype=float)
    for key, group in members.items():
        g_rows, g_probs = _enumerate_group(anchors[key], group)
        rows = [{**r, **s} for r in rows for s in g_rows]
        probs = np.multiply.outer(probs, g_probs).ravel()
    return Frame(tables=tables, assignments=tuple(rows), probabilities=probs, n_groups=len(members))


def _resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    config = config or EngineConfig()
    config.validate()
    return config


def _require_event(event: Any, what: str = "event") -> Event:
    if not isinstance(event, Event):
        raise TypeError(
            f"{what} must be an Event (e.g. X == 2, X.isin([1, 2]), (X > 1) & (Y < 3)); "
            f"got {type(event).__name__}"
        )
    return event


def _clip(p: float) -> float:
    return float(min(1.0, max(0.0, p)))


def _conditioned(frame: Frame, given: Optional[Event]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return (mask, weights) of the frame restricted to `given`, renormalised.
    """
    p = frame.probabilities
    if given is None:
        return np.ones(p.shape[0], dtype=bool), p
    cond = frame.mask(given)
    denom = float(np.sum(p[cond]))
    if denom <= 0.0:
        raise DivisionByZero(f"P({given!r}) is 0; the conditional is undefined")
    return cond, np.where(cond, p, 0.0) / denom


def probability(event: Event, given: Optional[Event] = None, *, config: Optional[EngineConfig] = None) -> float:
    """
    P(event), or P(event | given) = P(event and given) / P(given).

    Raises:
        DivisionByZero: If P(given) is 0.
        NoJointAvailable: In strict mode, if the variables share no joint table.
    """
    cfg = _resolve_config(config)
    event = _require_event(event)
    if given is None:
        frame = resolve_frame(event.tables(), strict=cfg.strict)
        return _clip(frame.mass(event))
    given = _require_event(given, "given")
    frame = resolve_frame(_unique(event.tables(), given.tables()), strict=cfg.strict)
    cond, w = _conditioned(frame, given)
    return _clip(float(np.sum(w[cond & frame.mask(event)])))


def _numeric(values: Sequence[Outcome]) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise TypeError("expectations need a numeric expression")
    return arr


def expectation(expression: Any, given: Optional[Event] = None, *, config: Optional[EngineConfig] = None) -> float:
    """E[expression], optionally given an event."""
    cfg = _resolve_config(config)
    expr = as_expression(expression)
    tables = expr.tables() if given is None else _unique(expr.tables(), _require_event(given, "given").tables())
    frame = resolve_frame(tables, strict=cfg.strict)
    _, w = _conditioned(frame, given)
    return float(np.dot(_numeric(frame.values(expr)), w))


def variance(expression: Any, given: Optional[Event] = None, *, config: Optional[EngineConfig] = None) -> float:
    expr = as_expression(expression)
    mu = expectation(expr, given, config=config)
    return expectation((expr - mu) ** 2, given, config=config)


def covariance(a: Any, b: Any, *, config: Optional[EngineConfig] = None) -> float:
    """Cov(a, b), resolved through a shared joint where one exists."""
    ea = as_expression(a)
    eb = as_expression(b)
    return expectation(ea * eb, config=config) - expectation(ea, config=config) * expectation(eb, config=config)


def correlation(a: Any, b: Any, *, config: Optional[EngineConfig] = None) -> float:
    va = variance(a, config=config)
    vb = variance(b, config=config)
    if va <= 0.0 or vb <= 0.0:
        raise DivisionByZero("correlation is undefined for a degenerate variable")
    return covariance(a, b, config=config) / float(np.sqrt(va * vb))


def distribution_of(
    expression: Any,
    given: Optional[Event] = None,
    *,
    config: Optional[EngineConfig] = None,
) -> OutcomeTable:
    """
    Outcome table of an expression (e.g. X + Y, X * 2), optionally conditioned on an event.
    """
    cfg = _resolve_config(config)
    expr = as_expression(expression)
    tables = expr.tables() if given is None else _unique(expr.tables(), _require_event(given, "given").tables())
    frame = resolve_frame(tables, strict=cfg.strict)
    cond, w = _conditioned(frame, given)
    values = frame.values(expr)
    return OutcomeTable.construct([v for v, keep in zip(values, cond) if keep], w[cond])


def conditional_distribution(
    variable: Any,
    condition: Event,
    *,
    config: Optional[EngineConfig] = None,
) -> OutcomeTable:
    """
    Distribution of `variable` given `condition`: the restriction of its
    outcomes consistent with the condition, each mass divided by P(condition).

    Raises:
        DivisionByZero: If P(condition) is 0.
    """
    return distribution_of(variable, _require_event(condition, "condition"), config=config)


def joint_distribution(
    *expressions: Any,
    names: Optional[Sequence[str]] = None,
    given: Optional[Event] = None,
    config: Optional[EngineConfig] = None,
) -> JointTable:
    """
    Joint table of several expressions evaluated over one frame.
    """
    if not expressions:
        raise ValueError("at least one expression is required")
    cfg = _resolve_config(config)
    exprs = [as_expression(e) for e in expressions]
    tables = _unique(*(e.tables() for e in exprs))
    if given is not None:
        tables = _unique(tables, _require_event(given, "given").tables())
    frame = resolve_frame(tables, strict=cfg.strict)
    cond, w = _conditioned(frame, given)
    tuples = [tuple(e.evaluate(a) for e in exprs) for a, keep in zip(frame.assignments, cond) if keep]
    return JointTable.construct(tuples, w[cond], names=None if names is None else tuple(names))


def independent(a: Any, b: Any, *, tol: float = INDEPENDENCE_TOL) -> bool:
    """
    Whether the joint distribution of (a, b) equals the product of their
    marginals, within `tol` for every pair of outcomes.

    Raises:
        NoJointAvailable: If a and b do not resolve to one joint table.
    """
    ea = as_expression(a)
    eb = as_expression(b)
    try:
        frame = resolve_frame(_unique(ea.tables(), eb.tables()), strict=True)
    except NoJointAvailable as exc:
        raise NoJointAvailable(
            "Independence can only be checked when both variables come from one joint table."
        ) from exc

    joint: Dict[Tuple[Outcome, Outcome], float] = {}
    pa: Dict[Outcome, float] = {}
    pb: Dict[Outcome, float] = {}
    for row, p in zip(frame.assignments, frame.probabilities):
        va = canonical_outcome(ea.evaluate(row))
        vb = canonical_outcome(eb.evaluate(row))
        joint[(va, vb)] = joint.get((va, vb), 0.0) + float(p)
        pa[va] = pa.get(va, 0.0) + float(p)
        pb[vb] = pb.get(vb, 0.0) + float(p)

    for va, p_a in pa.items():
        for vb, p_b in pb.items():
            if abs(joint.get((va, vb), 0.0) - p_a * p_b) > float(tol):
                return False
    return True
