"""
Joint tables, composition of variables and marginalisation.

A `JointTable` is an `OutcomeTable` over fixed-arity tuples. Marginals carry a
weak back-reference to the joint they were summed from, so that queries over
several marginals of the same joint can be answered from the joint itself.
The joint never refers back to its marginals.
"""

from __future__ import annotations

import multiprocessing as mp
import operator
import weakref
from dataclasses import dataclass, field
from itertools import product
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from drv.errors import IndexOutOfRange, InvalidParameters, InvalidProbability, ShapeMismatch
from drv.table import Outcome, OutcomeTable, merge_outcomes


@dataclass(frozen=True, eq=False)
class JointTable(OutcomeTable):
    """
    Distribution over tuples of outcomes of `component_count` variables.
    """

    names: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        arities = {len(o) if isinstance(o, tuple) else -1 for o in self.outcomes}
        if -1 in arities:
            raise ShapeMismatch("joint outcomes must be tuples")
        if len(arities) != 1:
            raise ShapeMismatch(f"joint outcomes must share one arity (got {sorted(arities)})")
        k = next(iter(arities))
        if k == 0:
            raise ShapeMismatch("joint outcomes cannot be empty tuples")
        if self.names is not None:
            names = tuple(str(n) for n in self.names)
            if len(names) != k:
                raise ShapeMismatch(f"names has {len(names)} entries but the joint has arity {k}")
            object.__setattr__(self, "names", names)

    @property
    def component_count(self) -> int:
        return len(self.outcomes[0])

    def _rebuild(self, outcomes: Iterable[Outcome], probabilities: Iterable[float]) -> "JointTable":
        return JointTable.construct(outcomes, probabilities, names=self.names)

    def position_of(self, name: str) -> int:
        if self.names is None or str(name) not in self.names:
            raise ValueError(f"Unknown component: {name!r}")
        return self.names.index(str(name))

    def marginal(self, position: Union[int, str]) -> "MarginalVariable":
        if isinstance(position, str):
            position = self.position_of(position)
        return marginal(self, position)


@dataclass(frozen=True, eq=False)
class MarginalVariable(OutcomeTable):
    """
    Univariate table summed out of a joint.

    `joint_ref` is a weak reference: the marginal stays a valid standalone
    table when the joint is gone, and queries then treat it like any other
    table.
    """

    joint_ref: Optional["weakref.ReferenceType[JointTable]"] = field(default=None, repr=False)
    position: Optional[int] = None

    @property
    def joint(self) -> Optional[JointTable]:
        if self.joint_ref is None:
            return None
        return self.joint_ref()


def construct_joint(
    outcome_tuples: Iterable[Sequence[Outcome]],
    probabilities: Iterable[float],
    *,
    names: Optional[Sequence[str]] = None,
) -> JointTable:
    """
    Build a joint table from explicit outcome tuples; duplicate tuples are merged.
    """
    return JointTable.construct(
        [tuple(o) for o in outcome_tuples],
        probabilities,
        names=None if names is None else tuple(names),
    )


def joint_from_array(
    array: Any,
    axes_outcomes: Optional[Sequence[Sequence[Outcome]]] = None,
    *,
    names: Optional[Sequence[str]] = None,
) -> JointTable:
    """
    Build a joint table from a multi-dimensional probability array.

    Entry `array[i0, i1, ...]` is the mass of `(axes_outcomes[0][i0],
    axes_outcomes[1][i1], ...)`. Axis outcomes default to `0..shape[k]-1`.
    """
    arr = np.asarray(array, dtype=float)
    if arr.ndim == 0:
        raise ShapeMismatch("array must have at least one dimension")
    if axes_outcomes is None:
        axes = [list(range(int(s))) for s in arr.shape]
    else:
        axes = [list(a) for a in axes_outcomes]
        if len(axes) != arr.ndim:
            raise ShapeMismatch(f"{len(axes)} outcome axes given for an array with {arr.ndim} dimensions")
        for k, (a, s) in enumerate(zip(axes, arr.shape)):
            if len(a) != int(s):
                raise ShapeMismatch(f"axis {k} has {len(a)} outcomes but size {int(s)}")
    return construct_joint(product(*axes), arr.ravel(), names=names)


def _product_block(
    args: Tuple[Sequence[Outcome], np.ndarray, Sequence[Sequence[Outcome]], Sequence[np.ndarray]]
) -> Tuple[List[Tuple[Outcome, ...]], np.ndarray]:
    head_outcomes, head_probs, rest_outcomes, rest_probs = args
    outs = [tuple(parts) for parts in product(head_outcomes, *rest_outcomes)]
    p = np.asarray(head_probs, dtype=float)
    for rp in rest_probs:
        p = np.multiply.outer(p, np.asarray(rp, dtype=float)).ravel()
    return outs, p


def _cartesian(
    outcomes: Sequence[Sequence[Outcome]],
    probabilities: Sequence[np.ndarray],
    *,
    n_jobs: int = 1,
) -> Tuple[List[Tuple[Outcome, ...]], np.ndarray]:
    """
    Cartesian product of supports with product masses, in row-major order.

    With n_jobs > 1 the first axis is split into contiguous blocks computed in
    worker processes; every output tuple is independent of the others.
    """
    n_jobs = int(n_jobs)
    if n_jobs <= 0:
        raise ValueError("n_jobs must be positive")
    head = list(outcomes[0])
    rest = [list(o) for o in outcomes[1:]]
    rest_p = [np.asarray(p, dtype=float) for p in probabilities[1:]]
    head_p = np.asarray(probabilities[0], dtype=float)
    if n_jobs == 1 or len(head) < 2:
        return _product_block((head, head_p, rest, rest_p))

    blocks = [b for b in np.array_split(np.arange(len(head)), min(n_jobs, len(head))) if b.size]
    tasks = [([head[int(i)] for i in b], head_p[b], rest, rest_p) for b in blocks]
    ctx = mp.get_context("spawn")
    with ctx.Pool(processes=min(n_jobs, len(tasks))) as pool:
        results = pool.map(_product_block, tasks)
    outs: List[Tuple[Outcome, ...]] = []
    for o, _ in results:
        outs.extend(o)
    return outs, np.concatenate([p for _, p in results])


def joint_of_independent(
    *tables: OutcomeTable,
    names: Optional[Sequence[str]] = None,
    n_jobs: int = 1,
) -> JointTable:
    """
    Joint table of independent variables: Cartesian product of outcomes with
    product masses. Component k of each tuple is an outcome of `tables[k]`.
    """
    if not tables:
        raise ValueError("at least one table is required")
    outs, p = _cartesian([t.outcomes for t in tables], [t.probabilities for t in tables], n_jobs=n_jobs)
    return construct_joint(outs, p, names=names)


def _require_copies(n: int) -> int:
    if int(n) != n or int(n) < 1:
        raise InvalidParameters(f"n must be a positive integer (got {n})")
    return int(n)


def iid(table: OutcomeTable, n: int, *, names: Optional[Sequence[str]] = None, n_jobs: int = 1) -> JointTable:
    """
    Joint table of n independent copies of `table` (the n-fold self product).
    """
    n = _require_copies(n)
    return joint_of_independent(*([table] * n), names=names, n_jobs=n_jobs)


def joint_from_rule(
    components: Sequence[Union[OutcomeTable, Sequence[Outcome]]],
    rule: Callable[..., float],
    *,
    names: Optional[Sequence[str]] = None,
) -> JointTable:
    """
    Joint table over the Cartesian product of the component supports, with
    mass rule(x0, x1, ...) for each tuple.

    Components are tables (their outcomes give the support) or plain outcome
    sequences.

    Raises:
        InvalidProbability: If a mass is negative or non-finite, or the masses
            do not sum to 1.
    """
    if not components:
        raise ValueError("at least one component is required")
    supports = [list(c.outcomes) if isinstance(c, OutcomeTable) else list(c) for c in components]
    tuples = [tuple(combo) for combo in product(*supports)]
    masses = np.asarray([float(rule(*combo)) for combo in tuples], dtype=float)
    if not np.all(np.isfinite(masses)):
        raise InvalidProbability("the joint rule produced a non-finite mass")
    if np.any(masses < 0.0):
        raise InvalidProbability("the joint rule produced a negative mass")
    return construct_joint(tuples, masses, names=names)


def _plain(table: OutcomeTable) -> OutcomeTable:
    return OutcomeTable(outcomes=table.outcomes, probabilities=table.probabilities)


def sum_of_iid(table: OutcomeTable, n: int) -> OutcomeTable:
    """
    Distribution of the sum of n independent copies of `table`.

    The table is self-convolved n - 1 times, so the cost grows with the number
    of distinct partial sums rather than with support_size ** n.
    """
    n = _require_copies(n)
    out = _plain(table)
    for _ in range(n - 1):
        out = out.combine(table, operator.add)
    return out


def product_of_iid(table: OutcomeTable, n: int) -> OutcomeTable:
    """Distribution of the product of n independent copies of `table`."""
    n = _require_copies(n)
    out = _plain(table)
    for _ in range(n - 1):
        out = out.combine(table, operator.mul)
    return out


def sum_of_independent(*tables: OutcomeTable) -> OutcomeTable:
    """Distribution of the sum of independent (possibly different) variables."""
    if not tables:
        raise ValueError("at least one table is required")
    out = _plain(tables[0])
    for t in tables[1:]:
        out = out.combine(t, operator.add)
    return out


def marginal(joint: JointTable, position: int) -> MarginalVariable:
    """
    Marginal distribution of component `position`, summing mass over all other
    components. The result keeps a weak reference to `joint`.

    Raises:
        IndexOutOfRange: If `position` is not in [0, joint.component_count).
    """
    if not isinstance(joint, JointTable):
        raise TypeError("marginal() needs a JointTable")
    k = joint.component_count
    if int(position) != position or not (0 <= int(position) < k):
        raise IndexOutOfRange(f"position {position} is out of range for a joint of arity {k}")
    pos = int(position)
    outs, probs = merge_outcomes((o[pos] for o in joint.outcomes), joint.probabilities)
    return MarginalVariable(
        outcomes=outs,
        probabilities=probs,
        joint_ref=weakref.ref(joint),
        position=pos,
    )


def marginals(joint: JointTable) -> Tuple[MarginalVariable, ...]:
    """All marginals of `joint`, in component order."""
    return tuple(marginal(joint, k) for k in range(joint.component_count))
