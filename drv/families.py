"""
Named distribution families.

A family is a pluggable (default support, mass function, parameter check)
triple held in a `FamilyRegistry`. The built-in families delegate their mass
functions to `scipy.stats`; user families only need a callable returning the
mass of an integer array of outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

import numpy as np
from scipy import stats

from drv.errors import InvalidParameters, UnknownFamily

# (lo, hi); hi=None means the support is unbounded above.
Support = Tuple[int, Optional[int]]
MassFunction = Callable[..., np.ndarray]


@dataclass(frozen=True)
class FamilySpec:
    """
    Registry entry for a distribution family.

    `mass(x, **params)` returns the mass at each integer in `x`.
    `support(**params)` returns the default support descriptor.
    `check(**params)` raises `InvalidParameters` for rejected parameters.
    """

    name: str
    mass: MassFunction
    support: Callable[..., Support]
    check: Optional[Callable[..., None]] = None


class FamilyRegistry:
    """
    Mapping from family name to `FamilySpec`.
    """

    def __init__(self, families: Optional[Mapping[str, FamilySpec]] = None) -> None:
        self._families: Dict[str, FamilySpec] = dict(families or {})

    def register(self, spec: FamilySpec, *, replace: bool = False) -> None:
        name = str(spec.name).strip().lower()
        if not name:
            raise ValueError("family name cannot be empty")
        if name in self._families and not replace:
            raise ValueError(f"Family {name!r} is already registered")
        self._families[name] = spec

    def get(self, name: str) -> FamilySpec:
        key = str(name).strip().lower()
        if key not in self._families:
            raise UnknownFamily(f"Unknown family: {name!r}")
        return self._families[key]

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._families))

    def copy(self) -> "FamilyRegistry":
        return FamilyRegistry(self._families)

    def __contains__(self, name: object) -> bool:
        return str(name).strip().lower() in self._families


def _require_probability(p: float, *, allow_zero: bool = True) -> None:
    p = float(p)
    lo_ok = p >= 0.0 if allow_zero else p > 0.0
    if not (lo_ok and p <= 1.0):
        raise InvalidParameters(f"p must be in {'[0, 1]' if allow_zero else '(0, 1]'} (got {p})")


def _require_count(name: str, value: float) -> None:
    if float(value) < 0 or float(value) != int(value):
        raise InvalidParameters(f"{name} must be a non-negative integer (got {value})")


def _check_binomial(*, n: int, p: float) -> None:
    _require_count("n", n)
    _require_probability(p)


def _check_poisson(*, mu: float) -> None:
    if not np.isfinite(float(mu)) or float(mu) < 0.0:
        raise InvalidParameters(f"mu must be a non-negative rate (got {mu})")


def _check_geometric(*, p: float) -> None:
    _require_probability(p, allow_zero=False)


def _check_negative_binomial(*, n: float, p: float) -> None:
    if float(n) <= 0.0:
        raise InvalidParameters(f"n must be positive (got {n})")
    _require_probability(p, allow_zero=False)


def _check_hypergeometric(*, M: int, n: int, N: int) -> None:
    for name, v in (("M", M), ("n", n), ("N", N)):
        _require_count(name, v)
    if int(n) > int(M) or int(N) > int(M):
        raise InvalidParameters("n and N cannot exceed the population size M")


def _check_bernoulli(*, p: float) -> None:
    _require_probability(p)


def _check_discrete_uniform(*, lo: int, hi: int) -> None:
    if int(lo) != float(lo) or int(hi) != float(hi):
        raise InvalidParameters("lo and hi must be integers")
    if int(hi) < int(lo):
        raise InvalidParameters(f"hi must be >= lo (got lo={lo}, hi={hi})")


BUILTIN_FAMILIES: Tuple[FamilySpec, ...] = (
    FamilySpec(
        name="binomial",
        mass=lambda x, *, n, p: stats.binom.pmf(x, int(n), float(p)),
        support=lambda *, n, p: (0, int(n)),
        check=_check_binomial,
    ),
    FamilySpec(
        name="poisson",
        mass=lambda x, *, mu: stats.poisson.pmf(x, float(mu)),
        support=lambda *, mu: (0, None),
        check=_check_poisson,
    ),
    FamilySpec(
        # Number of trials up to and including the first success.
        name="geometric",
        mass=lambda x, *, p: stats.geom.pmf(x, float(p)),
        support=lambda *, p: (1, None),
        check=_check_geometric,
    ),
    FamilySpec(
        # Number of failures before the n-th success.
        name="negative_binomial",
        mass=lambda x, *, n, p: stats.nbinom.pmf(x, float(n), float(p)),
        support=lambda *, n, p: (0, None),
        check=_check_negative_binomial,
    ),
    FamilySpec(
        # M population size, n successes in the population, N draws.
        name="hypergeometric",
        mass=lambda x, *, M, n, N: stats.hypergeom.pmf(x, int(M), int(n), int(N)),
        support=lambda *, M, n, N: (max(0, int(N) - (int(M) - int(n))), min(int(n), int(N))),
        check=_check_hypergeometric,
    ),
    FamilySpec(
        name="bernoulli",
        mass=lambda x, *, p: stats.bernoulli.pmf(x, float(p)),
        support=lambda *, p: (0, 1),
        check=_check_bernoulli,
    ),
    FamilySpec(
        name="discrete_uniform",
        mass=lambda x, *, lo, hi: stats.randint.pmf(x, int(lo), int(hi) + 1),
        support=lambda *, lo, hi: (int(lo), int(hi)),
        check=_check_discrete_uniform,
    ),
)


def default_registry() -> FamilyRegistry:
    """
    Return a fresh registry holding the built-in families.
    """
    reg = FamilyRegistry()
    for spec in BUILTIN_FAMILIES:
        reg.register(spec)
    return reg


DEFAULT_REGISTRY = default_registry()


def register_family(spec: FamilySpec, *, replace: bool = False) -> None:
    """Register a family in the module-level default registry."""
    DEFAULT_REGISTRY.register(spec, replace=replace)
