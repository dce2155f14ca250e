from __future__ import annotations

import warnings

import numpy as np
import pytest
from scipy import stats

from drv.builder import constant, from_family, from_odds, from_vectors, uniform
from drv.config import TruncationConfig
from drv.errors import InvalidParameters, UnknownFamily
from drv.families import FamilyRegistry, FamilySpec, default_registry


def test_vectors_odds_and_uniform() -> None:
    assert from_vectors([0, 1], [0.2, 0.8]).probability(1) == pytest.approx(0.8)
    assert from_odds([0, 1], [1, 4]).probability(1) == pytest.approx(0.8)
    u = uniform([1, 2, 3, 4])
    assert u.probability(3) == pytest.approx(0.25)
    assert constant(7).outcomes == (7,)


def test_binomial_matches_scipy_on_full_support() -> None:
    t = from_family("binomial", n=10, p=0.3)
    assert t.outcomes == tuple(range(11))
    assert np.allclose(t.probabilities, stats.binom.pmf(np.arange(11), 10, 0.3))


def test_poisson_unbounded_support_is_truncated_and_normalised() -> None:
    t = from_family("poisson", mu=3.0)
    assert t.outcomes[0] == 0
    assert len(t) < 60
    assert float(np.sum(t.probabilities)) == pytest.approx(1.0)
    assert t.expected_value() == pytest.approx(3.0, abs=1e-6)
    assert t.probability(2) == pytest.approx(stats.poisson.pmf(2, 3.0), rel=1e-6)


def test_geometric_support_starts_at_one() -> None:
    t = from_family("geometric", p=0.5)
    assert t.outcomes[0] == 1
    assert t.probability(1) == pytest.approx(0.5, rel=1e-6)
    assert t.expected_value() == pytest.approx(2.0, abs=1e-6)


def test_explicit_support_renormalises_residual_mass() -> None:
    t = from_family("poisson", (0, 2), mu=1.0)
    assert t.outcomes == (0, 1, 2)
    raw = stats.poisson.pmf(np.arange(3), 1.0)
    assert np.allclose(t.probabilities, raw / raw.sum())


def test_infinite_upper_bound_means_unbounded() -> None:
    t = from_family("poisson", (0, float("inf")), mu=2.0)
    assert t.expected_value() == pytest.approx(2.0, abs=1e-6)


def test_hypergeometric_and_bernoulli() -> None:
    h = from_family("hypergeometric", M=20, n=7, N=12)
    assert h.outcomes == tuple(range(0, 8))
    assert h.expected_value() == pytest.approx(12 * 7 / 20)
    b = from_family("bernoulli", p=0.25)
    assert b.probability(1) == pytest.approx(0.25)


def test_unknown_family() -> None:
    with pytest.raises(UnknownFamily):
        from_family("zipfian-ish", a=2.0)


def test_invalid_parameters() -> None:
    with pytest.raises(InvalidParameters):
        from_family("poisson", mu=-1.0)
    with pytest.raises(InvalidParameters):
        from_family("binomial", n=10, p=1.5)
    with pytest.raises(InvalidParameters):
        from_family("binomial", n=10)
    with pytest.raises(InvalidParameters):
        from_family("discrete_uniform", lo=5, hi=1)


def test_cap_warns_and_still_normalises() -> None:
    cfg = TruncationConfig(max_support=10, chunk_size=4)
    with pytest.warns(UserWarning):
        t = from_family("poisson", truncation=cfg, mu=50.0)
    assert len(t) == 10
    assert float(np.sum(t.probabilities)) == pytest.approx(1.0)


def test_bounded_support_larger_than_cap_is_enumerated_in_full() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        t = from_family("discrete_uniform", lo=0, hi=199_999)
        b = from_family("binomial", truncation=TruncationConfig(max_support=10, chunk_size=4), n=50, p=0.5)
    assert len(t) == 200_000
    assert t.outcomes[-1] == 199_999
    assert t.probability(150_000) == pytest.approx(1.0 / 200_000)
    assert b.outcomes == tuple(range(51))
    assert b.expected_value() == pytest.approx(25.0)


def _halving_registry() -> FamilyRegistry:
    reg = FamilyRegistry()
    reg.register(
        FamilySpec(
            name="halving",
            mass=lambda x, *, c: c * 0.5**x,
            support=lambda *, c: (0, None),
        )
    )
    return reg


def test_unnormalised_unbounded_rule_is_normalised() -> None:
    t = from_family("halving", registry=_halving_registry(), c=10.0)
    assert len(t) > 20
    assert t.probability(0) == pytest.approx(0.5, rel=1e-6)
    assert t.probability(3) == pytest.approx(0.0625, rel=1e-6)
    assert t.expected_value() == pytest.approx(1.0, abs=1e-6)


def test_enumeration_stops_once_a_chunk_adds_nothing_material() -> None:
    cfg = TruncationConfig(max_support=1000, chunk_size=8)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        t = from_family("halving", registry=_halving_registry(), truncation=cfg, c=10.0)
    # 0.5**x drops below 1e-8 of the total within a few chunks, far from the cap.
    assert 20 < len(t) < 40
    assert t.outcomes == tuple(range(len(t)))
    assert float(np.sum(t.probabilities)) == pytest.approx(1.0)


def test_user_registered_family() -> None:
    reg = FamilyRegistry()
    reg.register(
        FamilySpec(
            name="Triangular",
            mass=lambda x, *, k: np.where(x <= k, x + 1.0, 0.0),
            support=lambda *, k: (0, k),
        )
    )
    t = from_family("triangular", registry=reg, k=3)
    assert t.outcomes == (0, 1, 2, 3)
    assert t.probability(3) == pytest.approx(0.4)
    with pytest.raises(ValueError):
        reg.register(FamilySpec(name="triangular", mass=lambda x: x, support=lambda: (0, 1)))


def test_mass_function_rejecting_parameters_is_reported() -> None:
    reg = FamilyRegistry()
    reg.register(FamilySpec(name="bad", mass=lambda x, *, c: np.full(x.shape, -c), support=lambda *, c: (0, 3)))
    with pytest.raises(InvalidParameters):
        from_family("bad", registry=reg, c=1.0)


def test_default_registry_lists_builtins() -> None:
    names = default_registry().names()
    for n in ("binomial", "poisson", "geometric", "negative_binomial", "hypergeometric", "bernoulli"):
        assert n in names


def test_truncation_config_validation() -> None:
    with pytest.raises(ValueError):
        from_family("poisson", truncation=TruncationConfig(completeness=0.0), mu=1.0)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        from_family("poisson", truncation=TruncationConfig(completeness=0.999), mu=1.0)
