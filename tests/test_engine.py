from __future__ import annotations

import gc
import warnings
from itertools import product

import numpy as np
import pytest

from drv.builder import from_vectors, uniform
from drv.config import EngineConfig
from drv.engine import (
    conditional_distribution,
    correlation,
    covariance,
    distribution_of,
    expectation,
    independent,
    joint_distribution,
    probability,
    variance,
)
from drv.errors import DivisionByZero, NoJointAvailable
from drv.events import RandomVariable
from drv.joint import construct_joint, iid, joint_of_independent, marginals


def _die() -> RandomVariable:
    return RandomVariable(uniform(range(1, 7)))


def _correlated():
    # P(A=B) = 0.8 on a pair of fair coins.
    j = construct_joint([(0, 0), (0, 1), (1, 0), (1, 1)], [0.4, 0.1, 0.1, 0.4], names=["A", "B"])
    a, b = marginals(j)
    return j, RandomVariable(a), RandomVariable(b)


def test_single_outcome_probability() -> None:
    X = _die()
    assert probability(X == 2) == pytest.approx(1.0 / 6.0)


def test_craps_first_roll_matches_enumeration() -> None:
    roll = RandomVariable(uniform(range(1, 7)).combine(uniform(range(1, 7)), lambda a, b: a + b))
    winners = {7, 11, 2, 3, 12}
    expected = sum(1 for a, b in product(range(1, 7), repeat=2) if a + b in winners) / 36.0
    assert probability(roll.isin(winners)) == pytest.approx(expected)
    assert expected == pytest.approx(12.0 / 36.0)


def test_complement_sums_to_one() -> None:
    X = _die()
    Y = _die()
    for ev in (X == 3, (X > 2) & (Y <= 4), (X + Y).isin([5, 9]) | (X == Y)):
        assert probability(ev) + probability(~ev) == pytest.approx(1.0)


def test_conditional_is_ratio() -> None:
    X = _die()
    A = X >= 5
    C = (X % 2) == 0
    expected = probability(A & C) / probability(C)
    assert probability(A, C) == pytest.approx(expected)
    assert probability(A, given=C) == pytest.approx(1.0 / 3.0)


def test_conditioning_on_impossible_event_fails() -> None:
    X = _die()
    with pytest.raises(DivisionByZero):
        probability(X == 1, X > 6)
    with pytest.raises(ZeroDivisionError):
        conditional_distribution(X, X == 0)


def test_sibling_marginals_resolve_through_joint() -> None:
    j, A, B = _correlated()
    assert probability(A == B) == pytest.approx(0.8)
    assert probability(A == 1, B == 1) == pytest.approx(0.8)
    assert probability((A == 1) & (B == 0)) == pytest.approx(0.1)


def test_unrelated_tables_fall_back_to_independence() -> None:
    a = from_vectors([0, 1], [0.5, 0.5])
    b = from_vectors([0, 1], [0.5, 0.5])
    A = RandomVariable(a)
    B = RandomVariable(b)
    assert probability(A == B) == pytest.approx(0.5)
    assert probability(A == 1, B == 1) == pytest.approx(0.5)


def test_marginals_of_a_collected_joint_warn_before_falling_back() -> None:
    a, b = marginals(construct_joint([(0, 0), (0, 1), (1, 0), (1, 1)], [0.4, 0.1, 0.1, 0.4]))
    gc.collect()
    assert a.joint is None
    A = RandomVariable(a)
    B = RandomVariable(b)
    with pytest.warns(UserWarning, match="lost their joint table"):
        p = probability(A == B)
    assert p == pytest.approx(0.5)
    # A single marginal is still a complete table on its own.
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert probability(A == 1) == pytest.approx(0.5)


def test_live_joint_and_unrelated_tables_do_not_warn() -> None:
    j, A, B = _correlated()
    C = RandomVariable(from_vectors([0, 1], [0.5, 0.5]))
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert probability((A == B) & (C == 1)) == pytest.approx(0.4)


def test_strict_mode_refuses_independence_assumption() -> None:
    A = _die()
    B = _die()
    strict = EngineConfig(strict=True)
    with pytest.raises(NoJointAvailable):
        probability(A == B, config=strict)
    # A single variable never needs the assumption.
    assert probability(A == 2, config=strict) == pytest.approx(1.0 / 6.0)
    _, C, D = _correlated()
    assert probability(C == D, config=strict) == pytest.approx(0.8)


def test_same_variable_twice_is_not_treated_as_independent() -> None:
    X = _die()
    assert probability(X == X) == pytest.approx(1.0)
    assert probability((X == 1) & (X == 2)) == 0.0


def test_joint_table_indexing() -> None:
    J = RandomVariable(iid(uniform([0, 1]), 2, names=["A", "B"]))
    assert probability(J[0] + J["B"] == 1) == pytest.approx(0.5)
    with pytest.raises(KeyError):
        J["C"]


def test_joint_and_its_marginal_share_frame() -> None:
    j, A, _ = _correlated()
    J = RandomVariable(j)
    assert probability((A == 1) & (J[1] == 1)) == pytest.approx(0.4)


def test_independent_detects_dependence() -> None:
    _, A, B = _correlated()
    assert independent(A, B) is False
    j = joint_of_independent(uniform([0, 1]), from_vectors([0, 1, 2], [0.2, 0.3, 0.5]))
    X, Y = (RandomVariable(m) for m in marginals(j))
    assert independent(X, Y) is True


def test_independent_needs_a_joint() -> None:
    with pytest.raises(NoJointAvailable):
        independent(_die(), _die())


def test_expectation_and_variance_of_expressions() -> None:
    X = _die()
    Y = _die()
    assert expectation(X + Y) == pytest.approx(7.0)
    assert variance(X + Y) == pytest.approx(2 * 35.0 / 12.0)
    assert expectation(X, X > 3) == pytest.approx(5.0)
    assert expectation(2 * X - 1) == pytest.approx(6.0)


def test_covariance_and_correlation() -> None:
    _, A, B = _correlated()
    assert covariance(A, B) == pytest.approx(0.4 - 0.25)
    assert correlation(A, B) == pytest.approx(0.6)
    assert covariance(_die(), _die()) == pytest.approx(0.0, abs=1e-12)


def test_distribution_of_sum_matches_convolution() -> None:
    X = _die()
    Y = _die()
    s = distribution_of(X + Y)
    assert s.probability(7) == pytest.approx(1.0 / 6.0)
    assert s.allclose(X.table.combine(Y.table, lambda a, b: a + b))


def test_conditional_distribution_renormalises() -> None:
    X = _die()
    d = conditional_distribution(X, X.isin([1, 2, 3]))
    assert d.outcomes == (1, 2, 3)
    assert np.allclose(d.probabilities, [1.0 / 3.0] * 3)
    _, A, B = _correlated()
    a_given = conditional_distribution(A, B == 1)
    assert a_given.probability(1) == pytest.approx(0.8)


def test_joint_distribution_of_expressions() -> None:
    X = _die()
    Y = _die()
    jt = joint_distribution(X, X + Y, names=["X", "S"])
    assert jt.component_count == 2
    assert jt.probability((1, 2)) == pytest.approx(1.0 / 36.0)
    assert jt.probability((1, 12)) == 0.0


def test_probability_requires_an_event() -> None:
    with pytest.raises(TypeError):
        probability(_die())  # type: ignore[arg-type]
