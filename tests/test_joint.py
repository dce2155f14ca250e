from __future__ import annotations

import gc
import operator

import numpy as np
import pytest

from drv.builder import from_vectors, uniform
from drv.errors import IndexOutOfRange, InvalidParameters, InvalidProbability, ShapeMismatch
from drv.joint import (
    JointTable,
    MarginalVariable,
    construct_joint,
    iid,
    joint_from_array,
    joint_from_rule,
    joint_of_independent,
    marginal,
    marginals,
    product_of_iid,
    sum_of_iid,
    sum_of_independent,
)


def _die():
    return uniform(range(1, 7))


def test_construct_joint_validates_arity() -> None:
    j = construct_joint([(0, 0), (0, 1), (1, 1)], [0.25, 0.25, 0.5], names=["A", "B"])
    assert j.component_count == 2
    assert j.names == ("A", "B")
    with pytest.raises(ShapeMismatch):
        construct_joint([(0, 0), (1,)], [0.5, 0.5])
    with pytest.raises(ShapeMismatch):
        construct_joint([(0, 0)], [1.0], names=["A"])
    with pytest.raises(InvalidProbability):
        construct_joint([(0, 0), (1, 1)], [0.5, 0.6])


def test_joint_from_array_uses_row_major_axes() -> None:
    arr = np.array([[0.1, 0.2, 0.1], [0.3, 0.2, 0.1]])
    j = joint_from_array(arr, [[0, 1], [10, 20, 30]])
    assert j.probability((1, 10)) == pytest.approx(0.3)
    assert j.probability((0, 20)) == pytest.approx(0.2)
    with pytest.raises(ShapeMismatch):
        joint_from_array(arr, [[0, 1], [10, 20]])


def test_joint_of_independent_is_product() -> None:
    a = from_vectors([0, 1], [0.4, 0.6])
    b = from_vectors([5, 6, 7], [0.2, 0.3, 0.5])
    j = joint_of_independent(a, b)
    assert len(j) == 6
    assert j.probability((1, 7)) == pytest.approx(0.3)


def test_marginal_of_independent_joint_reproduces_components() -> None:
    a = from_vectors([0, 1], [0.4, 0.6])
    b = from_vectors([5, 6, 7], [0.2, 0.3, 0.5])
    j = joint_of_independent(a, b)
    assert marginal(j, 0).allclose(a)
    assert marginal(j, 1).allclose(b)


def test_marginal_keeps_back_reference() -> None:
    j = iid(_die(), 2)
    x, y = marginals(j)
    assert isinstance(x, MarginalVariable)
    assert x.joint is j
    assert (x.position, y.position) == (0, 1)


def test_marginal_survives_loss_of_joint() -> None:
    x = marginal(iid(_die(), 2), 0)
    gc.collect()
    assert x.joint is None
    assert x.probability(3) == pytest.approx(1.0 / 6.0)


def test_marginal_position_out_of_range() -> None:
    j = iid(_die(), 2)
    with pytest.raises(IndexOutOfRange):
        marginal(j, 2)
    with pytest.raises(IndexOutOfRange):
        marginal(j, -1)
    with pytest.raises(IndexError):
        marginal(j, 5)


def test_marginal_by_name() -> None:
    j = construct_joint([(0, 1), (1, 0)], [0.5, 0.5], names=["A", "B"])
    assert j.marginal("B").position == 1


def test_joint_from_rule() -> None:
    j = joint_from_rule([[0, 1], [0, 1]], lambda x, y: 0.4 if x == y else 0.1)
    assert j.probability((1, 1)) == pytest.approx(0.4)
    with pytest.raises(InvalidProbability):
        joint_from_rule([[0, 1], [0, 1]], lambda x, y: 0.5)
    with pytest.raises(InvalidProbability):
        joint_from_rule([[0, 1]], lambda x: 1.5 if x else -0.5)


def test_joint_from_rule_accepts_tables() -> None:
    a = from_vectors([0, 1], [0.5, 0.5])
    j = joint_from_rule([a, a], lambda x, y: a.probability(x) * a.probability(y))
    assert j.allclose(iid(a, 2))


def test_sum_of_iid_matches_marginalised_full_joint() -> None:
    die = _die()
    j = iid(die, 3)
    direct = j.apply(sum)
    assert sum_of_iid(die, 3).allclose(direct)


def test_sum_of_iid_expected_value() -> None:
    s = sum_of_iid(_die(), 20)
    assert s.expected_value() == pytest.approx(70.0)
    assert s.outcomes[0] == 20 and s.outcomes[-1] == 120
    assert float(np.sum(s.probabilities)) == pytest.approx(1.0)
    with pytest.raises(InvalidParameters):
        sum_of_iid(_die(), 0)


def test_sum_and_product_helpers() -> None:
    coin = from_vectors([0, 1], [0.5, 0.5])
    assert sum_of_independent(coin, coin, coin).probability(3) == pytest.approx(0.125)
    assert product_of_iid(coin, 2).probability(1) == pytest.approx(0.25)
    assert sum_of_independent(_die(), coin).allclose(_die().combine(coin, operator.add))


def test_restricting_a_joint_keeps_it_joint() -> None:
    j = iid(from_vectors([0, 1], [0.5, 0.5]), 2, names=["A", "B"])
    r = j.restrict(lambda t: t[0] == 1)
    assert isinstance(r, JointTable)
    assert r.names == ("A", "B")
    assert r.probability((1, 0)) == pytest.approx(0.5)


def test_parallel_product_matches_serial() -> None:
    die = _die()
    serial = joint_of_independent(die, die, die)
    parallel = joint_of_independent(die, die, die, n_jobs=2)
    assert serial.outcomes == parallel.outcomes
    assert np.allclose(serial.probabilities, parallel.probabilities)
