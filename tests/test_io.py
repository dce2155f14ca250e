from __future__ import annotations

import pytest

from drv.builder import from_vectors
from drv.errors import InvalidProbability
from drv.io import load_from_csv, load_from_json, save_to_csv, save_to_json
from drv.joint import JointTable, construct_joint


def test_json_keeps_joint_names(tmp_path) -> None:
    j = construct_joint([(0, 1), (1, 0)], [0.3, 0.7], names=["A", "B"])
    path = str(tmp_path / "joint.json")
    save_to_json(j, path)
    loaded = load_from_json(path)
    assert isinstance(loaded, JointTable)
    assert loaded.names == ("A", "B")
    assert loaded.allclose(j)


def test_csv_univariate(tmp_path) -> None:
    t = from_vectors([1, 2.5], [0.1, 0.9])
    path = str(tmp_path / "table.csv")
    save_to_csv(t, path)
    loaded = load_from_csv(path)
    assert loaded.outcomes == (1, 2.5)
    assert loaded.allclose(t)


def test_csv_joint_uses_default_column_names(tmp_path) -> None:
    j = construct_joint([(0, 1), (1, 0)], [0.5, 0.5])
    path = str(tmp_path / "joint.csv")
    save_to_csv(j, path)
    loaded = load_from_csv(path)
    assert isinstance(loaded, JointTable)
    assert loaded.names == ("X1", "X2")


def test_loading_revalidates(tmp_path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("Outcome,Probability\n1,0.5\n2,0.2\n", encoding="utf-8")
    with pytest.raises(InvalidProbability):
        load_from_csv(str(path))


def test_missing_file() -> None:
    with pytest.raises(FileNotFoundError):
        load_from_json("/nonexistent/table.json")
