"""
Import and export of outcome tables.

Tables are written as outcome/probability pairs in CSV or JSON. Loading goes
back through the validating constructors, so a loaded table satisfies the
same invariants as one built in code. Marginal back-references are not
stored.
"""

from __future__ import annotations

import csv
import json
from typing import Any, Dict, List, Union

from drv.joint import JointTable, construct_joint
from drv.table import OutcomeTable

Table = Union[OutcomeTable, JointTable]


def _parse_number(text: str) -> Union[int, float, str]:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _to_json_value(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_to_json_value(v) for v in value]
    return value


def _from_json_value(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_from_json_value(v) for v in value)
    return value


def save_to_json(table: Table, path: str) -> None:
    """
    Save a table to a JSON file.

    Args:
        table: Table to save.
        path: Path of the JSON file.
    """
    data: Dict[str, Any] = {
        "kind": "joint" if isinstance(table, JointTable) else "univariate",
        "outcomes": [_to_json_value(o) for o in table.outcomes],
        "probabilities": [float(p) for p in table.probabilities],
    }
    if isinstance(table, JointTable) and table.names is not None:
        data["names"] = list(table.names)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_from_json(path: str) -> Table:
    """
    Load a table from a JSON file written by `save_to_json`.

    Raises:
        FileNotFoundError: If the file is not found.
        ValueError: If the JSON structure is invalid or the table fails validation.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Table file not found: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON format: {e}")

    try:
        kind = str(data.get("kind", "univariate"))
        outcomes = [_from_json_value(o) for o in data["outcomes"]]
        probabilities = [float(p) for p in data["probabilities"]]
    except KeyError as e:
        raise ValueError(f"Invalid JSON format: missing key {e}")

    if kind == "joint":
        return construct_joint(outcomes, probabilities, names=data.get("names"))
    if kind != "univariate":
        raise ValueError(f"Unknown table kind: {kind!r}")
    return OutcomeTable.construct(outcomes, probabilities)


def save_to_csv(table: Table, path: str) -> None:
    """
    Save a table to a CSV file.

    Univariate tables use the columns `Outcome,Probability`; joint tables use
    one column per component (their names, or X1..Xk) followed by
    `Probability`.
    """
    if isinstance(table, JointTable):
        columns = list(table.names) if table.names is not None else [
            f"X{i+1}" for i in range(table.component_count)
        ]
    else:
        columns = ["Outcome"]

    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(columns + ["Probability"])
        for outcome, p in zip(table.outcomes, table.probabilities):
            values = list(outcome) if isinstance(table, JointTable) else [outcome]
            writer.writerow(values + [repr(float(p))])


def load_from_csv(path: str) -> Table:
    """
    Load a table from a CSV file written by `save_to_csv`.

    A header other than `Outcome,Probability` is read as a joint table whose
    component names are the leading columns.

    Raises:
        FileNotFoundError: If the file is not found.
        ValueError: If the CSV format is invalid or the table fails validation.
    """
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))
    except FileNotFoundError:
        raise FileNotFoundError(f"Table file not found: {path}")

    if not rows:
        raise ValueError("Invalid CSV format: the file is empty")
    header = rows[0]
    if len(header) < 2 or header[-1] != "Probability":
        raise ValueError("Invalid CSV format: the last column must be 'Probability'")

    outcomes: List[Any] = []
    probabilities: List[float] = []
    for line, row in enumerate(rows[1:], start=2):
        if not row:
            continue
        if len(row) != len(header):
            raise ValueError(f"Invalid CSV format: line {line} has {len(row)} fields, expected {len(header)}")
        values = [_parse_number(v) for v in row[:-1]]
        try:
            probabilities.append(float(row[-1]))
        except ValueError as e:
            raise ValueError(f"Invalid probability value on line {line}: {e}")
        outcomes.append(values[0] if header[:-1] == ["Outcome"] else tuple(values))

    if header[:-1] == ["Outcome"]:
        return OutcomeTable.construct(outcomes, probabilities)
    return construct_joint(outcomes, probabilities, names=header[:-1])
