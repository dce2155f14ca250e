"""
Expressions and events over random variables.

`RandomVariable` wraps an outcome table and overloads arithmetic to build
numeric `Expression` trees, and comparisons to build `Event` predicates.
Events compose with `&`, `|` and `~` (or `and_`, `or_`, `not_`). Nothing is
evaluated when a tree is built; evaluation needs an assignment of an outcome
to every home table, supplied by the probability engine.

Raw numbers are never overloaded: an expression only arises from a
`RandomVariable` (or an explicit `Constant`) operand.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from drv.table import Outcome, OutcomeTable, canonical_outcome

# Assignments map id(home table) to one outcome of that table.
Assignment = Mapping[int, Outcome]

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _unique_tables(groups: Iterable[Sequence[OutcomeTable]]) -> Tuple[OutcomeTable, ...]:
    seen: Dict[int, OutcomeTable] = {}
    for g in groups:
        for t in g:
            seen.setdefault(id(t), t)
    return tuple(seen.values())


class Expression:
    """
    Numeric expression over one or more random variables.
    """

    # Comparison operators build events, so identity hashing is kept explicitly.
    __hash__ = object.__hash__

    def tables(self) -> Tuple[OutcomeTable, ...]:
        """Distinct home tables referenced by the expression, in first-seen order."""
        raise NotImplementedError

    def evaluate(self, assignment: Assignment) -> Outcome:
        raise NotImplementedError

    # Arithmetic

    def _binary(self, other: Any, fn: Callable[[Any, Any], Any], symbol: str, *, reflected: bool = False) -> "Expression":
        other = as_expression(other)
        operands = (other, self) if reflected else (self, other)
        return Apply(fn, operands, symbol=symbol)

    def __add__(self, other: Any) -> "Expression":
        return self._binary(other, operator.add, "+")

    def __radd__(self, other: Any) -> "Expression":
        return self._binary(other, operator.add, "+", reflected=True)

    def __sub__(self, other: Any) -> "Expression":
        return self._binary(other, operator.sub, "-")

    def __rsub__(self, other: Any) -> "Expression":
        return self._binary(other, operator.sub, "-", reflected=True)

    def __mul__(self, other: Any) -> "Expression":
        return self._binary(other, operator.mul, "*")

    def __rmul__(self, other: Any) -> "Expression":
        return self._binary(other, operator.mul, "*", reflected=True)

    def __truediv__(self, other: Any) -> "Expression":
        return self._binary(other, operator.truediv, "/")

    def __rtruediv__(self, other: Any) -> "Expression":
        return self._binary(other, operator.truediv, "/", reflected=True)

    def __floordiv__(self, other: Any) -> "Expression":
        return self._binary(other, operator.floordiv, "//")

    def __mod__(self, other: Any) -> "Expression":
        return self._binary(other, operator.mod, "%")

    def __pow__(self, other: Any) -> "Expression":
        return self._binary(other, operator.pow, "**")

    def __rpow__(self, other: Any) -> "Expression":
        return self._binary(other, operator.pow, "**", reflected=True)

    def __neg__(self) -> "Expression":
        return Apply(operator.neg, (self,), symbol="neg")

    def __abs__(self) -> "Expression":
        return Apply(abs, (self,), symbol="abs")

    def map(self, fn: Callable[[Outcome], Outcome], *, name: Optional[str] = None) -> "Expression":
        """Expression for fn(self)."""
        return Apply(fn, (self,), symbol=name or getattr(fn, "__name__", "fn"))

    # Events

    def _compare(self, other: Any, op: str) -> "Comparison":
        return Comparison(self, op, as_expression(other))

    def __eq__(self, other: Any) -> "Comparison":  # type: ignore[override]
        return self._compare(other, "==")

    def __ne__(self, other: Any) -> "Comparison":  # type: ignore[override]
        return self._compare(other, "!=")

    def __lt__(self, other: Any) -> "Comparison":
        return self._compare(other, "<")

    def __le__(self, other: Any) -> "Comparison":
        return self._compare(other, "<=")

    def __gt__(self, other: Any) -> "Comparison":
        return self._compare(other, ">")

    def __ge__(self, other: Any) -> "Comparison":
        return self._compare(other, ">=")

    def isin(self, values: Iterable[Any]) -> "Membership":
        return Membership(self, values)

    def where(self, predicate: Callable[[Outcome], bool]) -> "Predicate":
        """Event that predicate(self) holds."""
        return Predicate(self, predicate)


class RandomVariable(Expression):
    """
    Leaf expression: the value of one outcome table.

    Indexing a variable whose table is a `JointTable` gives the expression for
    one of its components.
    """

    def __init__(self, table: OutcomeTable, name: Optional[str] = None) -> None:
        if not isinstance(table, OutcomeTable):
            raise TypeError("RandomVariable needs an OutcomeTable")
        self.table = table
        self.name = name

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return (self.table,)

    def evaluate(self, assignment: Assignment) -> Outcome:
        return assignment[id(self.table)]

    def __getitem__(self, position: Any) -> "Component":
        names = getattr(self.table, "names", None)
        if isinstance(position, str):
            if names is None or position not in names:
                raise KeyError(position)
            position = list(names).index(position)
        return Component(self, int(position))

    def __repr__(self) -> str:
        label = self.name or type(self.table).__name__
        return f"RandomVariable({label})"


class Component(Expression):
    """Component `position` of a variable with tuple outcomes."""

    def __init__(self, variable: RandomVariable, position: int) -> None:
        self.variable = variable
        self.position = int(position)

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return self.variable.tables()

    def evaluate(self, assignment: Assignment) -> Outcome:
        return self.variable.evaluate(assignment)[self.position]

    def __repr__(self) -> str:
        return f"{self.variable!r}[{self.position}]"


class Constant(Expression):
    def __init__(self, value: Outcome) -> None:
        self.value = value

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return ()

    def evaluate(self, assignment: Assignment) -> Outcome:
        return self.value

    def __repr__(self) -> str:
        return repr(self.value)


class Apply(Expression):
    """fn applied to the values of its operand expressions."""

    def __init__(self, fn: Callable[..., Outcome], operands: Sequence[Expression], *, symbol: str = "fn") -> None:
        self.fn = fn
        self.operands = tuple(operands)
        self.symbol = symbol

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return _unique_tables(o.tables() for o in self.operands)

    def evaluate(self, assignment: Assignment) -> Outcome:
        return self.fn(*(o.evaluate(assignment) for o in self.operands))

    def __repr__(self) -> str:
        if len(self.operands) == 2:
            return f"({self.operands[0]!r} {self.symbol} {self.operands[1]!r})"
        return f"{self.symbol}({', '.join(repr(o) for o in self.operands)})"


def as_expression(value: Any) -> Expression:
    """
    Wrap tables as variables and literals as constants.
    """
    if isinstance(value, Expression):
        return value
    if isinstance(value, OutcomeTable):
        return RandomVariable(value)
    if isinstance(value, Event):
        raise TypeError("an event cannot be used as a numeric expression")
    return Constant(value)


class Event:
    """
    Boolean predicate over one or more random variables.
    """

    def tables(self) -> Tuple[OutcomeTable, ...]:
        raise NotImplementedError

    def holds(self, assignment: Assignment) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Event") -> "And":
        return And(self, _as_event(other))

    def __or__(self, other: "Event") -> "Or":
        return Or(self, _as_event(other))

    def __invert__(self) -> "Not":
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError(
            "an Event has no truth value; evaluate it with drv.probability() "
            "and combine events with &, | and ~"
        )


def _as_event(value: Any) -> Event:
    if not isinstance(value, Event):
        raise TypeError(f"expected an Event, got {type(value).__name__}")
    return value


class Comparison(Event):
    def __init__(self, left: Expression, op: str, right: Expression) -> None:
        if op not in _COMPARISONS:
            raise ValueError(f"Unknown comparison operator: {op!r}")
        self.left = left
        self.op = op
        self.right = right

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return _unique_tables((self.left.tables(), self.right.tables()))

    def holds(self, assignment: Assignment) -> bool:
        a = canonical_outcome(self.left.evaluate(assignment))
        b = canonical_outcome(self.right.evaluate(assignment))
        return bool(_COMPARISONS[self.op](a, b))

    def __repr__(self) -> str:
        return f"({self.left!r} {self.op} {self.right!r})"


class Membership(Event):
    """The expression takes one of a finite set of values."""

    def __init__(self, expression: Expression, values: Iterable[Any]) -> None:
        self.expression = expression
        self.values = tuple(canonical_outcome(v) for v in values)

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return self.expression.tables()

    def holds(self, assignment: Assignment) -> bool:
        return canonical_outcome(self.expression.evaluate(assignment)) in self.values

    def __repr__(self) -> str:
        return f"({self.expression!r} in {set(self.values)!r})"


class Predicate(Event):
    """An arbitrary boolean function of one expression."""

    def __init__(self, expression: Expression, fn: Callable[[Outcome], bool]) -> None:
        self.expression = expression
        self.fn = fn

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return self.expression.tables()

    def holds(self, assignment: Assignment) -> bool:
        return bool(self.fn(self.expression.evaluate(assignment)))


class And(Event):
    def __init__(self, *parts: Event) -> None:
        if not parts:
            raise ValueError("And needs at least one event")
        self.parts = tuple(_as_event(p) for p in parts)

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return _unique_tables(p.tables() for p in self.parts)

    def holds(self, assignment: Assignment) -> bool:
        return all(p.holds(assignment) for p in self.parts)

    def __repr__(self) -> str:
        return "(" + " & ".join(repr(p) for p in self.parts) + ")"


class Or(Event):
    def __init__(self, *parts: Event) -> None:
        if not parts:
            raise ValueError("Or needs at least one event")
        self.parts = tuple(_as_event(p) for p in parts)

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return _unique_tables(p.tables() for p in self.parts)

    def holds(self, assignment: Assignment) -> bool:
        return any(p.holds(assignment) for p in self.parts)

    def __repr__(self) -> str:
        return "(" + " | ".join(repr(p) for p in self.parts) + ")"


class Not(Event):
    def __init__(self, part: Event) -> None:
        self.part = _as_event(part)

    def tables(self) -> Tuple[OutcomeTable, ...]:
        return self.part.tables()

    def holds(self, assignment: Assignment) -> bool:
        return not self.part.holds(assignment)

    def __repr__(self) -> str:
        return f"~{self.part!r}"


# Named combinators, for callers that prefer explicit calls to operators.


def equals(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), "==", as_expression(b))


def not_equals(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), "!=", as_expression(b))


def less_than(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), "<", as_expression(b))


def less_equal(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), "<=", as_expression(b))


def greater_than(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), ">", as_expression(b))


def greater_equal(a: Any, b: Any) -> Comparison:
    return Comparison(as_expression(a), ">=", as_expression(b))


def is_in(a: Any, values: Iterable[Any]) -> Membership:
    return Membership(as_expression(a), values)


def and_(*events: Event) -> And:
    return And(*events)


def or_(*events: Event) -> Or:
    return Or(*events)


def not_(event: Event) -> Not:
    return Not(event)


def sum_of(*operands: Any) -> Expression:
    """Expression for the sum of the operands."""
    if not operands:
        raise ValueError("sum_of needs at least one operand")
    exprs: List[Expression] = [as_expression(o) for o in operands]
    return Apply(lambda *xs: sum(xs[1:], xs[0]), exprs, symbol="sum")


def product_of(*operands: Any) -> Expression:
    """Expression for the product of the operands."""
    if not operands:
        raise ValueError("product_of needs at least one operand")
    exprs: List[Expression] = [as_expression(o) for o in operands]

    def _prod(*xs: Any) -> Any:
        out = xs[0]
        for x in xs[1:]:
            out = out * x
        return out

    return Apply(_prod, exprs, symbol="product")
