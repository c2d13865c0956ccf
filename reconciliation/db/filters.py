"""Typed filter expressions for listing queries.

Repositories translate search payloads into a list of these expressions and
hand them to apply_filters(), which AND-combines them onto a SELECT. An
expression whose operand is empty (None, blank text, no bounds) matches
everything and is skipped.
"""

import operator
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import ColumnElement, Select, and_, false, func, or_

ComparisonOp = Literal["<", "<=", ">", ">=", "!="]

_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class Equals:
    column: Any
    value: Any


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match against any of the given columns."""

    columns: Sequence[Any]
    text: str | None


@dataclass(frozen=True)
class Range:
    """Inclusive bounds; either side may be open."""

    column: Any
    low: Any = None
    high: Any = None


@dataclass(frozen=True)
class Comparison:
    column: Any
    op: ComparisonOp
    value: Any


@dataclass(frozen=True)
class AnyOf:
    column: Any
    values: Sequence[Any] | None


Filter = Equals | Contains | Range | Comparison | AnyOf


def to_clause(expr: Filter) -> ColumnElement[bool] | None:
    """Compile one expression, or return None when it places no constraint."""
    if isinstance(expr, Equals):
        return None if expr.value is None else expr.column == expr.value

    if isinstance(expr, Contains):
        text = (expr.text or "").strip().lower()
        if not text:
            return None
        return or_(*(func.lower(col).contains(text, autoescape=True) for col in expr.columns))

    if isinstance(expr, Range):
        bounds = []
        if expr.low is not None:
            bounds.append(expr.column >= expr.low)
        if expr.high is not None:
            bounds.append(expr.column <= expr.high)
        return and_(*bounds) if bounds else None

    if isinstance(expr, Comparison):
        if expr.value is None:
            return None
        return _OPERATORS[expr.op](expr.column, expr.value)

    if isinstance(expr, AnyOf):
        if expr.values is None:
            return None
        # An explicit empty list admits nothing.
        if not expr.values:
            return false()
        return expr.column.in_(list(expr.values))

    raise TypeError(f"Unsupported filter expression: {type(expr).__name__}")


def apply_filters(stmt: Select[Any], filters: Iterable[Filter]) -> Select[Any]:
    """AND every non-empty expression onto the statement."""
    for expr in filters:
        clause = to_clause(expr)
        if clause is not None:
            stmt = stmt.where(clause)
    return stmt
