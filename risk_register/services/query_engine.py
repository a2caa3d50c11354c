from __future__ import annotations

import logging
import math
import numbers
import operator as op
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.filter_condition import Connector, DataType, FilterCondition, Operator
from ..models.query_result import QueryResult, QueryStatus

"""Tabular filter engine.

Evaluates a left-to-right chain of FilterConditions against an in-memory table
(list of row dicts) and returns the surviving rows in table order.

Evaluation rules:
- Every condition is matched against the *full* table on its own; match sets
  are merged afterwards using the connector stored on the previous condition
  (AND = keep running rows also matched now, OR = union).
- A missing/None cell never matches, whatever the operator (including !=).
- Cell and value are coerced by the declared data type; coercion never raises.
  Unparseable numbers become NaN and unparseable dates NaT, both of which
  compare false.
"""

__all__ = [
    "coerce",
    "evaluate",
    "matches",
    "parse_date",
    "parse_number",
]

logger = logging.getLogger(__name__)

# Leading numeric literal, as accepted by a lenient float parse ("12abc" -> 12)
_NUMBER_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# pandas reads these as the current time; they are not dates in a register
_RELATIVE_DATE_WORDS = frozenset({"now", "today"})

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    Operator.EQ.value: op.eq,
    Operator.NE.value: lambda a, b: not op.eq(a, b),
    Operator.GT.value: op.gt,
    Operator.LT.value: op.lt,
    Operator.GE.value: op.ge,
    Operator.LE.value: op.le,
}

_TEXT_TESTS: dict[str, Callable[[str, str], bool]] = {
    Operator.CONTAINS.value: lambda cell, value: value in cell,
    Operator.STARTS_WITH.value: str.startswith,
    Operator.ENDS_WITH.value: str.endswith,
}


def parse_number(value: Any) -> float:
    """Parse the leading numeric part of ``value``; NaN when there is none."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, numbers.Real):
        return float(value)
    m = _NUMBER_PREFIX.match(str(value).lstrip())
    if m is None:
        return math.nan
    return float(m.group(0).replace("Infinity", "inf"))


def parse_date(value: Any) -> Any:
    """Parse ``value`` into a naive UTC ``pd.Timestamp``; ``pd.NaT`` when invalid.

    Numbers are taken as epoch milliseconds. No format validation is done
    beyond what pandas' parser accepts.
    """
    if isinstance(value, bool):
        return pd.NaT
    try:
        if isinstance(value, numbers.Real):
            if math.isnan(value):
                return pd.NaT
            ts = pd.to_datetime(value, unit="ms")
        elif isinstance(value, (datetime, date)):
            ts = pd.to_datetime(value)
        else:
            text = str(value).strip()
            if not text:
                return pd.NaT
            if text.lower() in _RELATIVE_DATE_WORDS:
                return pd.NaT
            ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        # OutOfBoundsDatetime / DateParseError are ValueError subclasses
        return pd.NaT
    if ts is pd.NaT or pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def _parse_boolean(value: Any) -> bool:
    return str(value).lower() == "true"


def _strict_number(text: str) -> float:
    """Numeric value of a whole string for loose comparison ("" -> 0, junk -> NaN)."""
    stripped = text.strip()
    if stripped == "":
        return 0.0
    if _NUMBER_PREFIX.fullmatch(stripped) is None:
        return math.nan
    return float(stripped.replace("Infinity", "inf"))


def _display(value: Any) -> str:
    """String form used by the substring operators."""
    if value is pd.NaT:
        return "Invalid Date"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        number = float(value)
        if math.isnan(number):
            return "NaN"
        if math.isinf(number):
            return "Infinity" if number > 0 else "-Infinity"
        if number.is_integer():
            return str(int(number))
        return repr(number)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _loose_operands(cell: Any, value: Any) -> tuple[Any, Any]:
    """Bring an untyped cell and the user's text into comparable form.

    Strings compare as strings; a number against a string compares
    numerically; anything else falls back to its display string.
    """
    if isinstance(cell, str) and isinstance(value, str):
        return cell, value
    cell_is_number = isinstance(cell, numbers.Real)
    value_is_number = isinstance(value, numbers.Real)
    if cell_is_number and value_is_number:
        return float(cell), float(value)
    if cell_is_number and isinstance(value, str):
        return float(cell), _strict_number(value)
    if value_is_number and isinstance(cell, str):
        return _strict_number(cell), float(value)
    return _display(cell), _display(value)


def coerce(cell: Any, value: Any, data_type: str) -> tuple[Any, Any]:
    """Coerce a cell/value pair according to the declared data type."""
    if data_type == DataType.NUMBER.value:
        return parse_number(cell), parse_number(value)
    if data_type == DataType.DATE.value:
        return parse_date(cell), parse_date(value)
    if data_type == DataType.BOOLEAN.value:
        return _parse_boolean(cell), _parse_boolean(value)
    # String and unrecognised types keep the raw values
    return cell, value


def matches(row: Mapping[str, Any], condition: FilterCondition) -> bool:
    """Single-row predicate for one condition."""
    cell = row.get(condition.column)
    if cell is None:
        return False

    cell_value, value = coerce(cell, condition.value, condition.data_type)

    text_test = _TEXT_TESTS.get(condition.operator)
    if text_test is not None:
        return text_test(_display(cell_value).lower(), _display(value).lower())

    compare = _COMPARATORS.get(condition.operator)
    if compare is None:
        return False
    if condition.data_type not in (DataType.NUMBER.value, DataType.DATE.value, DataType.BOOLEAN.value):
        cell_value, value = _loose_operands(cell_value, value)
    try:
        return bool(compare(cell_value, value))
    except TypeError:
        logger.debug(
            "uncomparable operands column=%s operator=%s types=%s/%s",
            condition.column, condition.operator, type(cell_value).__name__, type(value).__name__,
        )
        return False


def _row_key(row: Mapping[str, Any]) -> Any:
    try:
        # type is part of the key: 1, 1.0 and True are distinct cells
        return frozenset((k, type(v).__name__, v) for k, v in row.items())
    except TypeError:  # unhashable cell values
        return repr(sorted(row.items(), key=lambda kv: kv[0]))


def _union(table: Sequence[Mapping[str, Any]], left: list[int], right: list[int]) -> list[int]:
    """Ordered union of row indices, collapsing structurally equal rows."""
    merged: list[int] = []
    seen: set[Any] = set()
    for index in sorted(set(left) | set(right)):
        key = _row_key(table[index])
        if key in seen:
            continue
        seen.add(key)
        merged.append(index)
    return merged


def evaluate(table: Sequence[Mapping[str, Any]], conditions: Sequence[FilterCondition]) -> QueryResult:
    """Evaluate ``conditions`` against ``table``.

    Returns:
        QueryResult with status EMPTY_TABLE when there is no data,
        INCOMPLETE_FILTER when any condition lacks column/operator/value,
        otherwise OK with the matching rows in original table order.
        Neither ``table`` nor ``conditions`` is modified.
    """
    if not table:
        return QueryResult.empty_table()
    if not conditions:
        return QueryResult(status=QueryStatus.OK, rows=list(table))
    if not all(c.is_complete for c in conditions):
        return QueryResult.incomplete_filter()

    selected: list[int] = []
    for index, condition in enumerate(conditions):
        hits = [i for i, row in enumerate(table) if matches(row, condition)]
        logger.debug(
            "condition %d column=%s operator=%s hits=%d", index, condition.column, condition.operator, len(hits)
        )
        if index == 0:
            selected = hits
            continue
        connector = str(conditions[index - 1].connector or "").upper()
        if connector == Connector.AND.value:
            hit_set = set(hits)
            selected = [i for i in selected if i in hit_set]
        elif connector == Connector.OR.value:
            selected = _union(table, selected, hits)
        else:
            # unknown connector leaves the running result untouched
            logger.debug("condition %d: unknown connector %r ignored", index - 1, connector)

    return QueryResult(status=QueryStatus.OK, rows=[table[i] for i in selected])
