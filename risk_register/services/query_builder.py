from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from ..models.filter_condition import Connector, DataType, FilterCondition, Operator
from ..models.query_result import QueryResult
from .query_engine import evaluate

"""Query builder: owns the editable list of filter conditions.

The builder is the interactive side of the filter engine. Conditions are
created with defaults, edited field by field, removed or reset; the query only
runs on an explicit ``execute()``.

Conditions can also be parsed from text (``column|operator|value|type|connector``)
or loaded from a YAML list for non-interactive use.
"""

__all__ = [
    "OPERATORS_BY_TYPE",
    "QueryBuilder",
    "QueryBuilderError",
    "load_conditions",
    "parse_condition",
]

logger = logging.getLogger(__name__)

_ORDERING = [Operator.GT.value, Operator.LT.value, Operator.GE.value, Operator.LE.value]

OPERATORS_BY_TYPE: dict[str, list[str]] = {
    DataType.STRING.value: [
        Operator.EQ.value,
        Operator.NE.value,
        Operator.CONTAINS.value,
        Operator.STARTS_WITH.value,
        Operator.ENDS_WITH.value,
        Operator.GT.value,
        Operator.LT.value,
    ],
    DataType.NUMBER.value: [Operator.EQ.value, Operator.NE.value, *_ORDERING],
    DataType.DATE.value: [Operator.EQ.value, Operator.NE.value, *_ORDERING],
    DataType.BOOLEAN.value: [Operator.EQ.value, Operator.NE.value],
}

# Accepted field names for update_filter (UI spelling and attribute spelling)
_FIELD_ALIASES = {
    "column": "column",
    "operator": "operator",
    "value": "value",
    "data_type": "data_type",
    "dataType": "data_type",
    "connector": "connector",
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


class QueryBuilderError(Exception):
    """Raised for invalid builder edits or unparseable condition definitions."""


def _new_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))


class QueryBuilder:
    """Editable list of FilterConditions bound to a column set."""

    def __init__(self, columns: Sequence[str]) -> None:
        self.columns = list(columns)
        self.filters: list[FilterCondition] = []
        self.last_result: QueryResult | None = None

    @classmethod
    def for_table(cls, rows: Sequence[Mapping[str, Any]]) -> QueryBuilder:
        """Builder whose columns are taken from the first row of ``rows``."""
        return cls(list(rows[0].keys()) if rows else [])

    @staticmethod
    def operators_for(data_type: str) -> list[str]:
        """Operators offered for ``data_type`` (empty list for unknown types)."""
        return list(OPERATORS_BY_TYPE.get(data_type, []))

    def add_filter(self) -> FilterCondition:
        condition = FilterCondition(
            id=_new_id(),
            column=self.columns[0] if self.columns else "",
            operator="",
            value="",
            data_type=DataType.STRING.value,
            connector=Connector.AND.value,
        )
        self.filters.append(condition)
        return condition

    def _get(self, filter_id: str) -> FilterCondition:
        for condition in self.filters:
            if condition.id == filter_id:
                return condition
        raise QueryBuilderError(f"unknown filter id: {filter_id}")

    def update_filter(self, filter_id: str, field: str, value: str) -> FilterCondition:
        """Set one field of an existing condition in place."""
        attr = _FIELD_ALIASES.get(field)
        if attr is None:
            raise QueryBuilderError(f"unknown filter field: {field}")
        condition = self._get(filter_id)
        setattr(condition, attr, value)
        return condition

    def remove_filter(self, filter_id: str) -> None:
        self.filters = [c for c in self.filters if c.id != filter_id]

    def reset(self) -> None:
        self.filters = []
        self.last_result = None

    def execute(self, rows: Sequence[Mapping[str, Any]]) -> QueryResult:
        result = evaluate(rows, self.filters)
        logger.debug("query executed status=%s matched=%d", result.status.value, result.matched)
        self.last_result = result
        return result


def _condition_from_mapping(data: Mapping[str, Any], index: int) -> FilterCondition:
    def text(key: str, *aliases: str, default: str = "") -> str:
        for k in (key, *aliases):
            if k in data and data[k] is not None:
                return str(data[k])
        return default

    return FilterCondition(
        id=text("id", default=f"f{index + 1}"),
        column=text("column"),
        operator=text("operator"),
        value=text("value"),
        data_type=text("data_type", "dataType", "type", default=DataType.STRING.value),
        connector=text("connector", default=Connector.AND.value).upper(),
    )


def parse_condition(text: str, index: int = 0) -> FilterCondition:
    """Parse ``column|operator|value[|data_type[|connector]]``.

    Whitespace around each part is stripped. Missing parts keep their defaults;
    an empty value is kept so that evaluation reports the filter as incomplete.
    """
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < 3 or len(parts) > 5:
        raise QueryBuilderError(f"expected column|operator|value[|type[|connector]]: {text!r}")
    keys = ["column", "operator", "value", "data_type", "connector"]
    return _condition_from_mapping(dict(zip(keys, parts, strict=False)), index)


def load_conditions(path: Path) -> list[FilterCondition]:
    """Load a YAML list of condition mappings."""
    if not path.exists():
        raise QueryBuilderError(f"filter file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    except yaml.YAMLError as e:
        raise QueryBuilderError(f"invalid yaml: {e}") from e
    if isinstance(data, Mapping):
        data = data.get("filters", [])
    if not isinstance(data, list):
        raise QueryBuilderError(f"filter file must contain a list: {path}")
    conditions = []
    for i, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise QueryBuilderError(f"filter #{i + 1} must be a mapping, got {type(item).__name__}")
        conditions.append(_condition_from_mapping(item, i))
    return conditions
