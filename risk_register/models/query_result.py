from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""QueryResult model returned by the filter engine.

Empty source data and incomplete filters are reported as statuses on the
result so that callers can render distinct messages; neither is an exception.
"""

__all__ = [
    "QueryResult",
    "QueryStatus",
]

EMPTY_TABLE_MESSAGE = "No data available to query."
INCOMPLETE_FILTER_MESSAGE = "Please ensure all filter fields (Column, Operator, Value) are filled."


class QueryStatus(Enum):
    """Outcome of a query execution.

    - OK: evaluation ran; ``rows`` may still be empty (no matches)
    - EMPTY_TABLE: there was no source data to query
    - INCOMPLETE_FILTER: a condition is missing column, operator or value
    """
    OK = "ok"
    EMPTY_TABLE = "empty_table"
    INCOMPLETE_FILTER = "incomplete_filter"


@dataclass(frozen=True)
class QueryResult:
    status: QueryStatus
    rows: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.OK

    @property
    def matched(self) -> int:
        return len(self.rows)

    @staticmethod
    def empty_table() -> QueryResult:
        return QueryResult(status=QueryStatus.EMPTY_TABLE, rows=[], message=EMPTY_TABLE_MESSAGE)

    @staticmethod
    def incomplete_filter() -> QueryResult:
        return QueryResult(status=QueryStatus.INCOMPLETE_FILTER, rows=[], message=INCOMPLETE_FILTER_MESSAGE)
