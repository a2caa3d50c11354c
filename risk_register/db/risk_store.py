from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""Persistence of register records in the ``risks`` table.

All statements run on a caller-supplied psycopg2 cursor; the caller owns the
connection and the transaction boundary. Values are expected to be sanitized
already (snake_case columns, see services.sanitizer).

New records are written with a single ``execute_values`` batch INSERT and
return their generated ids.
"""

__all__ = [
    "InsertResult",
    "RiskStore",
    "RiskStoreError",
]

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "risks"


class RiskStoreError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_ids: list[Any] | None = None


def _quote(column: str) -> str:
    return '"' + column.replace('"', '""') + '"'


class RiskStore:
    """CRUD helper for the risks table bound to one cursor."""

    def __init__(self, cursor: Any, table: str = DEFAULT_TABLE, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.table = table
        self.page_size = page_size

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise RiskStoreError(str(e)) from e

    def fetch_risks(self, company_id: Any) -> list[dict[str, Any]]:
        """All records of a company ordered by sr_no, as column->value dicts."""
        self._execute(f"SELECT * FROM {self.table} WHERE company_id = %s ORDER BY sr_no", (company_id,))
        columns = [d[0] for d in self.cursor.description]
        return [dict(zip(columns, r, strict=False)) for r in self.cursor.fetchall()]

    def insert_risks(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult:
        """Batch INSERT; columns are the union of keys in first-seen order."""
        if not rows:
            return InsertResult(inserted_rows=0, returned_ids=[])
        columns: list[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        values = [tuple(row.get(c) for c in columns) for row in rows]
        cols_sql = ",".join(_quote(c) for c in columns)
        sql = f"INSERT INTO {self.table} ({cols_sql}) VALUES %s RETURNING id"
        try:
            returned = execute_values(self.cursor, sql, values, page_size=self.page_size, fetch=True)
        except psycopg2.Error as e:
            raise RiskStoreError(str(e)) from e
        logger.debug("inserted %d rows into %s", len(values), self.table)
        return InsertResult(inserted_rows=len(values), returned_ids=[r[0] for r in returned or []])

    def update_risk(self, risk_id: Any, values: Mapping[str, Any]) -> None:
        fields = [k for k in values if k != "id"]
        if not fields:
            return
        assignments = ", ".join(f"{_quote(k)} = %s" for k in fields)
        params = [values[k] for k in fields] + [risk_id]
        self._execute(f"UPDATE {self.table} SET {assignments} WHERE id = %s", params)

    def delete_risk(self, risk_id: Any) -> None:
        self._execute(f"DELETE FROM {self.table} WHERE id = %s", (risk_id,))

    def renumber(self, company_id: Any) -> int:
        """Rewrite sr_no as 1..n following the current sr_no order."""
        self._execute(f"SELECT id FROM {self.table} WHERE company_id = %s ORDER BY sr_no", (company_id,))
        ids = [r[0] for r in self.cursor.fetchall()]
        for number, risk_id in enumerate(ids, start=1):
            self._execute(f"UPDATE {self.table} SET sr_no = %s WHERE id = %s", (number, risk_id))
        return len(ids)
