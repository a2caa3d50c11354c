from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from .risk_calc import apply_risk_score

"""Owned working dataset shared by upload, query, dashboard and save.

A RiskDataContext is created by the caller and passed to each consumer.
Mutations only change memory; ``save()`` / ``load()`` are the explicit
persistence boundary (a JSON file standing in for browser local storage).

The column schema is taken from the first row and returned in that order.
"""

__all__ = [
    "DataContextError",
    "RiskDataContext",
    "SERIAL_COLUMN",
    "as_stored",
]

logger = logging.getLogger(__name__)

SERIAL_COLUMN = "Sr#"


class DataContextError(Exception):
    pass


def _serial_of(row: Mapping[str, Any]) -> int:
    try:
        return int(float(row.get(SERIAL_COLUMN) or 0))
    except (TypeError, ValueError):
        return 0


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def as_stored(record: Mapping[str, Any]) -> dict[str, Any]:
    """``record`` as it reads back from the data store (dates, decimals become text)."""
    return json.loads(json.dumps(dict(record), ensure_ascii=False, default=_json_default))


class RiskDataContext:
    """In-memory register records with explicit load/save."""

    def __init__(self, rows: Iterable[Mapping[str, Any]] | None = None) -> None:
        self._rows: list[dict[str, Any]] = [dict(r) for r in rows] if rows else []

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self._rows

    @property
    def columns(self) -> list[str]:
        return list(self._rows[0].keys()) if self._rows else []

    def __len__(self) -> int:
        return len(self._rows)

    def set_data(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self._rows = [dict(r) for r in rows]

    def clear(self) -> None:
        self._rows = []

    def next_serial(self) -> int:
        """One past the highest Sr# present (1 for an empty dataset)."""
        return max((_serial_of(r) for r in self._rows), default=0) + 1

    def _index_of(self, serial: int) -> int:
        for i, row in enumerate(self._rows):
            if _serial_of(row) == serial:
                return i
        raise DataContextError(f"no record with {SERIAL_COLUMN} {serial}")

    def add_record(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Append a new record with the next Sr# and freshly computed scores."""
        scored = apply_risk_score(record)
        scored = {SERIAL_COLUMN: self.next_serial(), **{k: v for k, v in scored.items() if k != SERIAL_COLUMN}}
        self._rows.append(scored)
        return scored

    def update_record(self, serial: int, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Apply field changes to the record with ``serial`` and re-score it."""
        index = self._index_of(serial)
        updated = apply_risk_score({**self._rows[index], **changes})
        updated[SERIAL_COLUMN] = self._rows[index].get(SERIAL_COLUMN)
        self._rows[index] = updated
        return updated

    def delete_record(self, serial: int) -> dict[str, Any]:
        return self._rows.pop(self._index_of(serial))

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self._rows, ensure_ascii=False, default=_json_default), encoding="utf-8")
        logger.debug("data store saved path=%s rows=%d", path, len(self._rows))
        return path

    @classmethod
    def load(cls, path: Path) -> RiskDataContext:
        """Load a saved dataset; a missing file yields an empty context."""
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except json.JSONDecodeError as e:
            raise DataContextError(f"corrupt data store {path}: {e}") from e
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise DataContextError(f"data store must hold a list of records: {path}")
        return cls(data)
