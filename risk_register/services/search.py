from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

"""Free-text search and pagination over the working dataset."""

__all__ = [
    "HIDDEN_COLUMNS",
    "Page",
    "display_columns",
    "paginate",
    "search_rows",
]

DEFAULT_PAGE_SIZE = 50

# Compared case-insensitively
HIDDEN_COLUMNS = frozenset({"id", "company_id", "created_at"})


@dataclass(frozen=True)
class Page:
    rows: list[dict[str, Any]]
    page: int  # 1-based, clamped to the available range
    total_pages: int
    total_rows: int


def search_rows(rows: Iterable[Mapping[str, Any]], text: str) -> list[Mapping[str, Any]]:
    """Rows where any cell contains ``text`` (case-insensitive)."""
    needle = text.lower()
    return [row for row in rows if any(needle in str(v).lower() for v in row.values())]


def paginate(rows: Sequence[Mapping[str, Any]], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page:
    if per_page < 1:
        raise ValueError(f"per_page must be positive: {per_page}")
    total_pages = math.ceil(len(rows) / per_page)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    return Page(
        rows=[dict(r) for r in rows[start:start + per_page]],
        page=page,
        total_pages=total_pages,
        total_rows=len(rows),
    )


def display_columns(columns: Iterable[str]) -> list[str]:
    """Columns shown to users: database bookkeeping columns removed."""
    return [c for c in columns if c.lower() not in HIDDEN_COLUMNS]
