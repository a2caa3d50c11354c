from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pandas as pd

"""Export query results or the working dataset to CSV / XLSX via pandas."""

__all__ = [
    "ExportError",
    "export_rows",
]

RESULTS_SHEET = "Results"


class ExportError(Exception):
    pass


def export_rows(rows: Sequence[Mapping[str, Any]], path: Path, columns: Sequence[str] | None = None) -> Path:
    """Write ``rows`` to ``path``; format chosen by suffix (.csv / .xlsx).

    Column order follows ``columns`` when given, otherwise the first row.
    """
    if not rows:
        raise ExportError("nothing to export: result set is empty")
    suffix = path.suffix.lower()
    if suffix not in (".csv", ".xlsx"):
        raise ExportError(f"unsupported export format: {path.suffix or '(none)'}")
    cols = list(columns) if columns else list(rows[0].keys())
    df = pd.DataFrame([dict(r) for r in rows], columns=cols)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        if suffix == ".csv":
            df.to_csv(path, index=False)
        else:
            df.to_excel(path, sheet_name=RESULTS_SHEET, index=False)
    except OSError as e:
        raise ExportError(f"failed writing {path}: {e}") from e
    return path
