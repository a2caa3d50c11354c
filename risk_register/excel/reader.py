from __future__ import annotations

import re
import zipfile
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..services.data_context import SERIAL_COLUMN

"""Spreadsheet upload reader.

- .csv is read with every cell as text (empty cells stay "")
- .xlsx / .xls: only the first sheet is read; blank cells become None
- Row 1 is the header row; fully empty rows are dropped
- Required headers are matched fuzzily: every word of the required header
  must occur in some actual header (punctuation ignored, case-insensitive)

Uploaded rows are merged into the working dataset in replace or append mode.
Append mode renumbers Sr# after the current maximum and skips rows that
duplicate an existing record on every column except Sr#.
"""

__all__ = [
    "MissingColumnsError",
    "SheetData",
    "UnsupportedFileError",
    "UploadError",
    "UploadReadError",
    "UploadResult",
    "find_missing_headers",
    "fuzzy_match",
    "merge_upload",
    "read_upload",
]

CSV_SUFFIXES = {".csv"}
EXCEL_SUFFIXES = {".xlsx", ".xls"}
UPLOAD_MODES = ("replace", "append")

_PUNCT = re.compile(r"[^a-zA-Z0-9 ]")


class UploadError(Exception):
    """Base class for upload problems the user has to correct."""

    error_type = "UPLOAD_FAILED"


class UnsupportedFileError(UploadError):
    """Raised when the file is neither CSV nor Excel."""

    error_type = "UNSUPPORTED_FILE"


class UploadReadError(UploadError):
    """Raised when the file cannot be parsed."""

    error_type = "READ_FAILED"


class MissingColumnsError(UploadError):
    """Raised when required headers are missing from the upload."""

    error_type = "MISSING_COLUMNS"

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        listed = ", ".join(f'"{m}"' for m in self.missing)
        super().__init__(f"Cannot upload file. Missing columns: [{listed}]")


@dataclass
class SheetData:
    source: str
    columns: list[str]
    rows: list[dict[str, Any]]


@dataclass(frozen=True)
class UploadResult:
    rows: list[dict[str, Any]]  # merged working dataset
    added: int
    duplicates: list[dict[str, Any]] = field(default_factory=list)


def _plain(value: Any) -> Any:
    """Convert pandas/numpy cell values into plain Python values."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    return value


def read_upload(path: Path) -> SheetData:
    """Read an uploaded CSV / Excel file into row dicts keyed by header."""
    suffix = path.suffix.lower()
    if suffix not in CSV_SUFFIXES | EXCEL_SUFFIXES:
        raise UnsupportedFileError("Invalid file type. Please upload a CSV or Excel file.")
    try:
        if suffix in CSV_SUFFIXES:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
        else:
            # keep literal "N/A" etc. as text; only truly blank cells are missing
            df = pd.read_excel(path, sheet_name=0, keep_default_na=False, na_values=[""])
    except (OSError, ValueError, zipfile.BadZipFile, pd.errors.ParserError) as e:
        raise UploadReadError(f"Error reading {path.name}. Please check the file format. ({e})") from e

    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, Any]] = []
    for raw in df.itertuples(index=False, name=None):
        values = [_plain(v) for v in raw]
        if all(v is None or (isinstance(v, str) and v.strip() == "") for v in values):
            continue
        rows.append(dict(zip(columns, values, strict=False)))
    return SheetData(source=path.name, columns=columns, rows=rows)


def _words(text: str) -> str:
    return _PUNCT.sub("", text).lower()


def fuzzy_match(required: str, actual_headers: Iterable[str]) -> str | None:
    """First actual header containing every word of ``required``."""
    required_words = [w for w in _words(required).split(" ") if w]
    for actual in actual_headers:
        normalized = _words(actual)
        if all(word in normalized for word in required_words):
            return actual
    return None


def find_missing_headers(required: Iterable[str], actual_headers: Sequence[str]) -> list[str]:
    return [r for r in required if fuzzy_match(r, actual_headers) is None]


def _is_duplicate(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    keys_a = [k for k in a if k != SERIAL_COLUMN]
    keys_b = [k for k in b if k != SERIAL_COLUMN]
    if len(keys_a) != len(keys_b):
        return False
    return all(k in b and a[k] == b[k] for k in keys_a)


def _next_serial(rows: Sequence[Mapping[str, Any]]) -> int:
    serials = []
    for row in rows:
        try:
            serials.append(int(float(row.get(SERIAL_COLUMN) or 0)))
        except (TypeError, ValueError):
            serials.append(0)
    return max(serials) + 1 if serials else 1


def _with_serials(rows: Sequence[Mapping[str, Any]], start: int) -> list[dict[str, Any]]:
    return [{**row, SERIAL_COLUMN: str(start + i)} for i, row in enumerate(rows)]


def merge_upload(
    existing: Sequence[Mapping[str, Any]],
    incoming: Sequence[Mapping[str, Any]],
    mode: str = "replace",
) -> UploadResult:
    """Merge uploaded rows into the working dataset."""
    if mode not in UPLOAD_MODES:
        raise ValueError(f"upload mode must be one of {UPLOAD_MODES}: {mode!r}")

    if mode == "replace":
        if incoming and not incoming[0].get(SERIAL_COLUMN):
            rows = _with_serials(incoming, 1)
        else:
            rows = [dict(r) for r in incoming]
        return UploadResult(rows=rows, added=len(rows))

    offset = _next_serial(existing)
    candidates = _with_serials(incoming, offset)
    new_rows: list[dict[str, Any]] = []
    duplicates: list[dict[str, Any]] = []
    for row in candidates:
        if any(_is_duplicate(current, row) for current in existing):
            duplicates.append(row)
        else:
            new_rows.append(row)
    merged = [dict(r) for r in existing] + _with_serials(new_rows, offset)
    return UploadResult(rows=merged, added=len(new_rows), duplicates=duplicates)
