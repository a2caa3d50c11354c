from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

"""Column-name translation between register spreadsheets and the database.

The spreadsheet uses display headers ("Risk Value"); the ``risks`` table uses
snake_case columns ("risk_value"). Known headers map through a fixed table,
anything else is sanitized mechanically.
"""

__all__ = [
    "CSV_TO_DB_COLUMNS",
    "DATE_COLUMNS",
    "DB_TO_CSV_COLUMNS",
    "DEFAULT_NULL_SENTINELS",
    "INTEGER_COLUMNS",
    "column_mapping",
    "map_csv_to_db",
    "map_db_to_csv",
    "sanitize_column_name",
    "sanitize_rows_for_db",
]

CSV_TO_DB_COLUMNS: dict[str, str] = {
    "Sr#": "sr_no",
    "Business Process": "business_process",
    "Date Risk Identified": "date_risk_identified",
    "Risk Description": "risk_description",
    "Threats": "threats",
    "Vulnerabilities": "vulnerabilities",
    "Existing Controls": "existing_controls",
    "Risk Owner": "risk_owner",
    "Controls / Clause No": "controls_clause_no",
    "ISO 27001: 2022 Controls Reference": "iso_27001_2022_controls_reference",
    "Confidentiality": "confidentiality",
    "Integrity": "integrity",
    "Availability": "availability",
    "Max CIA Value": "max_cia_value",
    "Vulnerability Rating": "vulnerability_rating",
    "Threat Frequency": "threat_frequency",
    "Threat Impact": "threat_impact",
    "Threat Value": "threat_value",
    "Risk Value": "risk_value",
    "Planned Mitigation Completion Date": "planned_mitigation_completion_date",
    "Risk Treatment Action": "risk_treatment_action",
    "Revised Vulnerability Rating": "revised_vulnerability_rating",
    "Revised Threat Frequency": "revised_threat_frequency",
    "Revised Threat Impact": "revised_threat_impact",
    "Revised Threat Value": "revised_threat_value",
    "Revised Risk Value": "revised_risk_value",
    "Actual Mitigation Completion Date": "actual_mitigation_completion_date",
    "Risk Treatment Option": "risk_treatment_option",
}

DB_TO_CSV_COLUMNS: dict[str, str] = {db: csv for csv, db in CSV_TO_DB_COLUMNS.items()}

DATE_COLUMNS = frozenset({
    "date_risk_identified",
    "planned_mitigation_completion_date",
    "actual_mitigation_completion_date",
    "target_date",
    "due_date",
})

INTEGER_COLUMNS = frozenset({
    "confidentiality",
    "integrity",
    "availability",
    "vulnerability_rating",
    "threat_frequency",
    "threat_impact",
    "max_cia_value",
    "threat_value",
    "risk_value",
    "revised_vulnerability_rating",
    "revised_threat_frequency",
    "revised_threat_impact",
    "revised_threat_value",
    "revised_risk_value",
})

# Compared case-insensitively after strip
DEFAULT_NULL_SENTINELS = frozenset({"NA", "N/A", "NULL", "UNDEFINED", "-", ""})

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_UNDERSCORES = re.compile(r"_+")


def sanitize_column_name(name: str) -> str:
    """'Controls / Clause No' -> 'controls_clause_no'."""
    cleaned = _NON_ALNUM.sub("_", name.lower())
    cleaned = _UNDERSCORES.sub("_", cleaned)
    return cleaned.strip("_")


def column_mapping(headers: Iterable[str]) -> dict[str, str]:
    """Display header -> database column for every header."""
    return {h: CSV_TO_DB_COLUMNS.get(h) or sanitize_column_name(h) for h in headers}


def map_csv_to_db(row: Mapping[str, Any]) -> dict[str, Any]:
    """Rename known display headers; unknown keys pass through unchanged."""
    return {CSV_TO_DB_COLUMNS.get(k, k): v for k, v in row.items()}


def map_db_to_csv(row: Mapping[str, Any]) -> dict[str, Any]:
    """Rename known database columns back to display headers."""
    return {DB_TO_CSV_COLUMNS.get(k, k): v for k, v in row.items()}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _clean_date(value: Any, sentinels: frozenset[str]) -> Any:
    if _is_blank(value):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.upper() in sentinels:
            return None
        return stripped
    return value


def _clean_integer(value: Any, sentinels: frozenset[str]) -> int | float | None:
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    stripped = str(value).strip()
    if stripped.upper() in sentinels:
        return None
    try:
        number = float(stripped)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number) if number.is_integer() else number


def sanitize_rows_for_db(
    rows: Iterable[Mapping[str, Any]],
    null_sentinels: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Translate display rows into values the ``risks`` table accepts.

    - headers renamed through ``column_mapping``
    - empty strings and NaN become None
    - date columns: sentinel strings ("N/A", "-", ...) become None
    - integer columns: numbers kept, anything unparseable becomes None
    """
    sentinels = frozenset(s.strip().upper() for s in null_sentinels) if null_sentinels else DEFAULT_NULL_SENTINELS
    sanitized: list[dict[str, Any]] = []
    for row in rows:
        out: dict[str, Any] = {}
        for key, value in row.items():
            column = CSV_TO_DB_COLUMNS.get(key) or sanitize_column_name(key)
            if _is_blank(value):
                value = None
            if column in DATE_COLUMNS:
                value = _clean_date(value, sentinels)
            elif column in INTEGER_COLUMNS:
                value = _clean_integer(value, sentinels)
            out[column] = value
        sanitized.append(out)
    return sanitized
