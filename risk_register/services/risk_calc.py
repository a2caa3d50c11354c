from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.risk_score import DashboardSummary, RiskScore

"""Risk scoring and dashboard aggregation.

risk value = max(Confidentiality, Integrity, Availability)
             x Threat Impact x Threat Frequency x Vulnerability Rating

Ratings may be stored as bare numbers or as dropdown labels such as
"3 - High"; only the leading integer counts.
"""

__all__ = [
    "RISK_LEVEL_BANDS",
    "apply_risk_score",
    "calculate_risk",
    "rating_number",
    "risk_level",
    "summarize",
]

RISK_LEVEL_BANDS: list[tuple[int, int, str]] = [
    (1, 16, "Negligible"),
    (17, 64, "Low"),
    (65, 128, "Medium"),
    (129, 192, "High"),
    (193, 256, "Very High"),
]
UNKNOWN_LEVEL = "Unknown"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def rating_number(value: Any) -> int:
    """Numeric rating of a cell; 0 when absent or unparseable."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        m = _LEADING_INT.match(value.split(" - ")[0])
        return int(m.group(1)) if m else 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def calculate_risk(record: Mapping[str, Any]) -> RiskScore:
    max_cia = max(
        rating_number(record.get("Confidentiality")),
        rating_number(record.get("Integrity")),
        rating_number(record.get("Availability")),
    )
    threat_value = rating_number(record.get("Threat Impact")) * rating_number(record.get("Threat Frequency"))
    risk_value = max_cia * threat_value * rating_number(record.get("Vulnerability Rating"))
    return RiskScore(max_cia=max_cia, threat_value=threat_value, risk_value=risk_value)


def apply_risk_score(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``record`` with Max CIA Value / Threat Value / Risk Value recomputed."""
    score = calculate_risk(record)
    scored = dict(record)
    scored["Max CIA Value"] = score.max_cia
    scored["Threat Value"] = score.threat_value
    scored["Risk Value"] = score.risk_value
    return scored


def risk_level(value: Any) -> str:
    """Band name for a risk value; 'Unknown' outside 1..256 or when not a number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return UNKNOWN_LEVEL
    for low, high, name in RISK_LEVEL_BANDS:
        if low <= number <= high:
            return name
    return UNKNOWN_LEVEL


def _risk_value_of(row: Mapping[str, Any]) -> Any:
    for key in ("Risk Value", "RiskValue", "risk_value"):
        if row.get(key) not in (None, ""):
            return row[key]
    return None


def _most_common(counts: Counter[str]) -> str:
    if not counts:
        return "-"
    return counts.most_common(1)[0][0]


def summarize(rows: Iterable[Mapping[str, Any]]) -> DashboardSummary:
    """Risk level and treatment option distribution of a dataset."""
    levels: Counter[str] = Counter()
    treatments: Counter[str] = Counter()
    total = 0
    for row in rows:
        total += 1
        level = risk_level(_risk_value_of(row))
        if level != UNKNOWN_LEVEL:
            levels[level] += 1
        treatment = row.get("Risk Treatment Option")
        if isinstance(treatment, str) and treatment.strip():
            treatments[treatment.strip()] += 1
    return DashboardSummary(
        total=total,
        level_counts=dict(levels),
        treatment_counts=dict(treatments),
        most_common_level=_most_common(levels),
        most_common_treatment=_most_common(treatments),
    )
