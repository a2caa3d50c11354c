from __future__ import annotations

from dataclasses import dataclass, field

"""Risk scoring models.

RiskScore holds the three derived columns of a register record; DashboardSummary
aggregates a whole dataset for the dashboard view.
"""

__all__ = [
    "DashboardSummary",
    "RiskScore",
]


@dataclass(frozen=True)
class RiskScore:
    max_cia: int  # max(Confidentiality, Integrity, Availability)
    threat_value: int  # Threat Impact x Threat Frequency
    risk_value: int  # max_cia x threat_value x Vulnerability Rating


@dataclass(frozen=True)
class DashboardSummary:
    """Counts shown on the dashboard.

    ``level_counts`` excludes records whose risk value falls outside every band.
    """
    total: int
    level_counts: dict[str, int] = field(default_factory=dict)
    treatment_counts: dict[str, int] = field(default_factory=dict)
    most_common_level: str = "-"
    most_common_treatment: str = "-"
