from __future__ import annotations

from ..models.change_set import SaveResult
from ..models.query_result import QueryResult
from ..models.risk_score import DashboardSummary

"""SUMMARY line rendering.

Each CLI command ends with one ``SUMMARY key=value ...`` line. Values never
contain spaces so the line stays machine-splittable.
"""


def format_seconds(seconds: float) -> str:
    """2.0 -> '2', 0.0012345 -> '0.001235', 1.5 -> '1.5' (never scientific notation)."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_query_summary(total_rows: int, result: QueryResult, conditions: int) -> str:
    """SUMMARY command=query status=ok rows=10 conditions=2 matched=3"""
    return (
        f"SUMMARY command=query "
        f"status={result.status.value} "
        f"rows={total_rows} "
        f"conditions={conditions} "
        f"matched={result.matched}"
    )


def render_upload_summary(source: str, mode: str, added: int, duplicates: int, total: int) -> str:
    return (
        f"SUMMARY command=upload "
        f"file={source.replace(' ', '_')} "
        f"mode={mode} "
        f"added={added} "
        f"duplicates={duplicates} "
        f"total={total}"
    )


def render_save_summary(result: SaveResult) -> str:
    return (
        f"SUMMARY command=save "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"deleted={result.deleted} "
        f"renumbered={result.renumbered} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_dashboard_summary(summary: DashboardSummary) -> str:
    levels = ",".join(f"{k.replace(' ', '_')}:{v}" for k, v in summary.level_counts.items()) or "-"
    return (
        f"SUMMARY command=dashboard "
        f"total={summary.total} "
        f"levels={levels} "
        f"top_level={summary.most_common_level.replace(' ', '_')} "
        f"top_treatment={summary.most_common_treatment.replace(' ', '_')}"
    )
