from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..db.risk_store import RiskStore
from ..models.change_set import ChangeSet, SaveResult, UpdatedRecord
from .progress import ProgressTracker
from .sanitizer import sanitize_rows_for_db

"""Save the working dataset back to the database by diffing against a snapshot.

The snapshot is the company's records as last fetched. Records are matched by
database id (``id`` / ``Id`` / ``ID``):
- no id, or id not in the snapshot -> new
- same id, any compared field different -> updated
- id in the snapshot but not in the working set -> deleted

There is no conflict detection; the last write wins. After the changes are
applied the company's sr_no values are renumbered 1..n.
"""

__all__ = [
    "IGNORED_COMPARE_FIELDS",
    "apply_changes",
    "diff_records",
    "record_id",
]

logger = logging.getLogger(__name__)

IGNORED_COMPARE_FIELDS = frozenset({"Sr#", "sr_no", "id", "Id", "ID", "company_id", "created_at"})


def record_id(record: Mapping[str, Any]) -> Any:
    return record.get("id") or record.get("Id") or record.get("ID")


def _is_updated(current: Mapping[str, Any], original: Mapping[str, Any]) -> bool:
    return any(
        current[key] != original.get(key)
        for key in current
        if key not in IGNORED_COMPARE_FIELDS
    )


def diff_records(current: Sequence[Mapping[str, Any]], original: Sequence[Mapping[str, Any]]) -> ChangeSet:
    originals = {record_id(r): r for r in original if record_id(r)}
    current_ids = {record_id(r) for r in current if record_id(r)}

    new: list[dict[str, Any]] = []
    updated: list[UpdatedRecord] = []
    for record in current:
        rid = record_id(record)
        snapshot = originals.get(rid) if rid else None
        if snapshot is None:
            new.append(dict(record))
        elif _is_updated(record, snapshot):
            updated.append(UpdatedRecord(current=dict(record), original=dict(snapshot)))

    deleted = [dict(r) for rid, r in originals.items() if rid not in current_ids]
    return ChangeSet(new=new, updated=updated, deleted=deleted)


def _serial_number(record: Mapping[str, Any]) -> int:
    raw = record.get("sr_no") or record.get("Sr#") or record.get("Sr") or 0
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return 0


def apply_changes(
    store: RiskStore,
    changes: ChangeSet,
    company_id: Any,
    null_sentinels: Iterable[str] | None = None,
) -> SaveResult:
    """Apply a ChangeSet: delete, insert, update, then renumber sr_no."""
    start = time.perf_counter()
    total_steps = len(changes.deleted) + len(changes.new) + len(changes.updated)
    logger.info(
        "changes detected new=%d updated=%d deleted=%d",
        len(changes.new), len(changes.updated), len(changes.deleted),
    )

    with ProgressTracker(total_steps, description="Saving risks") as progress:
        progress.set_postfix(step="delete")
        for record in changes.deleted:
            store.delete_risk(record_id(record))
            progress.advance()

        if changes.new:
            progress.set_postfix(step="insert")
            rows = sanitize_rows_for_db(changes.new, null_sentinels)
            for sanitized, record in zip(rows, changes.new, strict=True):
                sanitized.pop("id", None)
                sanitized["sr_no"] = sanitized.get("sr_no") or _serial_number(record)
                sanitized["company_id"] = company_id
            store.insert_risks(rows)
            progress.advance(len(rows))

        progress.set_postfix(step="update")
        for item in changes.updated:
            values = sanitize_rows_for_db([item.current], null_sentinels)[0]
            values["company_id"] = company_id
            store.update_risk(record_id(item.original), values)
            progress.advance()

    renumbered = store.renumber(company_id)
    return SaveResult(
        inserted=len(changes.new),
        updated=len(changes.updated),
        deleted=len(changes.deleted),
        renumbered=renumbered,
        elapsed_seconds=time.perf_counter() - start,
    )
