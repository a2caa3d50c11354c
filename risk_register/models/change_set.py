from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Change detection models for saving an edited dataset back to the database."""

__all__ = [
    "ChangeSet",
    "SaveResult",
    "UpdatedRecord",
]


@dataclass(frozen=True)
class UpdatedRecord:
    current: dict[str, Any]
    original: dict[str, Any]


@dataclass(frozen=True)
class ChangeSet:
    """Difference between the working dataset and the last fetched snapshot."""
    new: list[dict[str, Any]] = field(default_factory=list)
    updated: list[UpdatedRecord] = field(default_factory=list)
    deleted: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.new or self.updated or self.deleted)


@dataclass(frozen=True)
class SaveResult:
    inserted: int
    updated: int
    deleted: int
    renumbered: int
    elapsed_seconds: float
