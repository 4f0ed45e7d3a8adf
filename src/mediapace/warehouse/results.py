"""Explicit query outcome so an empty result is never mistaken for a failure."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


class QueryStatus(StrEnum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class QueryOutcome:
    status: QueryStatus
    rows: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]]) -> "QueryOutcome":
        if rows:
            return cls(status=QueryStatus.SUCCESS, rows=rows)
        return cls(status=QueryStatus.EMPTY)

    @classmethod
    def failed(cls, error: BaseException) -> "QueryOutcome":
        return cls(status=QueryStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status is not QueryStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "rowCount": len(self.rows),
            "error": str(self.error) if self.error else None,
        }
