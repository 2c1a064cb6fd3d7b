from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .pages import MergedResultSet


class QueryStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    NO_DATA = "no_data"
    PARTIAL = "partial"
    DENIED = "denied"
    ERROR = "error"
    NOT_RUN = "not_run"


# Statuses that are reported as warnings in the run summary
DEGRADED_STATUSES = frozenset({QueryStatus.NO_DATA, QueryStatus.PARTIAL, QueryStatus.DENIED, QueryStatus.ERROR})


@dataclass(frozen=True)
class QueryOutcome:
    """
    Result of running one query: distinguishes "ran with rows", "ran with zero
    rows", "never produced a page", "refused" and "not run".
    """

    status: QueryStatus
    result: Optional[MergedResultSet] = None
    error: Optional[str] = None
    pages: int = 0

    @property
    def count(self) -> int:
        return self.result.count if self.result is not None else 0

    @property
    def present(self) -> bool:
        return self.count > 0

    @classmethod
    def not_run(cls) -> QueryOutcome:
        return cls(status=QueryStatus.NOT_RUN)


@dataclass(frozen=True)
class NamedTable:
    name: str
    outcome: QueryOutcome

    @property
    def present(self) -> bool:
        return self.outcome.present

    @property
    def count(self) -> int:
        return self.outcome.count

    @property
    def result(self) -> Optional[MergedResultSet]:
        return self.outcome.result

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.outcome.status.value,
            "present": self.present,
            "count": self.count,
            "pages": self.outcome.pages,
            "error": self.outcome.error,
        }
