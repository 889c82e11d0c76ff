"""
Store interfaces for projects and check records.

Concrete stores (in-memory, PostgreSQL) implement these protocols so the
service layer and the check orchestrator never depend on a persistence
technology. Stores hold no ownership rules; scoping by owner happens in the
service layer, which passes explicit project ids.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from aeo_tracker.domain.errors import NotFoundError
from aeo_tracker.domain.models import CheckRecord, EngineResponse, Project


@dataclass(frozen=True)
class CheckQuery:
    """
    Filters for reading check records. Results are always newest first.

    Attributes
    ----------
    project_ids : sequence[str] | None
        Restrict to these projects. None means no project filter; an empty
        sequence matches nothing.
    since, until : datetime | None
        Inclusive bounds on created_at.
    engine : str | None
        Exact engine name.
    keyword_contains : str | None
        Case-insensitive literal substring of the keyword.
    status : str | None
        Lifecycle state.
    limit, offset : int
        Paging window; limit None returns everything after offset.
    """

    project_ids: Optional[Sequence[str]] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    engine: Optional[str] = None
    keyword_contains: Optional[str] = None
    status: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0

    def matches(self, record: CheckRecord) -> bool:
        """Evaluate the non-paging filters against a single record."""
        if self.project_ids is not None and record.project_id not in self.project_ids:
            return False
        if self.since is not None and record.created_at < self.since:
            return False
        if self.until is not None and record.created_at > self.until:
            return False
        if self.engine is not None and record.engine != self.engine:
            return False
        if self.keyword_contains and self.keyword_contains.lower() not in record.keyword.lower():
            return False
        if self.status is not None and record.status != self.status:
            return False
        return True


@runtime_checkable
class ProjectStore(Protocol):
    """Persistence for project configurations."""

    def add(self, project: Project) -> Project:
        ...

    def get(self, project_id: str) -> Optional[Project]:
        """Return the project regardless of owner or active flag, or None."""
        ...

    def list_for_owner(self, owner_id: str, include_inactive: bool = False) -> List[Project]:
        """Projects of one owner, newest first."""
        ...

    def replace(self, project: Project) -> Project:
        """Overwrite an existing project; raises NotFoundError if it does not exist."""
        ...


@runtime_checkable
class CheckStore(Protocol):
    """
    Persistence for check records.

    `complete` and `fail` are the only writes after creation. Each moves a
    pending record to its terminal state atomically and raises
    InvalidTransitionError if the record already left the pending state.
    """

    def add_many(self, checks: Sequence[CheckRecord]) -> List[CheckRecord]:
        ...

    def get(self, check_id: str) -> Optional[CheckRecord]:
        ...

    def find(self, query: CheckQuery) -> List[CheckRecord]:
        ...

    def count(self, query: CheckQuery) -> int:
        """Number of records matching the filters, ignoring limit/offset."""
        ...

    def complete(
        self, check_id: str, response: EngineResponse, at: Optional[datetime] = None
    ) -> CheckRecord:
        ...

    def fail(self, check_id: str, message: str, at: Optional[datetime] = None) -> CheckRecord:
        ...


class AbstractCheckStore(abc.ABC):
    """
    Optional ABC helper for class-based check stores.

    Subclasses provide `get` and `_swap`; the transition rules live here.
    """

    @abc.abstractmethod
    def get(self, check_id: str) -> Optional[CheckRecord]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _swap(self, current: CheckRecord, updated: CheckRecord) -> CheckRecord:
        """Persist `updated` only if the stored record is still pending."""
        raise NotImplementedError  # pragma: no cover - interface only

    def _load(self, check_id: str) -> CheckRecord:
        record = self.get(check_id)
        if record is None:
            raise NotFoundError("check", check_id)
        return record

    def complete(
        self, check_id: str, response: EngineResponse, at: Optional[datetime] = None
    ) -> CheckRecord:
        current = self._load(check_id)
        return self._swap(current, current.completed(response, at=at))

    def fail(self, check_id: str, message: str, at: Optional[datetime] = None) -> CheckRecord:
        current = self._load(check_id)
        return self._swap(current, current.failed(message, at=at))


__all__ = [
    "CheckQuery",
    "ProjectStore",
    "CheckStore",
    "AbstractCheckStore",
]
