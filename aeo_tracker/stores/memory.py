"""
In-memory stores.

Used by the test-suite and by ephemeral CLI runs (STORAGE_BACKEND=memory).
State lives in dicts guarded by a lock, so check resolutions running in worker
threads can transition records concurrently.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from aeo_tracker.domain.errors import InvalidTransitionError, NotFoundError
from aeo_tracker.domain.models import CheckRecord, Project
from aeo_tracker.stores.abstract import AbstractCheckStore, CheckQuery


class InMemoryProjectStore:
    """Dict-backed ProjectStore."""

    def __init__(self) -> None:
        self._projects: Dict[str, Project] = {}
        self._lock = threading.Lock()

    def add(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = project
        return project

    def get(self, project_id: str) -> Optional[Project]:
        with self._lock:
            return self._projects.get(project_id)

    def list_for_owner(self, owner_id: str, include_inactive: bool = False) -> List[Project]:
        with self._lock:
            projects = [
                p
                for p in self._projects.values()
                if p.owner_id == owner_id and (include_inactive or p.is_active)
            ]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def replace(self, project: Project) -> Project:
        with self._lock:
            if project.id not in self._projects:
                raise NotFoundError("project", project.id)
            self._projects[project.id] = project
        return project


class InMemoryCheckStore(AbstractCheckStore):
    """Dict-backed CheckStore."""

    def __init__(self) -> None:
        self._checks: Dict[str, CheckRecord] = {}
        self._lock = threading.Lock()

    def add_many(self, checks: Sequence[CheckRecord]) -> List[CheckRecord]:
        with self._lock:
            for check in checks:
                self._checks[check.id] = check
        return list(checks)

    def get(self, check_id: str) -> Optional[CheckRecord]:
        with self._lock:
            return self._checks.get(check_id)

    def _matching(self, query: CheckQuery) -> List[CheckRecord]:
        with self._lock:
            matched = [c for c in self._checks.values() if query.matches(c)]
        return sorted(matched, key=lambda c: c.created_at, reverse=True)

    def find(self, query: CheckQuery) -> List[CheckRecord]:
        matched = self._matching(query)
        end = None if query.limit is None else query.offset + query.limit
        return matched[query.offset : end]

    def count(self, query: CheckQuery) -> int:
        return len(self._matching(query))

    def _swap(self, current: CheckRecord, updated: CheckRecord) -> CheckRecord:
        with self._lock:
            stored = self._checks[current.id]
            if not stored.is_pending:
                raise InvalidTransitionError(stored.id, stored.status)
            self._checks[current.id] = updated
        return updated


__all__ = ["InMemoryProjectStore", "InMemoryCheckStore"]
