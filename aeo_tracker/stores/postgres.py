"""
PostgreSQL stores built on psycopg and psycopg_pool.

Nested collections (keywords, competitors, settings, observed URLs, metadata)
are stored as JSONB. The pending -> terminal transition is a conditional UPDATE
so two resolutions of the same check can never both succeed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from aeo_tracker.domain.errors import InvalidTransitionError, NotFoundError
from aeo_tracker.domain.models import CheckRecord, Project
from aeo_tracker.infrastructure.db_factory import PoolManager, get_sync_pool
from aeo_tracker.stores.abstract import AbstractCheckStore, CheckQuery

_PROJECT_COLUMNS = (
    "id, owner_id, name, description, domain, brand, competitors, keywords, "
    "settings, is_active, created_at, updated_at"
)
_CHECK_COLUMNS = (
    "id, project_id, engine, keyword, presence, position, citations_count, observed_urls, "
    "answer_snippet, metadata, status, error_message, created_at, updated_at"
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class _PooledStore:
    """
    Resolves its connection pool lazily: the injected one, or the PoolManager
    pool for `dsn_override` (the configured database when None).
    """

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        dsn_override: Optional[str] = None,
    ) -> None:
        self._dsn_override = dsn_override
        self._pool_instance = pool

    def _pool(self) -> ConnectionPool:
        if self._pool_instance is None:
            self._pool_instance = get_sync_pool(self._dsn_override)
        return self._pool_instance

    def close(self) -> None:
        """Release the pool opened for a DSN override; the default pool closes at exit."""
        if self._dsn_override:
            PoolManager().release(self._dsn_override)
        self._pool_instance = None


def _project_params(project: Project) -> Dict[str, Any]:
    params = project.model_dump(exclude={"competitors", "keywords", "settings"})
    data = project.model_dump(mode="json", include={"competitors", "keywords", "settings"})
    params.update(
        competitors=Jsonb(data["competitors"]),
        keywords=Jsonb(data["keywords"]),
        settings=Jsonb(data["settings"]),
    )
    return params


def _check_params(check: CheckRecord) -> Dict[str, Any]:
    params = check.model_dump(exclude={"observed_urls", "metadata"})
    data = check.model_dump(mode="json", include={"observed_urls", "metadata"})
    params.update(
        observed_urls=Jsonb(data["observed_urls"]),
        metadata=Jsonb(data["metadata"]),
    )
    return params


class PostgresProjectStore(_PooledStore):
    """ProjectStore backed by the `projects` table."""

    def add(self, project: Project) -> Project:
        sql = (
            f"INSERT INTO public.projects ({_PROJECT_COLUMNS}) VALUES ("
            "%(id)s, %(owner_id)s, %(name)s, %(description)s, %(domain)s, %(brand)s, "
            "%(competitors)s, %(keywords)s, %(settings)s, %(is_active)s, "
            "%(created_at)s, %(updated_at)s)"
        )
        with self._pool().connection() as conn:
            conn.execute(sql, _project_params(project))
        return project

    def get(self, project_id: str) -> Optional[Project]:
        sql = f"SELECT {_PROJECT_COLUMNS} FROM public.projects WHERE id = %s"
        with self._pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, (project_id,))
                row = cur.fetchone()
        return Project.model_validate(row) if row else None

    def list_for_owner(self, owner_id: str, include_inactive: bool = False) -> List[Project]:
        sql = f"SELECT {_PROJECT_COLUMNS} FROM public.projects WHERE owner_id = %s"
        if not include_inactive:
            sql += " AND is_active"
        sql += " ORDER BY created_at DESC, id"
        with self._pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, (owner_id,))
                rows = cur.fetchall()
        return [Project.model_validate(row) for row in rows]

    def replace(self, project: Project) -> Project:
        sql = (
            "UPDATE public.projects SET name = %(name)s, description = %(description)s, "
            "domain = %(domain)s, brand = %(brand)s, competitors = %(competitors)s, "
            "keywords = %(keywords)s, settings = %(settings)s, is_active = %(is_active)s, "
            "updated_at = %(updated_at)s WHERE id = %(id)s"
        )
        with self._pool().connection() as conn:
            cur = conn.execute(sql, _project_params(project))
            if cur.rowcount == 0:
                raise NotFoundError("project", project.id)
        return project


class PostgresCheckStore(_PooledStore, AbstractCheckStore):
    """CheckStore backed by the `checks` table."""

    def add_many(self, checks: Sequence[CheckRecord]) -> List[CheckRecord]:
        if not checks:
            return []
        sql = (
            f"INSERT INTO public.checks ({_CHECK_COLUMNS}) VALUES ("
            "%(id)s, %(project_id)s, %(engine)s, %(keyword)s, %(presence)s, %(position)s, "
            "%(citations_count)s, %(observed_urls)s, %(answer_snippet)s, %(metadata)s, "
            "%(status)s, %(error_message)s, %(created_at)s, %(updated_at)s)"
        )
        with self._pool().connection() as conn:
            with conn.cursor() as cur:
                cur.executemany(sql, [_check_params(c) for c in checks])
        return list(checks)

    def get(self, check_id: str) -> Optional[CheckRecord]:
        sql = f"SELECT {_CHECK_COLUMNS} FROM public.checks WHERE id = %s"
        with self._pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, (check_id,))
                row = cur.fetchone()
        return CheckRecord.model_validate(row) if row else None

    @staticmethod
    def _where(query: CheckQuery) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if query.project_ids is not None:
            clauses.append("project_id = ANY(%s)")
            params.append(list(query.project_ids))
        if query.since is not None:
            clauses.append("created_at >= %s")
            params.append(query.since)
        if query.until is not None:
            clauses.append("created_at <= %s")
            params.append(query.until)
        if query.engine is not None:
            clauses.append("engine = %s")
            params.append(query.engine)
        if query.keyword_contains:
            clauses.append("keyword ILIKE %s")
            params.append(f"%{_escape_like(query.keyword_contains)}%")
        if query.status is not None:
            clauses.append("status = %s")
            params.append(query.status)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def find(self, query: CheckQuery) -> List[CheckRecord]:
        where, params = self._where(query)
        sql = f"SELECT {_CHECK_COLUMNS} FROM public.checks{where} ORDER BY created_at DESC, id"
        if query.limit is not None:
            sql += " LIMIT %s"
            params.append(query.limit)
        if query.offset:
            sql += " OFFSET %s"
            params.append(query.offset)
        with self._pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
        return [CheckRecord.model_validate(row) for row in rows]

    def count(self, query: CheckQuery) -> int:
        where, params = self._where(query)
        with self._pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM public.checks{where}", params)
                (total,) = cur.fetchone()
        return int(total)

    def _swap(self, current: CheckRecord, updated: CheckRecord) -> CheckRecord:
        sql = (
            "UPDATE public.checks SET presence = %(presence)s, position = %(position)s, "
            "citations_count = %(citations_count)s, observed_urls = %(observed_urls)s, "
            "answer_snippet = %(answer_snippet)s, metadata = %(metadata)s, "
            "status = %(status)s, error_message = %(error_message)s, "
            "updated_at = %(updated_at)s WHERE id = %(id)s AND status = 'pending'"
        )
        with self._pool().connection() as conn:
            updated_rows = conn.execute(sql, _check_params(updated)).rowcount
        if updated_rows == 0:
            stored = self.get(current.id)
            raise InvalidTransitionError(current.id, stored.status if stored else "missing")
        return updated


__all__ = ["PostgresProjectStore", "PostgresCheckStore"]
