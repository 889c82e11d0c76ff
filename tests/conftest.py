"""
Pytest configuration for the AEO Tracker.

Provides fixtures for:
- Settings isolation (fast check execution, in-memory backend)
- Record and project factories with a fixed reference time
- In-memory stores and a service wired to a fixed clock
- Database connection management for integration tests
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, Optional

import psycopg
import pytest

from aeo_tracker.config import Settings, get_settings
from aeo_tracker.domain.models import CheckRecord, Project
from aeo_tracker.orchestrator import CheckOrchestrator
from aeo_tracker.service import DashboardService
from aeo_tracker.stores import InMemoryCheckStore, InMemoryProjectStore

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
OWNER = "owner-a"
OTHER_OWNER = "owner-b"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Fresh settings per test with zero delays and the in-memory backend.
    """
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("CHECK_DELAY_SECONDS", "0")
    monkeypatch.setenv("ENGINE_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_check() -> Callable[..., CheckRecord]:
    """
    Build completed check records relative to FIXED_NOW.

    `days_ago` shifts created_at back by whole days.
    """

    def _make(
        engine: str = "chatgpt",
        keyword: str = "ai tools",
        presence: bool = True,
        position: Optional[int] = 1,
        citations_count: int = 2,
        project_id: str = "project-1",
        days_ago: float = 0,
        status: str = "completed",
        **overrides: Any,
    ) -> CheckRecord:
        created = FIXED_NOW - timedelta(days=days_ago)
        fields: dict = {
            "project_id": project_id,
            "engine": engine,
            "keyword": keyword,
            "presence": presence,
            "position": position if presence else 0,
            "citations_count": citations_count,
            "status": status,
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        return CheckRecord(**fields)

    return _make


@pytest.fixture
def make_project() -> Callable[..., Project]:
    def _make(owner_id: str = OWNER, **overrides: Any) -> Project:
        fields: dict = {
            "owner_id": owner_id,
            "name": "Acme Visibility",
            "domain": "acme.com",
            "brand": "Acme",
            "keywords": ["ai tools", "machine learning"],
            "created_at": FIXED_NOW - timedelta(days=30),
            "updated_at": FIXED_NOW - timedelta(days=30),
        }
        fields.update(overrides)
        return Project(**fields)

    return _make


@pytest.fixture
def project_store() -> InMemoryProjectStore:
    return InMemoryProjectStore()


@pytest.fixture
def check_store() -> InMemoryCheckStore:
    return InMemoryCheckStore()


@pytest.fixture
def service(
    project_store: InMemoryProjectStore, check_store: InMemoryCheckStore
) -> DashboardService:
    orchestrator = CheckOrchestrator(
        check_store,
        delay_seconds=0,
        timeout_seconds=1,
        max_attempts=2,
        backoff_seconds=0,
        clock=lambda: FIXED_NOW,
    )
    return DashboardService(
        project_store,
        check_store,
        orchestrator=orchestrator,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "aeo_tracker"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def clean_tables(db_connection: psycopg.Connection, test_dsn: str):
    """
    Ensure the schema exists and start each test with empty tables.
    """
    from aeo_tracker.infrastructure.db_factory import initialize_schema

    initialize_schema(test_dsn)
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.checks, public.projects CASCADE;")
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.checks, public.projects CASCADE;")
    db_connection.commit()
