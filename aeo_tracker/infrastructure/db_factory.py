"""
PostgreSQL access for the tracker's stores and the schema bootstrap.

PoolManager is a process-wide singleton holding one psycopg ConnectionPool per
DSN: the configured database by default, plus any DSN override a store or
script asks for. Pools are closed at interpreter exit.

Opening a pool and opening a one-off connection both retry transient failures
with tenacity, so a database that is still starting up does not fail the
first command.
"""

from __future__ import annotations

import atexit
import threading
from importlib import resources
from typing import Dict, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from aeo_tracker.config import Settings, get_settings
from aeo_tracker.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout)
_POOL_WAIT_SECONDS = 10.0

_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Connection string for the configured database."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@_transient_retry
def _open_pool(dsn: str, min_size: int, max_size: int) -> ConnectionPool:
    pool = ConnectionPool(conninfo=dsn, min_size=min_size, max_size=max_size, open=True)
    try:
        pool.wait(timeout=_POOL_WAIT_SECONDS)
    except PoolTimeout:
        pool.close()
        raise
    return pool


class PoolManager:
    """
    Thread-safe singleton owning the connection pools, keyed by DSN.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()
    _pools: Dict[str, ConnectionPool]

    def __new__(cls) -> "PoolManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._pools = {}
                atexit.register(instance.close_all)
                cls._instance = instance
            return cls._instance

    def get_sync_pool(
        self,
        dsn: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> ConnectionPool:
        """
        Return the pool for `dsn`, opening it on first use.

        Parameters
        ----------
        dsn : str | None
            Target database. Defaults to the configured one.
        min_size, max_size : int | None
            Pool bounds for a newly opened pool. Default to settings; ignored
            when the pool already exists.
        """
        settings = get_settings()
        key = dsn or build_dsn(settings)
        with self._lock:
            pool = self._pools.get(key)
            if pool is None:
                pool = _open_pool(
                    key,
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                )
                self._pools[key] = pool
                log.info("Connection pool opened", extra={"pools": len(self._pools)})
            return pool

    def release(self, dsn: Optional[str] = None) -> None:
        """Close and forget the pool for `dsn`, if one is open."""
        key = dsn or build_dsn()
        with self._lock:
            pool = self._pools.pop(key, None)
        if pool is not None:
            pool.close()

    def close_all(self) -> None:
        """Close every pool; registered with atexit."""
        with self._lock:
            pools, self._pools = list(self._pools.values()), {}
        for pool in pools:
            try:
                pool.close()
            except psycopg.Error:
                log.warning("Connection pool did not close cleanly", exc_info=True)


@_transient_retry
def get_sync_connection(dsn_override: Optional[str] = None) -> Connection:
    """
    Open a dedicated connection outside the pools.

    For one-off work such as the schema bootstrap or the seed script's reset.

    Raises
    ------
    psycopg.OperationalError
        When the database stays unreachable after the retries.
    """
    return psycopg.connect(dsn_override or build_dsn())


def get_sync_pool(dsn: Optional[str] = None) -> ConnectionPool:
    """Shortcut for ``PoolManager().get_sync_pool(dsn)``."""
    return PoolManager().get_sync_pool(dsn)


def schema_sql() -> str:
    """The idempotent DDL that creates the tracker tables and indexes."""
    return resources.files("aeo_tracker.infrastructure").joinpath("schema.sql").read_text(
        encoding="utf-8"
    )


def initialize_schema(dsn_override: Optional[str] = None) -> None:
    """Create the `projects` and `checks` tables and their indexes if missing."""
    with get_sync_connection(dsn_override) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql())
        conn.commit()
    log.info("Database schema ensured")


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "initialize_schema",
    "schema_sql",
]
