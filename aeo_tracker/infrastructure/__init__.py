"""
Infrastructure package for the AEO Tracker.

Centralizes database connectivity concerns (connection factory, pooling,
schema bootstrap). Keep this layer focused on I/O and resource management,
decoupled from aggregation and service logic.
"""

from aeo_tracker.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
    initialize_schema,
)

__all__ = [
    "PoolManager",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "initialize_schema",
]
