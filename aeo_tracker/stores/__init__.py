"""
Stores package for the AEO Tracker.

Re-exports the store protocols and the concrete in-memory and PostgreSQL
implementations so downstream code can import from `aeo_tracker.stores`.
"""

from aeo_tracker.stores.abstract import (
    AbstractCheckStore,
    CheckQuery,
    CheckStore,
    ProjectStore,
)
from aeo_tracker.stores.memory import InMemoryCheckStore, InMemoryProjectStore
from aeo_tracker.stores.postgres import PostgresCheckStore, PostgresProjectStore

__all__ = [
    # Abstracts
    "AbstractCheckStore",
    "CheckQuery",
    "CheckStore",
    "ProjectStore",
    # Concrete stores
    "InMemoryCheckStore",
    "InMemoryProjectStore",
    "PostgresCheckStore",
    "PostgresProjectStore",
]
