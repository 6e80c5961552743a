"""
Database Package Initialization.

============================================================
PERSISTENT STORE
============================================================

In-memory mirror of every tracker collection, written through
to two durable tiers:

- SqlCollectionTier: SQLAlchemy table collection_entries
  (SQLite by default), the primary tier
- FlatFileTier: size-capped JSON file kept as a legacy backup

Usage:
    from database import FlatFileTier, PersistentStore, SqlCollectionTier

    store = PersistentStore(
        SqlCollectionTier("sqlite:///polimetric.db"),
        FlatFileTier("polimetric_db.json"),
    )
    await store.load()

============================================================
"""

from database.engine import (
    Base,
    create_all_tables,
    create_database_engine,
    create_session_factory,
    transaction_scope,
)
from database.models import CollectionEntry
from database.store import COLLECTIONS, NameCollision, PersistentStore
from database.tiers import FlatFileTier, SqlCollectionTier


__all__ = [
    # Engine
    "Base",
    "create_all_tables",
    "create_database_engine",
    "create_session_factory",
    "transaction_scope",

    # Models
    "CollectionEntry",

    # Tiers
    "FlatFileTier",
    "SqlCollectionTier",

    # Store
    "COLLECTIONS",
    "NameCollision",
    "PersistentStore",
]
