"""
Storage Tiers - Primary SQL tier and legacy flat-file tier.

============================================================
RESPONSIBILITY
============================================================
Blocking adapters the PersistentStore writes through.

- SqlCollectionTier: transactional (collection, key) -> JSON
  rows in the collection_entries table
- FlatFileTier: one JSON blob on disk with a hard byte ceiling,
  replaced atomically on every write

Both tiers raise StorageTierError subclasses; the store decides
what to swallow. Calls are synchronous and meant to run through
asyncio.to_thread.

============================================================
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from core.clock import now_utc
from core.constants import LEGACY_MAX_BYTES
from core.exceptions import LegacyTierQuotaError, StorageTierError
from database.engine import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
    transaction_scope,
)
from database.models import CollectionEntry


logger = logging.getLogger(__name__)


# =============================================================
# PRIMARY TIER
# =============================================================

class SqlCollectionTier:
    """
    Key-value collections on top of SQLAlchemy.

    Each write replaces a whole collection inside one transaction,
    so a collection is never left half-written.
    """

    name = "sql"

    def __init__(
        self,
        url: Optional[str] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        self._engine = engine or create_database_engine(url)
        self._session_factory = create_session_factory(self._engine)
        self._initialized = False

    def initialize(self) -> None:
        """Create the schema if needed."""
        if self._initialized:
            return
        create_all_tables(self._engine)
        self._initialized = True

    def read_all(self) -> dict[str, list[tuple[str, Any]]]:
        """Read every collection as ordered (key, value) pairs."""
        self.initialize()
        collections: dict[str, list[tuple[str, Any]]] = {}
        with transaction_scope(self._session_factory) as session:
            rows = session.execute(
                select(CollectionEntry).order_by(
                    CollectionEntry.collection, CollectionEntry.position
                )
            ).scalars()
            for row in rows:
                try:
                    value = json.loads(row.value)
                except json.JSONDecodeError as e:
                    logger.warning(
                        f"[sql_tier] Skipping corrupt row {row.collection}/{row.key}: {e}"
                    )
                    continue
                collections.setdefault(row.collection, []).append((row.key, value))
        return collections

    def write_collection(self, collection: str, items: Sequence[tuple[str, Any]]) -> int:
        """Replace a collection with items; returns the row count written."""
        self.initialize()
        stamp = now_utc()
        try:
            with transaction_scope(self._session_factory) as session:
                session.execute(
                    delete(CollectionEntry).where(CollectionEntry.collection == collection)
                )
                session.add_all([
                    CollectionEntry(
                        collection=collection,
                        key=key,
                        position=position,
                        value=json.dumps(value),
                        updated_at=stamp,
                    )
                    for position, (key, value) in enumerate(items)
                ])
        except StorageTierError as e:
            e.context["collection"] = collection
            raise
        logger.debug(f"[sql_tier] Persist {collection}: rows={len(items)}")
        return len(items)

    def clear(self) -> None:
        self.initialize()
        with transaction_scope(self._session_factory) as session:
            session.execute(delete(CollectionEntry))
        logger.info("[sql_tier] All collections cleared")

    def dispose(self) -> None:
        self._engine.dispose()


# =============================================================
# LEGACY TIER
# =============================================================

class FlatFileTier:
    """
    Single JSON document with a size ceiling.

    Oversize writes raise LegacyTierQuotaError and leave the
    previous file untouched.
    """

    name = "legacy"

    def __init__(self, path: str | os.PathLike, max_bytes: int = LEGACY_MAX_BYTES) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes

    def read(self) -> Optional[dict[str, Any]]:
        """Return the stored document, or None when no file exists."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageTierError(
                f"Cannot read legacy file {self.path}: {e}", tier=self.name, cause=e
            ) from e
        if not isinstance(data, dict):
            raise StorageTierError(
                f"Legacy file {self.path} does not hold a JSON object", tier=self.name
            )
        return data

    def write(self, document: dict[str, Any]) -> int:
        """Atomically replace the file; returns the byte size written."""
        payload = json.dumps(document).encode("utf-8")
        if len(payload) > self.max_bytes:
            raise LegacyTierQuotaError(len(payload), self.max_bytes)

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=directory, prefix=f".{self.path.name}.", delete=False
            ) as handle:
                handle.write(payload)
                temp_name = handle.name
            os.replace(temp_name, self.path)
        except OSError as e:
            raise StorageTierError(
                f"Cannot write legacy file {self.path}: {e}", tier=self.name, cause=e
            ) from e
        return len(payload)

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageTierError(
                f"Cannot remove legacy file {self.path}: {e}", tier=self.name, cause=e
            ) from e
