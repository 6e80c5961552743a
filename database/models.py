"""
Database ORM Models.

============================================================
PRIMARY TIER SCHEMA
============================================================

One key-value table addressed by (collection, key).
Values are JSON documents stored as text so the schema works
on SQLite and PostgreSQL alike.

Collections:
- entities, sources, potential_sources, feed, discovered_sources,
  aspirant_discovery, candidate_contexts -> one row per item, ordered by position
- config, fetch_schedule, meta -> single rows

============================================================
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from core.clock import now_utc
from database.engine import Base


class CollectionEntry(Base):
    """One item of a stored collection."""
    __tablename__ = "collection_entries"

    collection = Column(String(64), primary_key=True)
    key = Column(String(255), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        Index("ix_collection_entries_collection", "collection"),
    )

    def __repr__(self) -> str:
        return f"<CollectionEntry {self.collection}/{self.key}>"
