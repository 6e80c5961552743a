"""
Tests for the durable storage tiers.

============================================================
PURPOSE
============================================================
Covers:
1. SqlCollectionTier ordered read/write/replace/clear
2. FlatFileTier round trip, quota ceiling and corrupt files

============================================================
"""

import pytest

from core.exceptions import LegacyTierQuotaError, StorageTierError
from database.tiers import FlatFileTier, SqlCollectionTier


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def sql_tier(tmp_path):
    tier = SqlCollectionTier(f"sqlite:///{tmp_path / 'tracker.db'}")
    yield tier
    tier.dispose()


@pytest.fixture
def legacy_path(tmp_path):
    return tmp_path / "legacy" / "polimetric_db.json"


# ============================================================
# SQL TIER
# ============================================================

class TestSqlCollectionTier:
    """Tests for the primary tier."""

    def test_empty_database_reads_nothing(self, sql_tier):
        assert sql_tier.read_all() == {}

    def test_rows_keep_their_order(self, sql_tier):
        rows = [("z", {"n": 1}), ("a", {"n": 2}), ("m", {"n": 3})]
        assert sql_tier.write_collection("entities", rows) == 3

        assert sql_tier.read_all() == {"entities": rows}

    def test_write_replaces_whole_collection(self, sql_tier):
        sql_tier.write_collection("sources", [("s1", {"name": "A"}), ("s2", {"name": "B"})])
        sql_tier.write_collection("sources", [("s3", {"name": "C"})])

        assert sql_tier.read_all()["sources"] == [("s3", {"name": "C"})]

    def test_collections_are_independent(self, sql_tier):
        sql_tier.write_collection("feed", [("f1", {"headline": "h"})])
        sql_tier.write_collection("config", [("value", {"is_paused": True})])
        sql_tier.write_collection("feed", [])

        collections = sql_tier.read_all()
        assert "feed" not in collections
        assert collections["config"] == [("value", {"is_paused": True})]

    def test_duplicate_keys_raise_tier_error(self, sql_tier):
        with pytest.raises(StorageTierError) as exc_info:
            sql_tier.write_collection("feed", [("dup", {}), ("dup", {})])
        assert exc_info.value.context["collection"] == "feed"

    def test_clear(self, sql_tier):
        sql_tier.write_collection("entities", [("e1", {})])
        sql_tier.clear()
        assert sql_tier.read_all() == {}

    def test_data_survives_new_tier_instance(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        first = SqlCollectionTier(url)
        first.write_collection("entities", [("e1", {"name": "Jane"})])
        first.dispose()

        second = SqlCollectionTier(url)
        try:
            assert second.read_all() == {"entities": [("e1", {"name": "Jane"})]}
        finally:
            second.dispose()


# ============================================================
# LEGACY TIER
# ============================================================

class TestFlatFileTier:
    """Tests for the size-capped legacy tier."""

    def test_missing_file_reads_none(self, legacy_path):
        assert FlatFileTier(legacy_path).read() is None

    def test_round_trip(self, legacy_path):
        tier = FlatFileTier(legacy_path)
        document = {"entities": [{"id": "e1"}], "feed": []}

        size = tier.write(document)

        assert size == legacy_path.stat().st_size
        assert tier.read() == document

    def test_oversize_write_leaves_previous_file(self, legacy_path):
        tier = FlatFileTier(legacy_path, max_bytes=64)
        tier.write({"small": True})

        with pytest.raises(LegacyTierQuotaError) as exc_info:
            tier.write({"big": "x" * 200})

        assert exc_info.value.max_bytes == 64
        assert exc_info.value.size_bytes > 64
        assert tier.read() == {"small": True}

    def test_corrupt_file_raises(self, legacy_path):
        legacy_path.parent.mkdir(parents=True)
        legacy_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageTierError):
            FlatFileTier(legacy_path).read()

    def test_non_object_document_raises(self, legacy_path):
        legacy_path.parent.mkdir(parents=True)
        legacy_path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(StorageTierError):
            FlatFileTier(legacy_path).read()

    def test_clear(self, legacy_path):
        tier = FlatFileTier(legacy_path)
        tier.write({})
        tier.clear()
        tier.clear()
        assert not legacy_path.exists()
