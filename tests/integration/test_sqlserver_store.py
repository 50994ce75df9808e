"""
Integration tests for the SQL Server build store.

These tests verify that:
1. The schema and tables are created
2. Snapshot, milestone and sync log writes match the SQLite backend
3. Concurrent page batches from several threads do not collide
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from buildmap.core.models import Milestone, Snapshot, SyncLogEntry


@pytest.mark.integration
class TestSchema:
    """Tests that the build store schema exists."""

    @pytest.mark.parametrize("table", ["snapshots", "milestones", "sync_logs"])
    def test_table_exists(self, sqlserver_build_store, table):
        store = sqlserver_build_store
        cursor = store._get_conn().cursor()

        cursor.execute("""
            SELECT 1 FROM sys.tables t
            JOIN sys.schemas s ON t.schema_id = s.schema_id
            WHERE t.name = ? AND s.name = ?
        """, (table, store.schema))

        assert cursor.fetchone() is not None, f"Table '{store.schema}.{table}' does not exist"


@pytest.mark.integration
class TestSqlServerBuildStore:
    """Behavioural tests mirroring the SQLite store."""

    def test_insert_snapshots_deduplicates(self, sqlserver_build_store):
        store = sqlserver_build_store

        assert store.insert_snapshots([Snapshot("Linux", 1), Snapshot("Linux", 2)]) == 2
        assert store.insert_snapshots([Snapshot("Linux", 2), Snapshot("Linux", 3)]) == 1

        assert store.list_revisions("Linux") == [1, 2, 3]
        assert store.has_snapshot("Linux", 3)
        assert not store.has_snapshot("Mac", 3)

    def test_max_revision_at_or_below(self, sqlserver_build_store):
        store = sqlserver_build_store
        store.insert_snapshots([Snapshot("Linux", r) for r in (10, 50, 90)])

        assert store.max_revision_at_or_below("Linux", 60) == 50
        assert store.max_revision_at_or_below("Linux", 9) is None

    def test_milestones_overwrite(self, sqlserver_build_store):
        store = sqlserver_build_store
        store.upsert_milestone(100, 500)
        store.upsert_milestones([Milestone(100, 600), Milestone(101, 700)])

        assert store.list_milestones() == [Milestone(100, 600), Milestone(101, 700)]

    def test_sync_log_overwrite(self, sqlserver_build_store):
        store = sqlserver_build_store
        store.touch_sync_log("Linux", "2024-01-01T00:00:00.000Z")
        store.touch_sync_log("Linux", "2024-02-01T00:00:00.000Z")

        assert store.list_sync_logs() == [SyncLogEntry("Linux", "2024-02-01T00:00:00.000Z")]

    def test_sync_log_order_matches_sqlite(self, sqlserver_build_store):
        """Test that sync logs sort by binary prefix order like the SQLite backend."""
        store = sqlserver_build_store
        for platform in ("linux", "Mac", "Arm"):
            store.touch_sync_log(platform, "2024-01-01T00:00:00.000Z")

        assert [entry.platform for entry in store.list_sync_logs()] == ["Arm", "Mac", "linux"]

    def test_concurrent_batches(self, sqlserver_build_store):
        store = sqlserver_build_store
        platforms = ["Linux", "Mac", "Win", "Android"]

        def _insert(platform):
            return store.insert_snapshots([Snapshot(platform, r) for r in range(1, 21)])

        with ThreadPoolExecutor(max_workers=4) as executor:
            inserted = list(executor.map(_insert, platforms))

        assert inserted == [20, 20, 20, 20]
        assert store.count_snapshots() == 80
        assert store.list_snapshot_prefixes() == set(platforms)
