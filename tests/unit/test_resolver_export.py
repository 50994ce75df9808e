"""
Unit tests for milestone resolution and the JSON export.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from buildmap.core.exceptions import ExportError
from buildmap.core.models import Milestone, ResolvedRecord, Snapshot
from buildmap.export.json_exporter import JsonExporter
from buildmap.export.resolver import Resolver, nearest_at_or_below, resolve_records


class TestNearestAtOrBelow:
    """Tests for the binary search helper."""

    @pytest.mark.parametrize("ceiling,expected", [
        (60, 50),
        (50, 50),
        (90, 90),
        (1000, 90),
        (10, 10),
        (9, None),
    ])
    def test_lookup(self, ceiling, expected):
        assert nearest_at_or_below([10, 50, 90], ceiling) == expected

    def test_empty(self):
        assert nearest_at_or_below([], 100) is None


class TestResolveRecords:
    """Tests for resolve_records."""

    def test_greatest_revision_not_exceeding_milestone(self):
        records = resolve_records([Milestone(5, 60)], {"linux": [10, 50, 90]})

        assert records == [ResolvedRecord(milestone=5, platform="linux", revision=50)]

    def test_pair_omitted_when_every_snapshot_is_newer(self):
        records = resolve_records([Milestone(5, 60)], {"linux": [70, 80]})

        assert records == []

    def test_ordering_by_revision_then_platform(self):
        """Test that ties on revision are broken by platform name."""
        records = resolve_records(
            [Milestone(1, 100), Milestone(2, 200)],
            {
                "Win": [100, 150],
                "Linux": [100, 200],
                "Mac": [50],
            },
        )

        assert [(r.revision, r.platform, r.milestone) for r in records] == [
            (50, "Mac", 1),
            (50, "Mac", 2),
            (100, "Linux", 1),
            (100, "Win", 1),
            (150, "Win", 2),
            (200, "Linux", 2),
        ]

    def test_no_milestones(self):
        assert resolve_records([], {"Linux": [1, 2]}) == []


class TestResolver:
    """Tests for Resolver against a store."""

    def test_resolves_every_platform(self, store):
        store.insert_snapshots([
            Snapshot("linux", 10), Snapshot("linux", 50), Snapshot("linux", 90),
            Snapshot("mac", 55),
        ])
        store.upsert_milestones([Milestone(5, 60), Milestone(6, 20)])

        records = Resolver(store).resolve()

        assert records == [
            ResolvedRecord(6, "linux", 10),
            ResolvedRecord(5, "linux", 50),
            ResolvedRecord(5, "mac", 55),
        ]

    def test_matches_store_range_query(self, store):
        """Test that the bisect resolution agrees with the store's range query."""
        store.insert_snapshots([Snapshot("Linux", r) for r in (3, 7, 11, 19, 23)])
        store.upsert_milestones([Milestone(m, m * 4) for m in range(1, 8)])

        for record in Resolver(store).resolve():
            milestone_revision = record.milestone * 4
            assert record.revision == store.max_revision_at_or_below("Linux", milestone_revision)


class TestJsonExporter:
    """Tests for JsonExporter."""

    @pytest.fixture
    def populated_store(self, store):
        store.insert_snapshots([Snapshot("Linux", 10), Snapshot("Linux", 50), Snapshot("Mac", 50)])
        store.upsert_milestones([Milestone(5, 60)])
        store.touch_sync_log("Mac", "2024-01-02T00:00:00.000Z")
        store.touch_sync_log("Linux", "2024-01-01T00:00:00.000Z")
        return store

    def test_document_shape(self, populated_store, tmp_path):
        output = tmp_path / "out" / "chromium-data.json"

        JsonExporter(populated_store, output_path=output).export()

        document = json.loads(output.read_text(encoding="utf-8"))
        assert document == {
            "records": [
                {"milestone": 5, "prefix": "Linux", "revision": 50},
                {"milestone": 5, "prefix": "Mac", "revision": 50},
            ],
            "updatedAt": [
                {"prefix": "Linux", "updatedAt": "2024-01-01T00:00:00.000Z"},
                {"prefix": "Mac", "updatedAt": "2024-01-02T00:00:00.000Z"},
            ],
        }

    def test_indented(self, populated_store, tmp_path):
        output = tmp_path / "chromium-data.json"

        JsonExporter(populated_store, output_path=output).export()

        assert output.read_text(encoding="utf-8").startswith('{\n  "records": [\n')

    def test_back_to_back_exports_identical(self, populated_store, tmp_path):
        output = tmp_path / "chromium-data.json"
        exporter = JsonExporter(populated_store, output_path=output)

        exporter.export()
        first = output.read_bytes()
        exporter.export()

        assert output.read_bytes() == first

    def test_export_does_not_mutate_store(self, populated_store, tmp_path):
        before = (
            populated_store.count_snapshots(),
            populated_store.list_milestones(),
            populated_store.list_sync_logs(),
        )

        JsonExporter(populated_store, output_path=tmp_path / "x.json").export()

        assert (
            populated_store.count_snapshots(),
            populated_store.list_milestones(),
            populated_store.list_sync_logs(),
        ) == before

    def test_overwrites_previous_export(self, populated_store, tmp_path):
        output = tmp_path / "chromium-data.json"
        output.write_text("stale", encoding="utf-8")

        JsonExporter(populated_store, output_path=output).export()

        assert json.loads(output.read_text(encoding="utf-8"))["records"]

    def test_failed_write_keeps_previous_export(self, populated_store, tmp_path):
        """Test that a failed write leaves the last good export in place."""
        output = tmp_path / "chromium-data.json"
        output.write_text('{"records": [], "updatedAt": []}', encoding="utf-8")

        with patch.object(Path, "replace", side_effect=OSError("disk full")):
            with pytest.raises(ExportError):
                JsonExporter(populated_store, output_path=output).export()

        assert output.read_text(encoding="utf-8") == '{"records": [], "updatedAt": []}'
        assert not (tmp_path / "chromium-data.json.tmp").exists()

    def test_empty_store(self, store, tmp_path):
        output = tmp_path / "chromium-data.json"

        document = JsonExporter(store, output_path=output).export()

        assert document.records == []
        assert json.loads(output.read_text(encoding="utf-8")) == {"records": [], "updatedAt": []}
