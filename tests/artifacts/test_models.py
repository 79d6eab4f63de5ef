"""Tests for artifact retrieval models."""

from pathlib import Path

import pytest

from marathon_cloud.exceptions import PartialFailureError
from marathon_cloud.models.artifacts import ArtifactEntry, ArtifactListing
from marathon_cloud.services.artifacts import (
    DownloadFailure,
    FileNode,
    NodeRegistry,
    RetrievalSummary,
)


def _file(node_id: str) -> FileNode:
    return FileNode(id=node_id, is_file=True)


def _dir(node_id: str) -> FileNode:
    return FileNode(id=node_id, is_file=False)


class TestArtifactListing:
    """Tests for decoding listing responses."""

    def test_decodes_wire_format(self):
        entries = ArtifactListing.validate_python(
            [
                {"id": "run-1/report", "is_file": False, "name": "report"},
                {"id": "run-1/a.log", "is_file": True, "name": "a.log"},
            ]
        )
        assert entries == [
            ArtifactEntry(id="run-1/report", is_file=False, name="report"),
            ArtifactEntry(id="run-1/a.log", is_file=True, name="a.log"),
        ]

    def test_name_is_optional(self):
        entries = ArtifactListing.validate_python([{"id": "x", "is_file": True}])
        assert entries[0].name == ""


class TestNodeRegistry:
    """Tests for NodeRegistry."""

    def test_add_is_unique_by_id(self):
        registry = NodeRegistry()
        assert registry.add(_file("a")) is True
        assert registry.add(FileNode(id="a", is_file=True, name="other")) is False
        assert len(registry) == 1
        assert registry.get("a").name == ""

    def test_preserves_insertion_order(self):
        registry = NodeRegistry()
        for node_id in ("c", "a", "b"):
            registry.add(_file(node_id))
        assert [n.id for n in registry] == ["c", "a", "b"]

    def test_merge_returns_added_count(self):
        registry = NodeRegistry()
        registry.add(_file("a"))
        registry.mark_downloaded("a")

        fresh = NodeRegistry()
        fresh.add(_file("a"))
        fresh.add(_file("b"))
        fresh.add(_dir("d"))

        assert registry.merge(fresh) == 2
        assert [n.id for n in registry] == ["a", "b", "d"]
        # Existing nodes keep their downloaded flag
        assert registry.get("a").downloaded is True

    def test_merge_same_registry_twice_adds_nothing(self):
        registry = NodeRegistry()
        fresh = NodeRegistry()
        fresh.add(_file("a"))
        assert registry.merge(fresh) == 1
        assert registry.merge(fresh) == 0

    def test_merge_copies_nodes(self):
        registry = NodeRegistry()
        fresh = NodeRegistry()
        fresh.add(_file("a"))
        registry.merge(fresh)
        registry.mark_downloaded("a")
        assert fresh.get("a").downloaded is False

    def test_mark_downloaded_once(self):
        registry = NodeRegistry()
        registry.add(_file("a"))
        assert registry.mark_downloaded("a") is True
        assert registry.mark_downloaded("a") is False
        assert registry.downloaded_count == 1

    def test_mark_downloaded_unknown_raises(self):
        with pytest.raises(KeyError):
            NodeRegistry().mark_downloaded("missing")

    def test_pending_only_files(self):
        registry = NodeRegistry()
        registry.add(_dir("d"))
        registry.add(_file("a"))
        registry.add(_file("b"))
        registry.mark_downloaded("a")

        assert [n.id for n in registry.pending()] == ["b"]
        assert registry.file_count == 2
        assert "d" in registry
        assert "x" not in registry

    def test_iteration_tolerates_growth(self):
        registry = NodeRegistry()
        registry.add(_file("a"))
        for node in registry:
            registry.add(_file(node.id + "-child"))
        assert len(registry) == 2


class TestRetrievalSummary:
    """Tests for RetrievalSummary."""

    def test_complete(self):
        summary = RetrievalSummary(run_id="r", total_files=3, downloaded=3, passes=2)
        assert summary.pending == 0
        assert summary.is_complete
        summary.raise_for_partial()
        assert "complete" in repr(summary)

    def test_partial_raises(self):
        summary = RetrievalSummary(
            run_id="r",
            destination=Path("out"),
            total_files=3,
            downloaded=1,
            failed=["r/a", "r/b"],
        )
        assert summary.pending == 2
        with pytest.raises(PartialFailureError) as exc_info:
            summary.raise_for_partial()
        assert exc_info.value.summary is summary
        assert "2 of 3" in str(exc_info.value)

    def test_summary_text(self):
        summary = RetrievalSummary(
            run_id="r",
            total_files=2,
            downloaded=1,
            failed=["r/a"],
            passes=4,
            attempts=7,
            stopped_early=True,
            rewritten_reports=3,
        )
        text = summary.summary()
        assert "1/2 downloaded" in text
        assert "Passes: 4 (7 download attempts)" in text
        assert "r/a" in text
        assert "Stopped before" in text
        assert "Report files patched: 3" in text
        assert str(summary) == text


class TestDownloadFailure:
    def test_str(self):
        failure = DownloadFailure(node_id="r/a", attempts=3, error="boom")
        assert str(failure) == "r/a: all 3 attempts failed. boom"
