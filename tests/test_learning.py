"""
Unit tests for the learning store.
"""

import json

import pytest

from smart_paths.resolution.learning import (
    FEEDBACK_CONFIDENCE,
    HISTORY_CONFIDENCE,
    HISTORY_RECALL_WINDOW,
    PATTERN_CONFIDENCE,
    InMemoryLearningStore,
    JsonLearningStore,
)


class TestInMemoryLearningStore:
    """Tests for learned-intent matching."""

    @pytest.fixture
    def store(self):
        return InMemoryLearningStore(max_history=3)

    def test_exact_feedback(self, store):
        """Test a recorded correction is returned for the same input."""
        store.record_feedback("alice", "보고서 폴더", "D:\\work\\reports")

        intent = store.analyze("alice", "  보고서   폴더 ")

        assert intent.paths == ["D:\\work\\reports"]
        assert intent.confidence == FEEDBACK_CONFIDENCE
        assert intent.source == "feedback"

    def test_repeated_feedback_raises_confidence(self, store):
        """Test the same correction recorded again is trusted more."""
        store.record_feedback("alice", "reports", "D:\\reports")
        store.record_feedback("alice", "reports", "D:\\reports")

        intent = store.analyze("alice", "reports")

        assert intent.confidence == pytest.approx(FEEDBACK_CONFIDENCE + 0.02)
        assert store.feedback("alice")["reports"].count == 2

    def test_feedback_is_per_user(self, store):
        """Test one user's corrections do not leak to another."""
        store.record_feedback("alice", "reports", "D:\\reports")

        assert store.analyze("bob", "reports") is None

    def test_pattern_contained_in_input(self, store):
        """Test a correction pattern inside a longer input."""
        store.record_feedback(None, "reports", "D:\\reports")

        intent = store.analyze(None, "open reports from last week")

        assert intent.confidence == PATTERN_CONFIDENCE
        assert intent.paths == ["D:\\reports"]

    def test_history_last_segment(self, store):
        """Test a typed-out path is recalled by its folder name."""
        typed = "C:\\Users\\alice\\Documents\\Invoices"
        store.record_resolution("alice", typed, [typed], "passthrough")

        intent = store.analyze("alice", "invoices")

        assert intent.paths == ["C:\\Users\\alice\\Documents\\Invoices"]
        assert intent.confidence == HISTORY_CONFIDENCE

    def test_fallback_history_ignored(self, store):
        """Test fallback results are never learned from."""
        store.record_resolution("alice", "ghost", ["/work/ghost"], "fallback")

        assert store.analyze("alice", "ghost") is None

    def test_recall_limited_to_recent_entries(self):
        """Test only the last few resolutions are searched by folder name."""
        store = InMemoryLearningStore(max_history=100)
        store.record_resolution("alice", "D:\\work\\invoices", ["D:\\work\\invoices"], "passthrough")
        for i in range(HISTORY_RECALL_WINDOW):
            store.record_resolution("alice", f"/p{i}", [f"/p{i}"], "passthrough")

        assert store.analyze("alice", "invoices") is None
        assert store.analyze("alice", "p0").paths == ["/p0"]

    def test_alias_history_ignored(self, store):
        """Test alias results are recomputed rather than recalled."""
        store.record_resolution("alice", "downloads", ["/home/alice/Downloads"], "direct")

        assert store.analyze("alice", "downloads") is None

    def test_history_is_bounded(self, store):
        """Test only the most recent resolutions are kept."""
        for i in range(5):
            store.record_resolution("alice", f"q{i}", [f"/p{i}"], "direct")

        history = store.history("alice")
        assert [h.input for h in history] == ["q2", "q3", "q4"]

    def test_user_stats_and_clear(self, store):
        """Test per-user summary and forgetting."""
        store.record_resolution("alice", "a", ["/a"], "direct")
        store.record_feedback("alice", "a", "/b")

        stats = store.user_stats("alice")
        assert stats["history_count"] == 1
        assert stats["feedback_count"] == 1
        assert stats["stages"] == {"direct": 1}

        store.clear("alice")
        assert store.user_stats("alice")["history_count"] == 0

    def test_empty_input(self, store):
        """Test blank input never matches."""
        assert store.analyze("alice", "  ") is None


class TestJsonLearningStore:
    """Tests for the JSON-backed store."""

    def test_persists_across_instances(self, tmp_path):
        """Test corrections survive a reload."""
        path = tmp_path / "learning.json"
        store = JsonLearningStore(path)
        store.record_feedback("alice", "reports", "D:\\reports")

        reloaded = JsonLearningStore(path)

        assert reloaded.analyze("alice", "reports").paths == ["D:\\reports"]
        data = json.loads(path.read_text(encoding="utf-8"))
        assert "alice" in data["feedback"]

    def test_corrupt_file_starts_empty(self, tmp_path):
        """Test an unreadable file is ignored rather than fatal."""
        path = tmp_path / "learning.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonLearningStore(path)

        assert store.feedback("alice") == {}
