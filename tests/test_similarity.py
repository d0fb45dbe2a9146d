"""
Unit tests for string similarity helpers.
"""

import pytest

from smart_paths.utils.similarity import (
    compact_text,
    levenshtein_distance,
    normalize_text,
    relevance,
    similarity,
)


class TestLevenshtein:
    """Tests for levenshtein_distance."""

    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("다운로드", "다운로드", 0),
        ("다운로드", "다운로", 1),
    ])
    def test_distance(self, a, b, expected):
        """Test known edit distances."""
        assert levenshtein_distance(a, b) == expected

    def test_symmetric(self):
        """Test argument order does not matter."""
        assert levenshtein_distance("desktop", "desk") == levenshtein_distance("desk", "desktop")


class TestSimilarity:
    """Tests for normalized similarity."""

    def test_identical_strings(self):
        """Test identical strings score 1.0."""
        assert similarity("documents", "documents") == 1.0

    def test_empty_string(self):
        """Test one empty side scores 0.0."""
        assert similarity("", "documents") == 0.0

    def test_one_typo(self):
        """Test a single typo in a long word stays above 0.8."""
        assert similarity("dowloads", "downloads") >= 0.8

    def test_unrelated(self):
        """Test unrelated words score low."""
        assert similarity("music", "telegram") < 0.5


class TestNormalization:
    """Tests for normalize_text and compact_text."""

    def test_normalize_collapses_whitespace(self):
        """Test case folding and whitespace collapsing."""
        assert normalize_text("  My   Documents ") == "my documents"

    def test_normalize_empty(self):
        """Test None-ish input."""
        assert normalize_text("") == ""

    def test_compact_ignores_spacing_and_punctuation(self):
        """Test spaced and unspaced Korean phrases compact equally."""
        assert compact_text("카카오톡 받은 파일") == compact_text("카카오톡받은파일")
        assert compact_text("Google-Drive") == "googledrive"


class TestRelevance:
    """Tests for relevance scoring."""

    def test_ordering(self):
        """Test exact > prefix > substring > fuzzy."""
        exact = relevance("report", "report")
        prefix = relevance("report 2024", "report")
        contains = relevance("annual report", "report")
        fuzzy = relevance("repot", "report")

        assert exact == 100.0
        assert prefix == 90.0
        assert contains == 70.0
        assert 0 < fuzzy < 50.0

    def test_empty_keyword(self):
        """Test empty keyword scores zero."""
        assert relevance("anything", "") == 0.0
