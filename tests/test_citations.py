"""Tests for scripture citation extraction."""

import pytest

from berean.citations import extract_citations


class TestExtractCitations:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Grace is unmerited favor. John 3:16.", ["John 3:16"]),
            (
                "See John 3:16 and Romans 8:28-30, also John 3:16",
                ["John 3:16", "Romans 8:28-30"],
            ),
            ("Read Romans 8:28-30 tonight.", ["Romans 8:28-30"]),
            ("God is love (1 John 4:8).", ["1 John 4:8"]),
            ("See 2Timothy 3:16 for this.", ["2Timothy 3:16"]),
            ("No references in this answer.", []),
            ("", []),
        ],
    )
    def test_extracts_references(self, text, expected):
        assert extract_citations(text) == expected

    def test_first_occurrence_order(self):
        text = "Compare Genesis 1:1 with John 1:1, and Psalm 23:1."
        assert extract_citations(text) == ["Genesis 1:1", "John 1:1", "Psalm 23:1"]

    def test_duplicates_dropped(self):
        text = "John 3:16 says it. Romans 5:8 agrees. Again, John 3:16."
        assert extract_citations(text) == ["John 3:16", "Romans 5:8"]

    def test_match_does_not_include_leading_space(self):
        assert extract_citations("As written in John 3:16") == ["John 3:16"]

    def test_lowercase_book_is_not_a_citation(self):
        assert extract_citations("john 3:16") == []

    def test_syntactic_only(self):
        # No book or verse validation is done.
        assert extract_citations("Made 99:99 up") == ["Made 99:99"]

    def test_chapter_without_verse_is_ignored(self):
        assert extract_citations("Psalm 23 is a comfort.") == []
