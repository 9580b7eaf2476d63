"""Tests for the text-pattern author and series heuristics."""

import pytest

from folio.pipeline.patterns import extract_author_from_text, find_series_marker, split_series


class TestExtractAuthorFromText:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Der neue Roman von Max Mustermann", "Max Mustermann"),
            ("A thriller by John Le Carre", "John Le Carre"),
            ("Autor: Erika Beispiel", "Erika Beispiel"),
            ("Author: Jane Doe", "Jane Doe"),
            ("Vom Bestseller-Autor Sebastian Fitzek", "Sebastian Fitzek"),
            ("VON Max Mustermann", "Max Mustermann"),
        ],
    )
    def test_patterns(self, text, expected):
        assert extract_author_from_text(text) == expected

    def test_name_stops_at_lowercase_word(self):
        assert extract_author_from_text("von Max Mustermann erzählt") == "Max Mustermann"

    def test_single_word_is_not_a_name(self):
        assert extract_author_from_text("Ein Buch von Goethe") == ""

    @pytest.mark.parametrize("text", [None, "", "Keine Angabe"])
    def test_no_match(self, text):
        assert extract_author_from_text(text) == ""


class TestSeriesHelpers:
    def test_find_series_marker(self):
        assert find_series_marker("Ein Fall für Isabelle Bonnet, Band 3") == (
            "Ein Fall für Isabelle Bonnet"
        )
        assert find_series_marker("Pierre Martin") is None
        assert find_series_marker(None) is None

    def test_split_series(self):
        assert split_series("Ein Fall für Isabelle Bonnet Band 7") == (
            "Ein Fall für Isabelle Bonnet",
            "7",
        )

    def test_split_series_without_number(self):
        assert split_series("Die Chroniken") == ("Die Chroniken", "")
