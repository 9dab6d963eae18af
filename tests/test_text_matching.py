"""Tests for keyword extraction and string similarity."""

import pytest

from ledger_recon.services.text_matching import (
    MAX_VENDOR_KEYWORDS,
    calculate_similarity,
    descriptions_are_related,
    extract_keywords,
    extract_vendor_keywords,
    levenshtein_distance,
    levenshtein_similarity,
    significant_words,
)


class TestExtractVendorKeywords:
    def test_strips_urls_phones_and_rail_jargon(self):
        keywords = extract_vendor_keywords(
            "CARD PAYMENT TO EDF ENERGY www.edfenergy.com 0800 123 4567"
        )
        assert keywords == ["edf", "energy", "edfenergy"]

    def test_strips_reference_codes(self):
        keywords = extract_vendor_keywords("FPS ACME WIDGETS REF 123456789 AB1234567")
        assert keywords == ["acme", "widgets"]

    def test_strips_country_codes_but_keeps_other_short_words(self):
        assert extract_vendor_keywords("AMAZON GB MARKETPLACE") == ["amazon", "marketplace"]

    def test_truncates_to_five(self):
        keywords = extract_vendor_keywords("alpha bravo charlie delta echo foxtrot golf")
        assert len(keywords) == MAX_VENDOR_KEYWORDS
        assert keywords[-1] == "echo"

    @pytest.mark.parametrize("text", [None, "", "   ", "to the in"])
    def test_empty_input(self, text):
        assert extract_vendor_keywords(text) == []


def test_extract_keywords_keeps_codes():
    # The light variant does not strip reference codes
    assert extract_keywords("Payment from ACME 123456") == ["acme", "123456"]


class TestCalculateSimilarity:
    def test_identical_case_insensitive(self):
        assert calculate_similarity("John Smith", "JOHN SMITH") == 1.0

    def test_containment(self):
        assert calculate_similarity("JOHN SMITH LOAN REPAY", "john smith") == 0.8
        assert calculate_similarity("smith", "John Smith") == 0.8

    def test_partial_keyword_overlap(self):
        # "acme" overlaps, "widgets" does not: 1 of 2
        assert calculate_similarity("acme widgets", "acme holdings") == 0.5

    def test_no_keywords(self):
        assert calculate_similarity("to in", "of at") == 0.0

    @pytest.mark.parametrize("first,second", [(None, "x"), ("x", None), ("", "")])
    def test_missing_side(self, first, second):
        assert calculate_similarity(first, second) == 0.0


class TestLevenshtein:
    def test_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3

    def test_similarity(self):
        assert levenshtein_similarity("energy", "energi") == pytest.approx(1 - 1 / 6)

    def test_length_precheck_short_circuits(self):
        # Lengths 2 and 6 differ by more than half of 6
        assert levenshtein_similarity("ab", "abcdef") == 0.0

    def test_identical_and_empty(self):
        assert levenshtein_similarity("same", "same") == 1.0
        assert levenshtein_similarity("", "same") == 0.0


def test_significant_words_drops_short_words():
    assert significant_words("JO SMITH, LOAN #2") == ["smith", "loan"]


def test_descriptions_are_related():
    assert descriptions_are_related("TOBIE HOLBROOK LOAN PART1", "TOBIE HOLBROOK LOAN PART2")
    assert not descriptions_are_related("TESCO STORES", "SHELL FUEL")
    assert not descriptions_are_related(None, "SHELL FUEL")
