"""
Unit tests for the bilingual lexicon.

Tests cover:
- keyword matching rules (English word start, Swahili substring)
- intent verb view used by the intent gate
- unit canonicalization and product lookup
- stock action detection
"""
import pytest

from src.extraction.lexicon import (
    canonical_unit,
    detect_stock_action,
    family_matches,
    find_product,
    has_intent_keyword,
    has_per_unit_marker,
    intent_keywords,
    mentions_stock,
)


class TestKeywordMatching:
    """English terms match at word start, Swahili terms anywhere."""

    @pytest.mark.parametrize(
        "family,text,expected",
        [
            ("debt", "he owes me 200", True),
            ("debt", "lower prices today", False),
            ("debt", "anadai elfu moja", True),
            ("sale", "nimeuza nyanya", True),
            ("sale", "aliuza maziwa", True),
            ("expense", "paid rent", True),
            ("expense", "the invoice is unpaid", False),
            ("loan", "nahitaji mkopo", True),
            ("purchase", "nilinunua unga", True),
        ],
    )
    @pytest.mark.unit
    def test_family_matches(self, family, text, expected):
        assert family_matches(family, text) is expected

    @pytest.mark.unit
    def test_intent_view_excludes_contextual_cues(self):
        terms = {keyword.term for keyword in intent_keywords()}
        assert "sold" in terms
        assert "nimelipa" in terms
        assert "rent" not in terms
        assert "stoki" not in terms

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("I sold two bags", True),
            ("Nimelipa umeme", True),
            ("rent 5000", False),
            ("How are you?", False),
        ],
    )
    @pytest.mark.unit
    def test_has_intent_keyword(self, text, expected):
        assert has_intent_keyword(text) is expected


class TestPerUnitMarker:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("for 5 shillings each", True),
            ("20 per kg", True),
            ("kwa shilingi 5 kila moja", True),
            ("kwa shilingi 200", False),
            ("reached the beach", False),
        ],
    )
    @pytest.mark.unit
    def test_has_per_unit_marker(self, text, expected):
        assert has_per_unit_marker(text) is expected


class TestUnitsAndProducts:

    @pytest.mark.parametrize(
        "raw_unit,expected",
        [
            ("Kilograms", "kg"),
            ("kgs", "kg"),
            ("pcs", "pieces"),
            ("litres", "liters"),
            ("bag", "bags"),
            (None, "unit"),
            ("crates", "unit"),
        ],
    )
    @pytest.mark.unit
    def test_canonical_unit(self, raw_unit, expected):
        assert canonical_unit(raw_unit) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("10 tomatoes", "tomatoes"),
            ("nyanya kumi", "tomatoes"),
            ("vitunguu", "onions"),
            ("sugar", None),
        ],
    )
    @pytest.mark.unit
    def test_find_product(self, text, expected):
        assert find_product(text) == expected


class TestStockVocabulary:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("restock 20 kg onions", "add_stock"),
            ("nimeongeza stoki ya sukari", "add_stock"),
            ("5 tomatoes spoiled", "remove_stock"),
            ("nyanya 5 zimeharibika", "remove_stock"),
            ("i have 12 kg of sugar remaining", "update_stock"),
            ("I sold 10 tomatoes", None),
        ],
    )
    @pytest.mark.unit
    def test_detect_stock_action(self, text, expected):
        assert detect_stock_action(text) == expected

    @pytest.mark.unit
    def test_mentions_stock(self):
        assert mentions_stock("check my inventory")
        assert mentions_stock("ongeza stoki")
        assert not mentions_stock("I sold tomatoes")
