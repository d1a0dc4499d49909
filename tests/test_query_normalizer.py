"""Tests for QueryNormalizer search-term expansion."""

import pytest
import yaml
from retrieval.query_normalizer import QueryNormalizer, DEFAULT_SYNONYMS_PATH


class TestQueryNormalizer:
    """Test bilingual query expansion."""

    def setup_method(self):
        """Set up test fixtures."""
        self.normalizer = QueryNormalizer()

    def test_arabic_single_term(self):
        """Test Egyptian Arabic product words map to catalog terms."""
        assert self.normalizer.expand("شاحن") == "charger"
        assert self.normalizer.expand("موبايل") == "phone"
        assert self.normalizer.expand("سماعة") == "headphones"

    def test_full_phrase_wins_over_tokens(self):
        """Test multi-word entries match the whole query first."""
        assert self.normalizer.expand("لاب توب") == "laptop"
        assert self.normalizer.expand("باور بانك") == "power bank"

    def test_mixed_tokens(self):
        """Test each token is mapped independently, unknown tokens pass through."""
        assert self.normalizer.expand("شاحن سامسونج") == "charger samsung"
        assert self.normalizer.expand("شاحن 65w") == "charger 65w"

    def test_english_variants(self):
        """Test English variants collapse to the canonical term."""
        assert self.normalizer.expand("Mobile") == "phone"
        assert self.normalizer.expand("powerbank") == "power bank"

    def test_unmapped_query_returned_unchanged(self):
        """Test queries with no mapped token come back exactly as given."""
        assert self.normalizer.expand("ThinkPad X1") == "ThinkPad X1"
        assert self.normalizer.expand("  usb-c hub ") == "  usb-c hub "

    def test_empty_query(self):
        """Test empty and whitespace-only input is returned as is."""
        assert self.normalizer.expand("") == ""
        assert self.normalizer.expand("   ") == "   "

    def test_expansion_is_idempotent(self):
        """Test expanding an already expanded query changes nothing."""
        queries = ["شاحن", "لاب توب", "سماعة بلوتوث", "ايفون جراب", "ساعة ذكية"]

        for query in queries:
            once = self.normalizer.expand(query)
            assert self.normalizer.expand(once) == once

    def test_no_canonical_value_is_a_key(self):
        """Test the bundled table never maps to a term it would map again."""
        with open(DEFAULT_SYNONYMS_PATH, "r", encoding="utf-8") as f:
            table = yaml.safe_load(f)

        keys = {str(k).lower() for k in table}
        for canonical in table.values():
            for token in str(canonical).lower().split():
                assert token not in keys
            assert str(canonical).lower() not in keys

    def test_custom_synonyms(self):
        """Test an explicit mapping replaces the bundled table."""
        normalizer = QueryNormalizer(synonyms={"Cam": "camera"})
        assert normalizer.expand("cam") == "camera"
        assert normalizer.expand("شاحن") == "شاحن"

    @pytest.mark.parametrize("raw,expected", [
        ("charger, 65w", "charger  65w"),
        ("100%", "100"),
        ("  plain  ", "plain"),
    ])
    def test_sanitize(self, raw, expected):
        """Test filter-unsafe characters are removed."""
        assert QueryNormalizer.sanitize(raw) == expected
