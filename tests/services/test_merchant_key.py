"""
Unit tests for merchant key extraction.

Tests the individual text rules, the ordered pipeline and the recovery step
for rows whose key came out empty.
"""

import pytest

from subscription_engine.models.transaction import NormalizedTransaction
from subscription_engine.services.subscriptions.merchant_key import (
    AMPERSAND_TO_WORD,
    CollapseWhitespaceRule,
    LowercaseTrimRule,
    MERCHANT_KEY_RULES,
    MerchantKeyExtractor,
    STRIP_COMPANY_SUFFIXES,
    STRIP_DOMAIN_SUFFIXES,
    STRIP_LONG_DIGIT_RUNS,
    STRIP_REFERENCE_NUMBERS,
    TextPipeline,
)


class TestTextRules:
    """Each rule is a pure str -> str transform."""

    def test_lowercase_trim(self):
        assert LowercaseTrimRule().apply("  NetFlix  ") == "netflix"

    def test_strip_reference_numbers(self):
        assert STRIP_REFERENCE_NUMBERS.apply("hulu #48213") == "hulu"
        assert STRIP_REFERENCE_NUMBERS.apply("hulu invoice 12345") == "hulu"
        assert STRIP_REFERENCE_NUMBERS.apply("gym ref-998") == "gym"

    def test_strip_long_digit_runs_keeps_short_numbers(self):
        assert STRIP_LONG_DIGIT_RUNS.apply("store 1234567 downtown") == "store downtown"
        assert STRIP_LONG_DIGIT_RUNS.apply("24 hour fitness") == "24 hour fitness"

    def test_strip_domain_suffixes(self):
        assert STRIP_DOMAIN_SUFFIXES.apply("netflix.com") == "netflix"
        assert STRIP_DOMAIN_SUFFIXES.apply("zoom.us") == "zoom"

    def test_strip_company_suffixes(self):
        assert STRIP_COMPANY_SUFFIXES.apply("acme inc") == "acme"
        assert STRIP_COMPANY_SUFFIXES.apply("spotify usa") == "spotify"

    def test_ampersand_becomes_word(self):
        assert AMPERSAND_TO_WORD.apply("at&t") == "at and t"

    def test_collapse_whitespace(self):
        assert CollapseWhitespaceRule().apply("  apple   music ") == "apple music"

    def test_rules_have_names(self):
        names = [rule.name for rule in MERCHANT_KEY_RULES]
        assert names[0] == 'lowercase_trim'
        assert names[-1] == 'collapse_whitespace'
        assert len(set(names)) == len(names)


class TestMerchantKeyExtractor:
    """Test suite for MerchantKeyExtractor."""

    @pytest.fixture
    def extractor(self):
        return MerchantKeyExtractor()

    @pytest.mark.parametrize("text,expected", [
        ("NETFLIX.COM INC #48213", "netflix"),
        ("Netflix", "netflix"),
        ("netflix.com", "netflix"),
        ("Disney+ - 0012345678", "disney plus"),
        ("Spotify USA", "spotify"),
        ("AT&T Wireless", "at and t wireless"),
        ("Hulu Invoice 12345", "hulu"),
        ("  Apple   Music  ", "apple music"),
        ("Gold's Gym", "gold s gym"),
    ])
    def test_extract(self, extractor, text, expected):
        assert extractor.extract(text) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "A", "#123456", "- -"])
    def test_unusable_text_yields_sentinel(self, extractor, text):
        assert extractor.extract(text) == "unknown"

    def test_textual_variants_share_a_key(self, extractor):
        variants = ["NETFLIX.COM", "Netflix Inc", "netflix #1234", "Netflix"]
        assert {extractor.extract(v) for v in variants} == {"netflix"}

    def test_custom_rules(self):
        extractor = MerchantKeyExtractor(rules=[LowercaseTrimRule()])
        assert extractor.extract("Netflix.com") == "netflix.com"

    def test_pipeline_runs_rules_in_order(self):
        pipeline = TextPipeline([LowercaseTrimRule(), STRIP_DOMAIN_SUFFIXES])
        assert pipeline.run("HULU.COM") == "hulu"
        assert pipeline.run(None) == ""


class TestMerchantKeyRecovery:
    """Test suite for the recovery step."""

    @pytest.fixture
    def extractor(self):
        return MerchantKeyExtractor()

    def test_resolved_key_is_untouched(self, extractor):
        tx = NormalizedTransaction(id="t1", merchant="Netflix", merchantKey="netflix")
        assert extractor.recover(tx) is tx

    def test_falls_back_to_lowercased_display_name(self, extractor):
        tx = NormalizedTransaction(id="t1", merchant="#12345678")
        recovered = extractor.recover(tx)
        assert recovered.merchant_key == "#12345678"
        assert tx.merchant_key == "unknown"

    def test_reruns_pipeline_on_display_name(self, extractor):
        tx = NormalizedTransaction(id="t1", merchant="Hulu.com")
        assert extractor.recover(tx).merchant_key == "hulu"

    def test_unknown_display_name_stays_unknown(self, extractor):
        tx = NormalizedTransaction(id="t1", merchant="Unknown")
        assert extractor.recover(tx).merchant_key == "unknown"

    @pytest.mark.parametrize("merchant", ["X", " 7 ", "#"])
    def test_single_character_display_name_stays_unknown(self, extractor, merchant):
        tx = NormalizedTransaction(id="t1", merchant=merchant)
        recovered = extractor.recover(tx)
        assert recovered.merchant_key == "unknown"
        assert recovered.has_resolved_merchant_key is False
