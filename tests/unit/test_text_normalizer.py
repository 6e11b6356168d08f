"""Unit tests for text normalization utilities."""

from __future__ import annotations

import pytest

from src.utils.text_normalizer import (
    extract_domain,
    normalize_claim_text,
    normalize_query,
    normalize_url,
    title_similarity,
    truncate,
)


# ======================================================================
# normalize_url
# ======================================================================


class TestNormalizeUrl:
    def test_strips_www_fragment_and_tracking(self) -> None:
        url = "https://WWW.Example.com/a/?utm_source=x&fbclid=1#top"
        assert normalize_url(url) == "https://example.com/a"

    def test_keeps_meaningful_query_sorted(self) -> None:
        url = "http://example.com/watch?v=abc&list=xyz&utm_medium=mail"
        assert normalize_url(url) == "https://example.com/watch?list=xyz&v=abc"

    def test_equivalent_urls_collapse(self) -> None:
        assert normalize_url("https://example.com/a/") == normalize_url("https://www.example.com/a")

    def test_pseudo_url_untouched(self) -> None:
        assert normalize_url("  pdf://upload/123  ") == "pdf://upload/123"


# ======================================================================
# extract_domain
# ======================================================================


class TestExtractDomain:
    def test_strips_www(self) -> None:
        assert extract_domain("https://www.BBC.co.uk/news") == "bbc.co.uk"

    def test_keeps_subdomain(self) -> None:
        assert extract_domain("https://open.spotify.com/episode/1") == "open.spotify.com"

    def test_no_host(self) -> None:
        assert extract_domain("not a url") is None


# ======================================================================
# normalize_query / normalize_claim_text
# ======================================================================


class TestNormalizeQuery:
    def test_case_whitespace_and_trailing_punctuation(self) -> None:
        assert normalize_query("  Cycling   Network Budget?! ") == "cycling network budget"

    def test_near_duplicates_collapse(self) -> None:
        assert normalize_query("City grant.") == normalize_query("city  GRANT")


class TestNormalizeClaimText:
    def test_strips_punctuation(self) -> None:
        text = "The plan adds forty kilometres of lanes!"
        assert normalize_claim_text(text) == "the plan adds forty kilometres of lanes"

    def test_collapses_whitespace(self) -> None:
        assert normalize_claim_text("  A -  B  ") == "a b"


# ======================================================================
# title_similarity / truncate
# ======================================================================


class TestTitleSimilarity:
    def test_embedded_title_scores_high(self) -> None:
        score = title_similarity("The Future of Cities", "Ep. 42: The Future of Cities | Urbanist")
        assert score >= 0.9

    def test_unrelated_titles_score_low(self) -> None:
        assert title_similarity("Quantum computing", "Gardening for beginners") < 0.6

    @pytest.mark.parametrize(("left", "right"), [("", "x"), ("x", "")])
    def test_empty_is_zero(self, left: str, right: str) -> None:
        assert title_similarity(left, right) == 0.0


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("abc", 5) == "abc"

    def test_long_text_cut(self) -> None:
        assert truncate("abcdef", 3) == "abc"
