"""
Tests for traffic source classification.
"""

import pytest

from shortlink.services.traffic_source import (
    TrafficSource,
    analyze_traffic_source,
    extract_domain,
)


class TestExtractDomain:
    """Test referrer host extraction."""

    def test_full_url(self):
        assert extract_domain("https://www.google.com/search?q=x") == "www.google.com"

    def test_lowercases(self):
        assert extract_domain("HTTPS://News.YCombinator.COM/item") == "news.ycombinator.com"

    def test_strips_port(self):
        assert extract_domain("http://example.com:8080/path") == "example.com"

    def test_bare_host(self):
        assert extract_domain("M.FACEBOOK.com") == "m.facebook.com"

    @pytest.mark.parametrize("value", ["", "not a url", "http://", "http://[::1", "::::", "   "])
    def test_malformed_returns_empty(self, value):
        assert extract_domain(value) == ""


class TestUTMClassification:
    """Test classification of campaign-tagged clicks."""

    @pytest.mark.parametrize("medium, expected", [
        ("email", TrafficSource.EMAIL),
        ("social", TrafficSource.SOCIAL),
        ("cpc", TrafficSource.PAID_SEARCH),
        ("ppc", TrafficSource.PAID_SEARCH),
        ("paid", TrafficSource.PAID_SEARCH),
        ("organic", TrafficSource.ORGANIC_SEARCH),
        ("referral", TrafficSource.REFERRAL),
        ("display", TrafficSource.DISPLAY),
        ("EMAIL", TrafficSource.EMAIL),
    ])
    def test_medium_mapping(self, medium, expected):
        info = analyze_traffic_source(utm_source="newsletter", utm_medium=medium)
        assert info.traffic_source == expected

    def test_utm_wins_over_referrer(self):
        info = analyze_traffic_source(
            referrer="https://google.com",
            utm_source="newsletter",
            utm_medium="email",
        )
        assert info.traffic_source == TrafficSource.EMAIL
        assert info.referrer_domain == "google.com"

    def test_unknown_medium_matches_social_source(self):
        info = analyze_traffic_source(utm_source="Facebook_Ads", utm_medium="banner")
        assert info.traffic_source == TrafficSource.SOCIAL

    def test_unknown_medium_matches_search_source(self):
        info = analyze_traffic_source(utm_source="bing", utm_medium=None)
        assert info.traffic_source == TrafficSource.SEARCH

    def test_unknown_medium_falls_back_to_campaign(self):
        info = analyze_traffic_source(utm_source="spring_sale", utm_medium="poster")
        assert info.traffic_source == TrafficSource.CAMPAIGN
        assert info.referrer_domain is None

    def test_medium_without_source_is_ignored(self):
        info = analyze_traffic_source(utm_medium="email")
        assert info.traffic_source == TrafficSource.DIRECT


class TestReferrerClassification:
    """Test classification from the Referer header."""

    def test_search_engine(self):
        info = analyze_traffic_source(referrer="https://www.google.com/search?q=x")
        assert info.traffic_source == TrafficSource.SEARCH
        assert info.referrer_domain == "www.google.com"

    def test_search_engine_subdomain(self):
        info = analyze_traffic_source(referrer="https://images.google.com/")
        assert info.traffic_source == TrafficSource.SEARCH

    def test_social_case_and_subdomain_insensitive(self):
        info = analyze_traffic_source(referrer="M.FACEBOOK.com")
        assert info.traffic_source == TrafficSource.SOCIAL
        assert info.referrer_domain == "m.facebook.com"

    def test_social_full_url(self):
        info = analyze_traffic_source(referrer="https://www.LinkedIn.com/feed/")
        assert info.traffic_source == TrafficSource.SOCIAL

    def test_other_site_is_referral(self):
        info = analyze_traffic_source(referrer="https://blog.example.org/post")
        assert info.traffic_source == TrafficSource.REFERRAL
        assert info.referrer_domain == "blog.example.org"

    def test_malformed_referrer_is_referral_with_empty_domain(self):
        info = analyze_traffic_source(referrer="not a url")
        assert info.traffic_source == TrafficSource.REFERRAL
        assert info.referrer_domain == ""


class TestDirect:
    def test_no_inputs(self):
        info = analyze_traffic_source()
        assert info.traffic_source == TrafficSource.DIRECT
        assert info.referrer_domain is None

    def test_blank_inputs(self):
        info = analyze_traffic_source(referrer="  ", utm_source="")
        assert info.traffic_source == TrafficSource.DIRECT


def test_labels_are_closed_set():
    assert {source.value for source in TrafficSource} == {
        "Direct", "Search", "Social", "Paid Search", "Email",
        "Referral", "Display", "Campaign", "Organic Search",
    }
