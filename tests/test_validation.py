"""Tests for ping validation and URL normalization."""

import pytest

from webmention_relay.validation import (
    EquivalentEndpoints,
    InvalidURL,
    host_of,
    is_http_url,
    normalize_host,
    normalize_url,
    validate_ping,
)


class TestValidatePing:
    """Test synchronous ping validation."""

    def test_accepts_distinct_urls(self):
        """Test a normal ping is accepted."""
        ping = validate_ping("http://example.com/", "http://example.org/foo")

        assert ping.source == "http://example.com/"
        assert ping.target == "http://example.org/foo"

    def test_rejects_malformed_source(self):
        with pytest.raises(InvalidURL):
            validate_ping("invalid", "http://example.org/foo")

    def test_rejects_malformed_target(self):
        with pytest.raises(InvalidURL):
            validate_ping("http://example.org/foo", "invalid")

    def test_rejects_missing_values(self):
        with pytest.raises(InvalidURL):
            validate_ping(None, "http://example.org/foo")
        with pytest.raises(InvalidURL):
            validate_ping("http://example.org/foo", "")

    def test_rejects_non_http_scheme(self):
        with pytest.raises(InvalidURL):
            validate_ping("ftp://example.com/file", "http://example.org/foo")

    def test_rejects_equal_urls(self):
        with pytest.raises(EquivalentEndpoints):
            validate_ping("http://example.org/foo", "http://example.org/foo")

    def test_rejects_equal_after_scheme_normalization(self):
        """Test http and https point at the same document."""
        with pytest.raises(EquivalentEndpoints):
            validate_ping("https://example.org/foo", "http://example.org/foo")

    def test_rejects_equal_after_www_and_fragment_normalization(self):
        with pytest.raises(EquivalentEndpoints):
            validate_ping("https://www.example.org/foo", "http://example.org/foo/#foobar")

    def test_error_codes(self):
        """Test error codes used in the 400 body."""
        assert InvalidURL("x").code == "invalid_url"
        assert EquivalentEndpoints("x").code == "equivalent_endpoints"


class TestNormalization:
    """Test URL helpers."""

    def test_normalize_url_strips_fragment(self):
        assert normalize_url("http://example.org/foo#bar") == normalize_url("http://example.org/foo")

    def test_normalize_url_keeps_query(self):
        assert normalize_url("http://example.org/?p=1") != normalize_url("http://example.org/?p=2")

    def test_normalize_url_keeps_distinct_paths(self):
        assert normalize_url("http://example.org/foo") != normalize_url("http://example.org/bar")

    def test_normalize_host(self):
        assert normalize_host("WWW.Example.org") == "example.org"
        assert normalize_host(None) == ""

    def test_host_of(self):
        assert host_of("https://www.example.org/path") == "example.org"

    def test_is_http_url(self):
        assert is_http_url("https://example.org")
        assert not is_http_url("/relative/path")
        assert not is_http_url("mailto:someone@example.org")
