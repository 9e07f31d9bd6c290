"""Tests for webmention endpoint discovery and sending."""

import pytest

from webmention_relay.services.extractor import MentionExtractor
from webmention_relay.services.fetcher import FetchedDocument
from webmention_relay.services.salmention import discover_endpoint

PAGE_URL = "http://example.net/bar"


def fetched_page(html="", links=None):
    return FetchedDocument(
        url=PAGE_URL,
        status_code=200,
        headers={"content-type": "text/html"},
        body=html.encode(),
        links=links or [],
    )


class TestDiscoverEndpoint:
    """Test endpoint discovery order."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = MentionExtractor()

    def discover(self, html, links=None):
        fetched = fetched_page(html, links)
        return discover_endpoint(fetched, self.extractor.extract(fetched.text, fetched.url))

    def test_html_link_wins_over_header(self):
        html = '<html><head><link rel="webmention" href="/html-ping"></head><body></body></html>'
        links = [{"url": "http://example.net/header-ping", "rel": "webmention"}]

        assert self.discover(html, links) == "http://example.net/html-ping"

    def test_header_only(self):
        links = [{"url": "/header-ping", "rel": "webmention"}]

        assert self.discover("<p>nothing</p>", links) == "http://example.net/header-ping"

    def test_header_with_multiple_rels(self):
        links = [{"url": "http://example.net/ping", "rel": "something webmention"}]

        assert self.discover("<p>nothing</p>", links) == "http://example.net/ping"

    def test_anchor_rel(self):
        html = '<a rel="webmention" href="http://example.org/endpoint">endpoint</a>'

        assert self.discover(html) == "http://example.org/endpoint"

    def test_no_endpoint(self):
        links = [{"url": "http://example.net/feed", "rel": "alternate"}]

        assert self.discover("<p>nothing</p>", links) is None


@pytest.mark.asyncio
class TestSend:
    """Test outbound delivery reporting."""

    async def test_delivered(self, web, resolver):
        web.endpoint("http://example.net/ping", status=202)

        assert await resolver.propagator.send("http://example.net/ping", "http://a.example/", PAGE_URL) is True

    async def test_rejected(self, web, resolver):
        web.endpoint("http://example.net/ping", status=500)

        assert await resolver.propagator.send("http://example.net/ping", "http://a.example/", PAGE_URL) is False

    async def test_unreachable(self, resolver):
        assert await resolver.propagator.send("http://example.net/ping", "http://a.example/", PAGE_URL) is False
