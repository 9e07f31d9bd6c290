"""Tests for MentionExtractor."""

from webmention_relay.services.extractor import MentionExtractor


class TestMentionExtractor:
    """Test mf2 driven extraction."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = MentionExtractor()

    def test_plain_links(self):
        """Test plain anchors inside the entry become links."""
        html = (
            '<div class="h-entry">'
            '<a href="http://example.org/foo">First</a>'
            '<a href="http://example.org/bar">second</a>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.com/")

        assert extracted.found_entry is True
        assert extracted.links == ["http://example.org/foo", "http://example.org/bar"]
        assert extracted.interaction_kind("http://example.org/foo") is None
        assert extracted.data["name"] is None

    def test_like_of_is_per_target(self):
        """Test classification only applies to the tagged target."""
        html = (
            '<div class="h-entry">'
            '<a class="u-like-of" href="http://example.org/foo">First</a>'
            '<a href="http://example.org/bar">second</a>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.com/")

        assert extracted.interaction_kind("http://example.org/foo") == "like"
        assert extracted.interaction_kind("http://example.org/foo#frag") == "like"
        assert extracted.interaction_kind("http://example.org/bar") is None
        assert extracted.links_to("http://example.org/bar")

    def test_repost_of(self):
        html = '<div class="h-entry"><a class="u-repost-of" href="http://example.org/foo">RT</a></div>'
        extracted = self.extractor.extract(html, "http://example.com/")

        assert extracted.interaction_kind("http://example.org/foo") == "repost"

    def test_embedded_reply_context(self):
        """Test in-reply-to given as an embedded h-cite."""
        html = (
            '<div class="h-entry">'
            '<div class="u-in-reply-to h-cite">'
            '<a class="u-url" href="http://example.org/post">The post</a>'
            "</div>"
            '<p class="e-content">Nice post!</p>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.com/reply")

        assert extracted.in_reply_to == ["http://example.org/post"]
        assert extracted.interaction_kind("http://example.org/post") == "reply"
        assert extracted.upstream == ["http://example.org/post"]

    def test_entry_data(self):
        """Test author, name, summary and published extraction."""
        html = (
            '<article class="h-entry">'
            '<h1 class="p-name">A title</h1>'
            '<div class="p-author h-card">'
            '<a class="u-url p-name" href="http://example.com/alice">Alice</a>'
            '<img class="u-photo" src="/alice.jpg">'
            "</div>"
            '<time class="dt-published" datetime="2020-01-02T03:04:05Z">Jan 2</time>'
            '<div class="e-content">Hello <a href="http://example.org/foo">foo</a></div>'
            "</article>"
        )
        extracted = self.extractor.extract(html, "http://example.com/post")

        assert extracted.data["url"] == "http://example.com/post"
        assert extracted.data["name"] == "A title"
        assert extracted.data["summary"] == "Hello foo"
        assert extracted.data["published"].startswith("2020-01-02")
        assert extracted.data["author"] == {
            "name": "Alice",
            "url": "http://example.com/alice",
            "photo": "http://example.com/alice.jpg",
        }
        assert "http://example.org/foo" in extracted.links

    def test_implied_name_is_dropped(self):
        """Test text-derived names are not treated as titles."""
        html = '<div class="h-entry"><p class="e-content">Just a note</p></div>'
        extracted = self.extractor.extract(html, "http://example.com/note")

        assert extracted.data["name"] is None
        assert extracted.data["summary"] == "Just a note"

    def test_long_summary_is_truncated(self):
        html = f'<div class="h-entry"><p class="p-summary">{"word " * 200}</p></div>'
        extracted = self.extractor.extract(html, "http://example.com/long")

        assert len(extracted.data["summary"]) <= 300
        assert extracted.data["summary"].endswith("…")

    def test_comment_and_responses_links(self):
        html = (
            '<div class="h-entry">'
            '<a href="http://example.org/foo">First</a>'
            '<a class="u-comment" href="http://example.com/foo">Comment</a>'
            '<a class="u-responses" href="/responses">All responses</a>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.com/")

        assert extracted.comments == ["http://example.com/foo"]
        assert extracted.responses == ["http://example.com/responses"]

    def test_person_tags(self):
        """Test only h-card categories count as person tags."""
        html = (
            '<div class="h-entry">'
            '<a href="http://example.net/bar" class="u-category h-card">Bob Smith</a>'
            '<a href="http://example.net/tags/indieweb" class="p-category">indieweb</a>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.net/foo")

        assert extracted.person_tags == ["http://example.net/bar"]
        assert extracted.upstream == ["http://example.net/bar"]

    def test_entry_urls_in_feed(self):
        """Test every entry of a responses collection is listed."""
        html = (
            '<div class="h-feed">'
            '<div class="h-entry"><a class="u-url" href="/a">A</a></div>'
            '<div class="h-entry"><a class="u-url" href="/b">B</a></div>'
            "</div>"
        )
        extracted = self.extractor.extract(html, "http://example.com/responses")

        assert extracted.entry_urls == ["http://example.com/a", "http://example.com/b"]

    def test_webmention_endpoint_rel(self):
        html = (
            '<html><head><link rel="webmention" href="/ping" /></head>'
            '<body><div class="h-entry">a simple linkless entry</div></body></html>'
        )
        extracted = self.extractor.extract(html, "http://example.net/bar")

        assert extracted.endpoints == ["http://example.net/ping"]

    def test_page_without_entry(self):
        """Test a page without microformats is an empty, valid source."""
        html = '<p>No microformats <a href="http://example.org/foo">here</a></p>'
        extracted = self.extractor.extract(html, "http://example.com/plain")

        assert extracted.found_entry is False
        assert extracted.links == []
        assert extracted.interaction_kind("http://example.org/foo") is None
        assert extracted.data["author"] == {"name": None, "url": None, "photo": None}
        assert extracted.raw is not None

    def test_mfversion(self):
        extracted = self.extractor.extract("<p></p>", "http://example.com/")

        assert extracted.mfversion.startswith("mf2::")
