"""Microformats-2 based mention extraction.

The mf2 parser (mf2py) is treated as a pure function from HTML and a base
URL to a dict. Everything the pipeline needs from that dict is pulled out here
into an ``ExtractedEntry`` so the rest of the code never touches parser
internals.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Optional
from urllib.parse import urljoin

import mf2py
from bs4 import BeautifulSoup

from ..validation import is_http_url, normalize_url, strip_fragment

logger = logging.getLogger(__name__)

MICROFORMATS_VERSION = "2"
SUMMARY_LENGTH = 300

# Strongest first
INTERACTION_PROPERTIES = (
    ("in-reply-to", "reply"),
    ("repost-of", "repost"),
    ("like-of", "like"),
)


def _parser_version() -> str:
    try:
        return version("mf2py")
    except PackageNotFoundError:
        return getattr(mf2py, "__version__", "unknown")


MF_VERSION = f"mf2::{_parser_version()}::{MICROFORMATS_VERSION}"


@dataclass
class ExtractedEntry:
    """What the pipeline knows about one parsed document."""

    url: str
    data: dict[str, Any] = field(default_factory=dict)
    links: list[str] = field(default_factory=list)
    in_reply_to: list[str] = field(default_factory=list)
    repost_of: list[str] = field(default_factory=list)
    like_of: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    responses: list[str] = field(default_factory=list)
    person_tags: list[str] = field(default_factory=list)
    entry_urls: list[str] = field(default_factory=list)
    endpoints: list[str] = field(default_factory=list)
    raw: Optional[dict[str, Any]] = None
    mfversion: str = MF_VERSION
    found_entry: bool = False

    def interaction_kind(self, target: str) -> Optional[str]:
        """Return like, repost or reply if this entry explicitly targets the URL."""
        wanted = normalize_url(target)
        for prop, kind in INTERACTION_PROPERTIES:
            values = getattr(self, prop.replace("-", "_"))
            if any(normalize_url(value) == wanted for value in values):
                return kind
        return None

    def links_to(self, target: str) -> bool:
        """Check if the target is among the entry's outbound links."""
        wanted = normalize_url(target)
        return any(normalize_url(link) == wanted for link in self.links)

    @property
    def upstream(self) -> list[str]:
        """Reply-to and person-tag URLs, the targets of a salmention."""
        return _unique(self.in_reply_to + self.person_tags)


def _unique(urls: list[str]) -> list[str]:
    seen = set()
    result = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result


def _clean_url(value: Any, base_url: str) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    url = strip_fragment(urljoin(base_url, value.strip()))
    return url if is_http_url(url) else None


def _value_url(value: Any, base_url: str) -> Optional[str]:
    """URL of a property value that is either a string or an embedded object."""
    if isinstance(value, dict):
        props = value.get("properties", {})
        urls = props.get("url") or []
        candidate = urls[0] if urls else value.get("value")
        if isinstance(candidate, dict):
            candidate = candidate.get("value")
        return _clean_url(candidate, base_url)
    return _clean_url(value, base_url)


def _property_urls(props: dict[str, Any], name: str, base_url: str) -> list[str]:
    urls = (_value_url(value, base_url) for value in props.get(name, []))
    return _unique([url for url in urls if url])


def _first_text(props: dict[str, Any], name: str) -> Optional[str]:
    for value in props.get(name, []):
        if isinstance(value, dict):
            value = value.get("value")
        if isinstance(value, str) and value.strip():
            return " ".join(value.split())
    return None


def _find_entries(items: list[Any]) -> list[dict[str, Any]]:
    """All h-entry objects, depth first, including ones nested in feeds."""
    found = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if "h-entry" in item.get("type", []):
            found.append(item)
        else:
            for values in item.get("properties", {}).values():
                found.extend(_find_entries(values))
        found.extend(_find_entries(item.get("children", [])))
    return found


def _author(props: dict[str, Any], base_url: str) -> dict[str, Optional[str]]:
    author = {"name": None, "url": None, "photo": None}
    values = props.get("author", [])
    if not values:
        return author

    value = values[0]
    if isinstance(value, dict):
        card = value.get("properties", {})
        author["name"] = _first_text(card, "name") or (value.get("value") or None)
        urls = _property_urls(card, "url", base_url)
        author["url"] = urls[0] if urls else None
        photos = card.get("photo", [])
        if photos:
            photo = photos[0].get("value") if isinstance(photos[0], dict) else photos[0]
            author["photo"] = _clean_url(photo, base_url)
    elif isinstance(value, str):
        url = _clean_url(value, base_url)
        if url and value.strip().startswith(("http://", "https://")):
            author["url"] = url
        else:
            author["name"] = value.strip() or None
    return author


def _summary(props: dict[str, Any]) -> Optional[str]:
    summary = _first_text(props, "summary") or _first_text(props, "content")
    if summary and len(summary) > SUMMARY_LENGTH:
        summary = summary[: SUMMARY_LENGTH - 1].rstrip() + "…"
    return summary


def _is_microformat_root(element) -> bool:
    return any(name.startswith("h-") for name in element.get("class", []))


def _has_explicit_name(scope) -> bool:
    """Check for a p-name belonging to the entry itself, not a nested card."""
    for element in scope.select(".p-name"):
        parent = element.parent
        while parent is not None and parent is not scope and not _is_microformat_root(parent):
            parent = parent.parent
        if parent is scope:
            return True
    return False


def _name(props: dict[str, Any], scope) -> Optional[str]:
    # mf2py implies a name from the full text, only keep real titles
    if scope is None or not _has_explicit_name(scope):
        return None
    return _first_text(props, "name")


def _anchor_links(scope, base_url: str) -> list[str]:
    links = (_clean_url(a.get("href"), base_url) for a in scope.find_all("a", href=True))
    return _unique([link for link in links if link])


class MentionExtractor:
    """Turn fetched HTML into an ExtractedEntry."""

    def extract(self, html: str, base_url: str) -> ExtractedEntry:
        parsed = mf2py.parse(doc=html, url=base_url)
        extracted = ExtractedEntry(url=base_url, raw=parsed)

        rels = parsed.get("rels", {})
        extracted.endpoints = _unique(
            [url for url in (_clean_url(v, base_url) for v in rels.get("webmention", [])) if url]
        )

        entries = _find_entries(parsed.get("items", []))
        extracted.entry_urls = _unique(
            [url for entry in entries for url in _property_urls(entry.get("properties", {}), "url", base_url)]
        )

        if not entries:
            logger.debug("No h-entry found on %s", base_url)
            extracted.data = self._default_data(base_url)
            return extracted

        props = entries[0].get("properties", {})
        soup = BeautifulSoup(html, "html.parser")
        scope = soup.select_one(".h-entry")
        extracted.found_entry = True
        extracted.data = {
            "url": base_url,
            "name": _name(props, scope),
            "published": _first_text(props, "published"),
            "summary": _summary(props),
            "author": _author(props, base_url),
        }

        extracted.in_reply_to = _property_urls(props, "in-reply-to", base_url)
        extracted.repost_of = _property_urls(props, "repost-of", base_url)
        extracted.like_of = _property_urls(props, "like-of", base_url)
        extracted.comments = _property_urls(props, "comment", base_url)
        extracted.responses = _property_urls(props, "responses", base_url)
        extracted.person_tags = _unique([
            url
            for url in (
                _value_url(value, base_url)
                for value in props.get("category", [])
                if isinstance(value, dict) and "h-card" in value.get("type", [])
            )
            if url
        ])

        extracted.links = _unique(
            _anchor_links(scope if scope is not None else soup, base_url)
            + _property_urls(props, "url", base_url)
            + extracted.in_reply_to
            + extracted.repost_of
            + extracted.like_of
        )

        return extracted

    @staticmethod
    def _default_data(base_url: str) -> dict[str, Any]:
        return {
            "url": base_url,
            "name": None,
            "published": None,
            "summary": None,
            "author": {"name": None, "url": None, "photo": None},
        }
