"""Public projections of stored entries, as JSON-ready dicts or HTML."""

from datetime import datetime, timedelta, timezone
from html import escape
from typing import Any, Optional

from .orm import Entry

UNKNOWN_AUTHOR = "Unknown"


def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands timestamps back without an offset
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def entry_projection(entry: Entry, targets: list[str]) -> dict[str, Any]:
    """Public view of an entry as seen from the given targets.

    Interaction status is derived per target: an entry that likes one page
    and merely links another is a plain mention of the second.
    """
    data = entry.data or {}
    author = data.get("author") or {}
    recorded = data.get("interactions", [])
    interactions = [target for target in targets if target in recorded]

    return {
        "url": entry.url,
        "name": data.get("name"),
        "published": _epoch_ms(entry.published),
        "summary": data.get("summary"),
        "author": {
            "name": author.get("name") or UNKNOWN_AUTHOR,
            "url": author.get("url"),
            "photo": author.get("photo"),
        },
        "targets": list(targets),
        "type": (entry.type if interactions else None) or "mention",
        "interactions": interactions,
    }


def render_mentions_html(mentions: list[dict[str, Any]]) -> str:
    """Minimal server-rendered list of mention projections."""
    items = []
    for mention in mentions:
        author = mention["author"]
        author_html = escape(author["name"])
        if author.get("url"):
            author_html = f'<a class="p-author h-card" href="{escape(author["url"])}">{author_html}</a>'
        published = ""
        if mention.get("published") is not None:
            stamp = datetime.fromtimestamp(mention["published"] / 1000, tz=timezone.utc)
            published = f' <time class="dt-published" datetime="{stamp.isoformat()}">{stamp:%Y-%m-%d}</time>'
        summary = f'<p class="p-summary">{escape(mention["summary"])}</p>' if mention.get("summary") else ""
        items.append(
            f'<li class="h-cite mention-{escape(mention["type"])}">'
            f"{author_html} "
            f'<a class="u-url" href="{escape(mention["url"])}">{escape(mention.get("name") or mention["url"])}</a>'
            f"{published}{summary}</li>"
        )

    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8"><title>Mentions</title></head>'
        f'<body><ul class="mentions">{"".join(items)}</ul></body></html>'
    )


EXAMPLE_COUNT = 14
_EXAMPLE_AUTHORS = (
    ("Alice", "https://alice.example/"),
    ("Bob Smith", "https://bob.example/"),
    ("Carol", "https://www.carol.example/"),
    ("Dave", "https://dave.example/"),
)
_EXAMPLE_TYPES = ("like", "repost", "reply", "mention")


def example_mentions(target: str = "https://example.org/post", now: Optional[datetime] = None) -> list[dict[str, Any]]:
    """Made-up mentions for trying out a client before real data exists.

    Same shape as entry_projection(), published over the past two weeks,
    newest last.
    """
    now = now or datetime.now(timezone.utc)
    mentions = []
    for index in range(EXAMPLE_COUNT):
        name, url = _EXAMPLE_AUTHORS[index % len(_EXAMPLE_AUTHORS)]
        kind = _EXAMPLE_TYPES[index % len(_EXAMPLE_TYPES)]
        published = now - timedelta(days=EXAMPLE_COUNT - index)
        mentions.append({
            "url": f"{url}notes/{index + 1}",
            "name": None,
            "published": _epoch_ms(published),
            "summary": f"Example {kind} number {index + 1}" if kind in ("reply", "mention") else None,
            "author": {"name": name, "url": url, "photo": f"{url}photo.jpg"},
            "targets": [target],
            "type": kind,
            "interactions": [target] if kind != "mention" else [],
        })
    return mentions
