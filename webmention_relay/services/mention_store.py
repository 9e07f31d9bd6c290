"""Repository for entries and their mentions.

All writes to the ``entries`` and ``mentions`` tables go through
``reconcile_mentions`` (a full resolution of a pinged source) or
``upsert_entry`` (a document fetched while relaying salmentions).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..orm import Entry, Mention, utc_now
from ..validation import normalize_host, normalize_url
from .database import DatabaseService
from .extractor import ExtractedEntry

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    entry: Entry
    created: list[str] = field(default_factory=list)
    revived: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


@dataclass
class MentionMatch:
    """An entry together with the live targets that matched a query."""

    entry: Entry
    targets: list[str]


def _merge_data(
    previous: Optional[dict[str, Any]],
    extracted: ExtractedEntry,
    interaction_targets: Iterable[str],
    entry_type: Optional[str],
) -> dict[str, Any]:
    """Fresh document data, keeping the accumulated interaction list."""
    interactions = list((previous or {}).get("interactions", []))
    for url in interaction_targets:
        if url not in interactions:
            interactions.append(url)

    data = dict(extracted.data)
    if interactions:
        data["interactions"] = interactions
        data["interactionType"] = entry_type
    return data


class MentionStore:
    """Persistence for entries and mentions.

    Entries are keyed by ``normalize_url`` of their source, the first spelling
    seen is kept as ``Entry.url``.
    """

    def __init__(self, db_service: DatabaseService):
        self.db_service = db_service

    async def _load_entry(self, session: AsyncSession, url: str) -> Optional[Entry]:
        result = await session.execute(
            select(Entry)
            .where(Entry.canonical_url == normalize_url(url))
            .options(selectinload(Entry.mentions))
        )
        return result.scalar_one_or_none()

    async def upsert_entry(self, url: str, extracted: ExtractedEntry) -> Entry:
        """Insert or refresh an entry without touching its mentions."""
        async with self.db_service.session() as session:
            entry = await self._load_entry(session, url)
            now = utc_now()

            if entry is None:
                entry = Entry(
                    url=url,
                    canonical_url=normalize_url(url),
                    published=now,
                    updated=now,
                    mentions=[],
                )
                session.add(entry)
                logger.debug("Created entry for %s", url)
            else:
                entry.updated = now

            entry.data = _merge_data(entry.data, extracted, [], entry.type)
            entry.raw = extracted.raw
            entry.mfversion = extracted.mfversion

            return entry

    async def reconcile_mentions(
        self,
        url: str,
        extracted: ExtractedEntry,
        targets: list[tuple[str, Optional[str]]],
    ) -> ReconcileResult:
        """Make the stored mention set of a source match its latest resolution.

        Args:
            url: Source URL.
            extracted: Freshly extracted document.
            targets: Ordered (target URL, interaction kind or None) pairs found
                on this pass. The kind of the last interaction target becomes
                the entry type.

        Returns:
            ReconcileResult listing created, revived, updated and removed targets.
        """
        wanted: dict[str, Optional[str]] = {}
        for target, kind in targets:
            wanted[target] = kind

        async with self.db_service.session() as session:
            entry = await self._load_entry(session, url)
            now = utc_now()

            if entry is None:
                entry = Entry(
                    url=url,
                    canonical_url=normalize_url(url),
                    published=now,
                    updated=now,
                    mentions=[],
                )
                session.add(entry)
            else:
                entry.updated = now

            kinds = [kind for kind in wanted.values() if kind]
            if kinds:
                entry.type = kinds[-1]

            entry.data = _merge_data(
                entry.data,
                extracted,
                [target for target, kind in wanted.items() if kind],
                entry.type,
            )
            entry.raw = extracted.raw
            entry.mfversion = extracted.mfversion

            result = ReconcileResult(entry=entry)
            existing = {mention.url: mention for mention in entry.mentions}

            for target, kind in wanted.items():
                interaction = kind is not None
                mention = existing.get(target)

                if mention is None:
                    entry.mentions.append(
                        Mention(url=target, interaction=interaction, removed=False, updated=None)
                    )
                    result.created.append(target)
                elif mention.removed:
                    mention.removed = False
                    mention.interaction = interaction
                    mention.updated = now
                    result.revived.append(target)
                elif mention.interaction != interaction:
                    mention.interaction = interaction
                    mention.updated = now
                    result.updated.append(target)

            for target, mention in existing.items():
                if target not in wanted and not mention.removed:
                    mention.removed = True
                    mention.interaction = False
                    mention.updated = now
                    result.removed.append(target)

        logger.info(
            "Reconciled %s: created=%d revived=%d updated=%d removed=%d",
            url,
            len(result.created),
            len(result.revived),
            len(result.updated),
            len(result.removed),
        )
        return result

    async def get_entry(self, url: str) -> Optional[Entry]:
        """Get an entry with all of its mention rows."""
        async with self.db_service.session() as session:
            return await self._load_entry(session, url)

    async def _targets(self, url: str, include_removed: bool) -> list[str]:
        stmt = (
            select(Mention.url)
            .join(Entry, Mention.eid == Entry.id)
            .where(Entry.canonical_url == normalize_url(url))
            .order_by(Mention.url)
        )
        if not include_removed:
            stmt = stmt.where(Mention.removed == False)  # noqa: E712

        async with self.db_service.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def live_targets(self, url: str) -> list[str]:
        """Target URLs of the non-removed mentions of a source."""
        return await self._targets(url, include_removed=False)

    async def known_targets(self, url: str) -> list[str]:
        """Target URLs of every mention row of a source, tombstones included."""
        return await self._targets(url, include_removed=True)

    async def query_mentions(
        self,
        urls: Optional[list[str]] = None,
        paths: Optional[list[str]] = None,
        site: Optional[str] = None,
        sort: str = "asc",
    ) -> list[MentionMatch]:
        """Find entries mentioning any of the given targets.

        Args:
            urls: Exact target URLs.
            paths: Target URL prefixes.
            site: Target hostname, www. insensitive.
            sort: "asc" or "desc" by entry published time.

        All filters are OR-combined. Removed mentions never match.
        """
        conditions = [Mention.url == url for url in urls or []]
        conditions.extend(Mention.url.startswith(path, autoescape=True) for path in paths or [])

        if site:
            host = normalize_host(site)
            for scheme in ("http", "https"):
                for prefix in ("", "www."):
                    origin = f"{scheme}://{prefix}{host}"
                    conditions.append(Mention.url == origin)
                    conditions.append(Mention.url.startswith(f"{origin}/", autoescape=True))

        order = Entry.published.desc() if sort == "desc" else Entry.published.asc()
        stmt = (
            select(Entry, Mention.url)
            .join(Mention, Mention.eid == Entry.id)
            .where(Mention.removed == False)  # noqa: E712
            .order_by(order, Entry.url, Mention.url)
        )
        if conditions:
            stmt = stmt.where(or_(*conditions))

        async with self.db_service.session() as session:
            rows = (await session.execute(stmt)).all()

        matches: dict[str, MentionMatch] = {}
        for entry, target in rows:
            if entry.id not in matches:
                matches[entry.id] = MentionMatch(entry=entry, targets=[])
            matches[entry.id].targets.append(target)

        return list(matches.values())
