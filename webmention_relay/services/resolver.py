"""Asynchronous resolution of accepted webmentions.

Each accepted ping runs fetch -> extract -> reconcile for its source, then
fans out to comment pages, response collections and salmention hops. All
documents sharing a URL are resolved one at a time.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..orm import Entry
from ..validation import normalize_url, strip_fragment
from .extractor import ExtractedEntry, MentionExtractor
from .fetcher import DocumentFetcher, FetchedDocument, FetchError
from .mention_store import MentionStore
from .salmention import SalmentionPropagator

logger = logging.getLogger(__name__)


class KeyedLock:
    """Per-key mutual exclusion, waiters served in arrival order."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = defaultdict(int)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]


@dataclass
class ResolutionBatch:
    """Shared state of all work spawned by one inbound ping."""

    source: str
    target: str
    sent: set[tuple[str, str]] = field(default_factory=set)

    def claim(self, source: str, target: str) -> bool:
        """Reserve an outbound notification, False if already sent in this batch."""
        key = (normalize_url(source), normalize_url(target))
        if key in self.sent:
            return False
        self.sent.add(key)
        return True


@dataclass
class ResolvedDocument:
    """A document that was fetched, parsed and stored."""

    url: str
    role: str  # source, comment, reference or upstream
    entry: Entry
    extracted: ExtractedEntry
    fetched: FetchedDocument
    created: list[str] = field(default_factory=list)


Listener = Callable[[ResolvedDocument], Awaitable[None]]


class SourceResolver:
    """Drives the resolution pipeline for accepted pings."""

    def __init__(
        self,
        store: MentionStore,
        fetcher: DocumentFetcher,
        extractor: Optional[MentionExtractor] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.extractor = extractor or MentionExtractor()
        self.locks = KeyedLock()
        self.propagator = SalmentionPropagator(self, fetcher)
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        """Register a coroutine called once per resolved document."""
        self._listeners.append(listener)

    async def handle_ping(self, source: str, target: str) -> None:
        """Background entry point for an accepted ping. Never raises."""
        batch = ResolutionBatch(source=source, target=target)
        logger.info("Resolving webmention: source=%s, target=%s", source, target)

        try:
            document = await self.resolve(source, target, batch)
        except Exception as e:
            logger.error("Error resolving webmention from %s: %s", source, e, exc_info=True)
            return

        if document is None:
            logger.info("Webmention from %s failed, stored data left untouched", source)
        else:
            logger.info("Webmention from %s resolved", source)

    async def resolve(
        self,
        source: str,
        target: str,
        batch: ResolutionBatch,
        parent: Optional[str] = None,
    ) -> Optional[ResolvedDocument]:
        """Resolve a source and run its follow-up work.

        Args:
            source: Document claiming the link.
            target: Document being linked to.
            batch: Shared state of the originating ping.
            parent: Set when the source is a comment on another entry; comments
                don't fan out further.

        Returns:
            The resolved document, or None if fetching failed.
        """
        document = await self._resolve_source(source, target, role="comment" if parent else "source")
        if document is None:
            return None

        extracted = document.extracted
        jobs = []

        if parent is None:
            jobs.extend(
                self.resolve(comment, document.url, batch, parent=document.url)
                for comment in extracted.comments
                if normalize_url(comment) != normalize_url(document.url)
            )
            jobs.extend(
                self._resolve_responses(responses, document.url, batch)
                for responses in extracted.responses
            )
            references = [target] + [
                tag for tag in extracted.person_tags if normalize_url(tag) != normalize_url(target)
            ]
            jobs.extend(self.propagator.propagate(reference, batch) for reference in references)
        else:
            # A new comment is news for everyone the parent replied to
            for reference in await self.store.live_targets(parent):
                jobs.append(self.propagator.propagate(reference, batch))

        await self._gather(jobs)
        return document

    async def refresh_document(self, url: str, role: str) -> Optional[ResolvedDocument]:
        """Fetch, parse and store a document without touching its mentions."""
        url = strip_fragment(url)

        async with self.locks.hold(normalize_url(url)):
            fetched = await self._fetch(url)
            if fetched is None:
                return None

            extracted = self.extractor.extract(fetched.text, fetched.url)
            entry = await self.store.upsert_entry(url, extracted)

        document = ResolvedDocument(url=url, role=role, entry=entry, extracted=extracted, fetched=fetched)
        await self._notify(document)
        return document

    async def _resolve_source(self, source: str, target: str, role: str) -> Optional[ResolvedDocument]:
        source = strip_fragment(source)
        target = strip_fragment(target)

        async with self.locks.hold(normalize_url(source)):
            fetched = await self._fetch(source)
            if fetched is None:
                return None

            logger.debug("%s: extracting", source)
            extracted = self.extractor.extract(fetched.text, fetched.url)

            logger.debug("%s: reconciling", source)
            # Tombstoned targets linked again are revived, the pinged target
            # keeps the spelling it was first stored under
            pinged = target
            targets = []
            for known in await self.store.known_targets(source):
                if normalize_url(known) == normalize_url(target):
                    pinged = known
                elif extracted.links_to(known):
                    targets.append((known, extracted.interaction_kind(known)))
            targets.append((pinged, extracted.interaction_kind(pinged)))
            result = await self.store.reconcile_mentions(source, extracted, targets)

        document = ResolvedDocument(
            url=source,
            role=role,
            entry=result.entry,
            extracted=extracted,
            fetched=fetched,
            created=result.created,
        )
        await self._notify(document)
        return document

    async def _resolve_responses(self, url: str, parent: str, batch: ResolutionBatch) -> None:
        """Resolve every entry listed on a responses page as a comment of the parent."""
        fetched = await self._fetch(url)
        if fetched is None:
            return

        extracted = self.extractor.extract(fetched.text, fetched.url)
        skip = {normalize_url(url), normalize_url(parent)}
        comments = []
        for comment in extracted.entry_urls + extracted.comments:
            if normalize_url(comment) not in skip:
                skip.add(normalize_url(comment))
                comments.append(comment)

        logger.info("Found %d response(s) on %s", len(comments), url)
        await self._gather([self.resolve(comment, parent, batch, parent=parent) for comment in comments])

    async def _fetch(self, url: str) -> Optional[FetchedDocument]:
        logger.debug("%s: fetching", url)
        try:
            return await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning("Failed to fetch %s: %s", url, e)
            return None

    async def _notify(self, document: ResolvedDocument) -> None:
        for listener in self._listeners:
            try:
                await listener(document)
            except Exception as e:
                logger.error("Completion listener failed for %s: %s", document.url, e, exc_info=True)

    async def _gather(self, jobs: list[Awaitable]) -> None:
        if not jobs:
            return
        results = await asyncio.gather(*jobs, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Follow-up resolution failed: %s", result, exc_info=result)
