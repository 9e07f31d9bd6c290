"""Salmention relay: tell upstream parties about activity on their replies.

When a mention arrives for a reference document, the reference is fetched,
its own reply-to and person-tag links are followed one hop further, and each
upstream page that advertises a webmention endpoint is pinged with
``source=reference, target=upstream``. The chain stops there.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional
from urllib.parse import urljoin

from ..validation import is_http_url, normalize_url
from .extractor import ExtractedEntry
from .fetcher import DocumentFetcher, FetchedDocument, FetchError

if TYPE_CHECKING:
    from .resolver import ResolutionBatch, SourceResolver

logger = logging.getLogger(__name__)


def discover_endpoint(fetched: FetchedDocument, extracted: ExtractedEntry) -> Optional[str]:
    """Find the advertised webmention endpoint of a fetched page.

    An HTML <link>/<a> rel="webmention" wins over an HTTP Link header.
    """
    if extracted.endpoints:
        return extracted.endpoints[0]

    for link in fetched.links:
        rels = (link.get("rel") or "").lower().split()
        if "webmention" in rels and link.get("url") is not None:
            endpoint = urljoin(fetched.url, link["url"])
            if is_http_url(endpoint):
                return endpoint

    return None


class SalmentionPropagator:
    """Two-hop upstream relay of webmentions."""

    def __init__(self, resolver: "SourceResolver", fetcher: DocumentFetcher):
        self.resolver = resolver
        self.fetcher = fetcher

    async def propagate(self, reference: str, batch: "ResolutionBatch") -> None:
        """Relay a mention of ``reference`` to everything it replies to or tags."""
        document = await self.resolver.refresh_document(reference, role="reference")
        if document is None:
            return

        upstream = [
            url for url in document.extracted.upstream
            if normalize_url(url) != normalize_url(document.url)
        ]
        if not upstream:
            logger.debug("No upstream targets on %s", reference)
            return

        logger.info("Relaying salmention from %s to %d upstream target(s)", document.url, len(upstream))
        results = await asyncio.gather(
            *(self._relay(document.url, url, batch) for url in upstream),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Salmention relay from %s failed: %s", reference, result, exc_info=result)

    async def _relay(self, reference: str, upstream: str, batch: "ResolutionBatch") -> None:
        document = await self.resolver.refresh_document(upstream, role="upstream")
        if document is None:
            return

        endpoint = discover_endpoint(document.fetched, document.extracted)
        if endpoint is None:
            logger.info("No webmention endpoint advertised by %s", upstream)
            return

        if not batch.claim(reference, document.url):
            logger.debug("Already notified %s about %s", document.url, reference)
            return

        await self.send(endpoint, reference, document.url)

    async def send(self, endpoint: str, source: str, target: str) -> bool:
        """POST a webmention, any 2xx counts as delivered.

        Returns:
            True if delivered, False otherwise.
        """
        try:
            status = await self.fetcher.post_form(endpoint, {"source": source, "target": target})
        except FetchError as e:
            logger.warning("Webmention to %s (source=%s, target=%s) failed: %s", endpoint, source, target, e)
            return False

        logger.info("Sent webmention to %s (source=%s, target=%s): HTTP %d", endpoint, source, target, status)
        return True
