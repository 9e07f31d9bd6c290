"""Remote document fetching over HTTP."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..config import FetcherConfig

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base class for fetch failures."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"{url}: {message}")


class NetworkError(FetchError):
    """Connection, protocol or redirect failure."""


class FetchTimeout(FetchError):
    """The remote server didn't answer within the deadline."""


class NonSuccessStatus(FetchError):
    """The remote server answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP {status_code}")


@dataclass
class FetchedDocument:
    """A successfully fetched remote resource."""

    url: str  # final URL after redirects
    status_code: int
    headers: dict[str, str]
    body: bytes
    encoding: Optional[str] = None
    links: list[dict[str, Any]] = field(default_factory=list)  # parsed Link header

    @property
    def text(self) -> str:
        """Body decoded with the declared charset, falling back to UTF-8."""
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class DocumentFetcher:
    """Fetch documents and post notifications with a shared httpx client."""

    def __init__(self, config: Optional[FetcherConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or FetcherConfig()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
        )

    async def close(self):
        """Close the HTTP client if we created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def fetch(self, url: str) -> FetchedDocument:
        """GET a document, following redirects.

        Raises:
            FetchTimeout: If the deadline was exceeded.
            NetworkError: On transport errors or too many redirects.
            NonSuccessStatus: If the final response isn't 2xx.
        """
        logger.debug("Fetching %s", url)

        try:
            async with self.client.stream("GET", url) as response:
                if not response.is_success:
                    raise NonSuccessStatus(url, response.status_code)

                chunks = []
                size = 0
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    size += len(chunk)
                    if size >= self.config.max_body_bytes:
                        logger.warning("Truncating %s at %d bytes", url, size)
                        break

                return FetchedDocument(
                    url=str(response.url),
                    status_code=response.status_code,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    body=b"".join(chunks)[: self.config.max_body_bytes],
                    encoding=response.charset_encoding,
                    links=list(response.links.values()),
                )

        except httpx.TimeoutException as e:
            raise FetchTimeout(url, f"timed out: {e}") from e
        except httpx.TooManyRedirects as e:
            raise NetworkError(url, "too many redirects") from e
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or e.__class__.__name__) from e

    async def post_form(self, url: str, data: dict[str, str]) -> int:
        """POST a form-encoded body and return the status code.

        Raises:
            FetchTimeout, NetworkError: As for fetch().
            NonSuccessStatus: If the response isn't 2xx.
        """
        logger.debug("Posting to %s: %s", url, data)

        try:
            response = await self.client.post(url, data=data)
        except httpx.TimeoutException as e:
            raise FetchTimeout(url, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or e.__class__.__name__) from e

        if not response.is_success:
            raise NonSuccessStatus(url, response.status_code)

        return response.status_code
