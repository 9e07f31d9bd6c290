"""Shared fixtures: temporary database, fake web and wired-up services."""

from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from webmention_relay.config import FetcherConfig
from webmention_relay.services import (
    DatabaseService,
    DocumentFetcher,
    LiveBroadcaster,
    MentionStore,
    SourceResolver,
)


class FakeWeb:
    """Routes httpx requests to canned responses and records them.

    Each route holds a list of responses served in order; the last one is
    repeated. Unknown URLs fail like an unreachable host.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def page(self, url: str, *bodies: str, status: int = 200, headers: dict | None = None):
        responses = [httpx.Response(status, html=body, headers=headers) for body in bodies]
        self.routes.setdefault(("GET", url), []).extend(responses)

    def endpoint(self, url: str, status: int = 202):
        self.routes.setdefault(("POST", url), []).append(httpx.Response(status))

    def add(self, method: str, url: str, response: httpx.Response):
        self.routes.setdefault((method, url), []).append(response)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, str(request.url)))
        if not queue:
            raise httpx.ConnectError(f"No route to {request.url}", request=request)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def count(self, method: str, url: str) -> int:
        return sum(1 for r in self.requests if r.method == method and str(r.url) == url)

    def posts(self, url: str) -> list[dict[str, str]]:
        return [
            {key: values[0] for key, values in parse_qs(r.content.decode()).items()}
            for r in self.requests
            if r.method == "POST" and str(r.url) == url
        ]


async def count_rows(db_service: DatabaseService, model) -> int:
    return await db_service.count(model)


@pytest.fixture
def web():
    return FakeWeb()


@pytest_asyncio.fixture
async def db_service(tmp_path):
    service = DatabaseService(tmp_path / "mentions.db")
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def store(db_service):
    return MentionStore(db_service)


@pytest_asyncio.fixture
async def fetcher(web):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(web.handler),
        follow_redirects=True,
        max_redirects=3,
    )
    yield DocumentFetcher(FetcherConfig(max_redirects=3), client=client)
    await client.aclose()


@pytest.fixture
def broadcaster():
    return LiveBroadcaster(queue_size=10)


@pytest.fixture
def completions():
    return []


@pytest.fixture
def resolver(store, fetcher, broadcaster, completions):
    resolver = SourceResolver(store, fetcher)

    async def record(document):
        completions.append(document)

    resolver.add_listener(record)
    resolver.add_listener(broadcaster.on_resolved)
    return resolver
