"""FastAPI application receiving webmentions and serving stored mentions."""

import json
import logging
from typing import Literal, Optional

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse

from .config import Config
from .rendering import entry_projection, example_mentions, render_mentions_html
from .services.broadcaster import LiveBroadcaster
from .services.mention_store import MentionStore
from .services.resolver import SourceResolver
from .validation import ValidationError, validate_ping

logger = logging.getLogger(__name__)


async def read_ping(request: Request) -> tuple[Optional[str], Optional[str]]:
    """Read source and target from a form or JSON body."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Invalid JSON payload: {e}")
        if not isinstance(payload, dict):
            raise ValidationError("JSON payload must be an object")
    else:
        payload = await request.form()

    return payload.get("source"), payload.get("target")


def create_app(
    config: Config,
    resolver: SourceResolver,
    store: MentionStore,
    broadcaster: LiveBroadcaster,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration
        resolver: Pipeline that handles accepted pings in the background
        store: Repository used by the read endpoints
        broadcaster: Live event fan-out

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Webmention Relay",
        description="Webmention receiver with salmention relay and live updates",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Rejected webmention: %s", exc.message)
        return JSONResponse({"error": exc.code, "detail": exc.message}, status_code=400)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "webmention-relay",
        }

    @app.post("/api/webmention")
    async def receive_webmention(
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> JSONResponse:
        """Accept a webmention.

        Validation happens synchronously, everything else runs in the
        background after the 202 has been sent.
        """
        source, target = await read_ping(request)
        ping = validate_ping(source, target)

        background_tasks.add_task(resolver.handle_ping, ping.source, ping.target)

        logger.info("Accepted webmention source=%s, target=%s", ping.source, ping.target)

        return JSONResponse(
            {"status": "accepted", "source": ping.source, "target": ping.target},
            status_code=202,
        )

    @app.get("/api/mentions")
    async def list_mentions(
        url: list[str] = Query(default=[]),
        path: list[str] = Query(default=[]),
        site: Optional[str] = None,
        sort: Literal["asc", "desc"] = "asc",
        format: Literal["json", "html"] = "json",
        example: bool = False,
    ):
        """List entries mentioning the requested targets.

        With ``example`` set, canned sample mentions are returned instead.
        """
        if example:
            mentions = example_mentions()
            if sort == "desc":
                mentions.reverse()
        else:
            matches = await store.query_mentions(urls=url, paths=path, site=site, sort=sort)
            mentions = [entry_projection(match.entry, match.targets) for match in matches]

        if format == "html":
            return HTMLResponse(render_mentions_html(mentions))
        return mentions

    @app.get("/api/mentions/live")
    async def live_mentions(site: Optional[str] = None) -> StreamingResponse:
        """Server-sent events for mentions created from now on."""
        subscription = broadcaster.subscribe(site)
        return StreamingResponse(
            broadcaster.stream(subscription, keepalive=config.live.keepalive_seconds),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app
