"""URL validation and normalization for inbound pings."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urldefrag, urlsplit


class ValidationError(Exception):
    """A ping was rejected before being accepted."""

    code = "invalid_request"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidURL(ValidationError):
    """Source or target is not an absolute http(s) URL."""

    code = "invalid_url"


class EquivalentEndpoints(ValidationError):
    """Source and target point at the same document."""

    code = "equivalent_endpoints"


@dataclass(frozen=True)
class Ping:
    """A validated (source, target) pair."""

    source: str
    target: str


def is_http_url(value: Optional[str]) -> bool:
    """Check if a value is an absolute http(s) URL with a host."""
    if not value or not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def normalize_host(host: Optional[str]) -> str:
    """Lowercase a hostname and strip a leading www. label."""
    host = (host or "").strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def strip_fragment(url: str) -> str:
    """Return the URL without its #fragment."""
    return urldefrag(url.strip())[0]


def normalize_url(url: str) -> str:
    """Comparable form of a URL.

    The fragment is dropped, http and https are treated alike, a leading
    www. is ignored and a trailing slash on the path does not matter.
    """
    parts = urlsplit(strip_fragment(url))
    host = normalize_host(parts.hostname)
    if parts.port and parts.port not in (80, 443):
        host = f"{host}:{parts.port}"
    path = parts.path.rstrip("/")
    normalized = f"//{host}{path}"
    if parts.query:
        normalized += f"?{parts.query}"
    return normalized


def host_of(url: str) -> str:
    """Normalized host of a URL, empty string if there is none."""
    try:
        return normalize_host(urlsplit(url).hostname)
    except ValueError:
        return ""


def validate_ping(source: Optional[str], target: Optional[str]) -> Ping:
    """Validate an inbound webmention.

    Raises:
        InvalidURL: If either URL isn't an absolute http(s) URL.
        EquivalentEndpoints: If both normalize to the same document.
    """
    if not is_http_url(source):
        raise InvalidURL(f"Invalid source URL: {source!r}")
    if not is_http_url(target):
        raise InvalidURL(f"Invalid target URL: {target!r}")

    source = source.strip()
    target = target.strip()

    if normalize_url(source) == normalize_url(target):
        raise EquivalentEndpoints("Source and target URLs are equivalent")

    return Ping(source=source, target=target)
