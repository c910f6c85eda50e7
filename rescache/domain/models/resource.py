"""Domain models for resource requests, responses and durable cache records.

A ResourceResponse is a tagged record (payload bytes, string metadata, the
time it was stored) rather than a loose bag of attributes, so the same
shape travels from the transport, through the partition store, to callers.
"""

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .common import CacheKey, PartitionName

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Returns the canonical form of an absolute URL.

    Lowercases scheme and host, drops default ports, userinfo and the
    fragment, sorts query parameters and turns an empty path into '/'.

    Raises:
        ValueError: If the port component is not a valid integer.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port  # ValueError on junk ports
    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    path = parts.path or "/"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


@dataclass(frozen=True)
class ResourceRequest:
    """A resource request descriptor: method + URL + optional capability headers."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Header names are case-insensitive; store them lowercased
        object.__setattr__(
            self, "headers", {str(k).lower(): str(v) for k, v in (self.headers or {}).items()}
        )

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def cache_key(self) -> CacheKey:
        """Canonical resource identity used as the partition key."""
        return CacheKey(f"{self.method.upper()} {normalize_url(self.url)}")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def has_query_param(self, name: str) -> bool:
        return any(k == name for k, _ in parse_qsl(urlsplit(self.url).query, keep_blank_values=True))

    def with_query_param(self, name: str, value: str) -> "ResourceRequest":
        """Returns a copy of the request with an extra query parameter."""
        parts = urlsplit(self.url)
        params = parse_qsl(parts.query, keep_blank_values=True)
        params.append((name, value))
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))
        return replace(self, url=url)


@dataclass(frozen=True)
class ResourceResponse:
    """Tagged response record: payload, string metadata and storage time."""
    status: int
    payload: bytes = b""
    metadata: Dict[str, str] = field(default_factory=dict)
    stored_at: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "metadata", {str(k).lower(): str(v) for k, v in (self.metadata or {}).items()}
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> Optional[str]:
        return self.metadata.get("content-type")

    def text(self, encoding: str = "utf-8") -> str:
        return self.payload.decode(encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.payload)

    def with_metadata(self, **extra: str) -> "ResourceResponse":
        """Returns a copy with additional metadata entries (underscores become dashes)."""
        merged = dict(self.metadata)
        merged.update({k.replace("_", "-"): v for k, v in extra.items()})
        return replace(self, metadata=merged)

    def stamped(self, stored_at: float) -> "ResourceResponse":
        return replace(self, stored_at=stored_at)


@dataclass(frozen=True)
class CacheRecord:
    """A durable request->response record kept in a partition."""
    key: CacheKey
    payload: ResourceResponse
    stored_at: float
    freshness_window: Optional[float]
    source_strategy: str

    def age(self, now: Optional[float] = None) -> float:
        now = time.time() if now is None else now
        return max(0.0, now - self.stored_at)

    def is_fresh(self, now: Optional[float] = None) -> bool:
        """True while `now - stored_at < freshness_window` (None never goes stale)."""
        if self.freshness_window is None:
            return True
        now = time.time() if now is None else now
        return now - self.stored_at < self.freshness_window


@dataclass(frozen=True)
class Partition:
    """A named, versioned durable cache bucket."""
    name: PartitionName
    version: int
    created_at: float
