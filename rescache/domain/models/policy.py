"""Domain models for routing policy and request outcomes.

PolicyRule is the static classification of a request into a partition,
strategy, freshness window and fallback target. StrategyOutcome and
ResourceResult carry what happened to a request on its way back out.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .common import CacheKey, PartitionPurpose
from .resource import ResourceRequest, ResourceResponse


class Strategy(str, Enum):
    """Consistency policy governing whether cache or network is consulted first."""
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    NETWORK_ONLY = "network-only"


class ResourceKind(str, Enum):
    IMAGE = "image"
    API = "api"
    STATIC = "static"
    PAGE = "page"
    BYPASS = "bypass"


class Outcome(str, Enum):
    """Diagnostics classification of a single request."""
    HIT = "hit"
    MISS = "miss"
    DEGRADED = "degraded"
    FAILURE = "failure"


class ResponseSource(str, Enum):
    CACHE = "cache"
    NETWORK = "network"
    FALLBACK = "fallback"
    NONE = "none"


class ErrorKind(str, Enum):
    """Tags attached to results that did not come cleanly from the network."""
    NETWORK_UNAVAILABLE = "network_unavailable"
    NOT_FOUND = "not_found"
    STALE_SERVED_DUE_TO_OUTAGE = "stale_served_due_to_outage"
    UNCLASSIFIED = "unclassified"
    DECODE_FAILED = "decode_failed"


RequestMatcher = Callable[[ResourceRequest], bool]


@dataclass(frozen=True)
class AlternateEncoding:
    """Key/URL rewrite applied when the caller advertises a media type.

    e.g. AlternateEncoding('image/webp', 'format', 'webp') turns
    /uploads/a.jpg into /uploads/a.jpg?format=webp for webp-capable callers.
    """
    media_type: str
    param: str
    value: str

    def applies_to(self, request: ResourceRequest) -> bool:
        accept = request.header("accept") or ""
        return self.media_type in accept and not request.has_query_param(self.param)

    def rewrite(self, request: ResourceRequest) -> ResourceRequest:
        if not self.applies_to(request):
            return request
        return request.with_query_param(self.param, self.value)


@dataclass(frozen=True)
class PolicyRule:
    """Static, read-only routing rule."""
    name: str
    kind: ResourceKind
    matcher: RequestMatcher
    strategy: Strategy
    partition_purpose: Optional[PartitionPurpose] = None
    freshness_window: Optional[float] = None
    fallback_resource: Optional[str] = None
    alternate_encoding: Optional[AlternateEncoding] = None

    def matches(self, request: ResourceRequest) -> bool:
        return bool(self.matcher(request))


@dataclass(frozen=True)
class StrategyOutcome:
    """What a strategy executor produced for one request."""
    key: CacheKey
    outcome: Outcome
    source: ResponseSource
    response: Optional[ResourceResponse] = None
    error: Optional[ErrorKind] = None
    writeback: bool = False


@dataclass(frozen=True)
class ResourceResult:
    """Final, externally visible result of `respond`."""
    key: CacheKey
    rule_name: str
    outcome: Outcome
    source: ResponseSource
    response: Optional[ResourceResponse] = None
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.HIT, Outcome.MISS, Outcome.DEGRADED) and (
            self.response is not None and self.response.ok
        )

    @property
    def payload(self) -> bytes:
        return self.response.payload if self.response is not None else b""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "rule": self.rule_name,
            "outcome": self.outcome.value,
            "source": self.source.value,
            "status": self.response.status if self.response is not None else None,
            "error": self.error.value if self.error is not None else None,
        }


@dataclass(frozen=True)
class ValueResult:
    """Result of a decoded-value lookup through the ephemeral cache."""
    key: CacheKey
    outcome: Outcome
    value: Any = None
    error: Optional[ErrorKind] = None
    result: Optional[ResourceResult] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILURE
