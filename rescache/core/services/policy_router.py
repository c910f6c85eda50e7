"""Policy Router: classifies each request into a PolicyRule.

Classification is pattern-based over the resource path and evaluated
first-match-wins in declaration order. Anything that no rule matches falls
through to a deterministic network-first default. Malformed descriptors are
rejected here, before any strategy runs.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

# Domain Layer Imports
from rescache.domain.exceptions import UnclassifiedRequestError
from rescache.domain.models.common import (
    PURPOSE_API,
    PURPOSE_IMAGES,
    PURPOSE_PAGES,
    PURPOSE_STATIC,
)
from rescache.domain.models.policy import (
    AlternateEncoding,
    PolicyRule,
    ResourceKind,
    Strategy,
)
from rescache.domain.models.resource import ResourceRequest, normalize_url

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")

# Default freshness windows (seconds)
IMAGE_FRESHNESS_SECONDS = 7 * 24 * 60 * 60
API_FRESHNESS_SECONDS = 5 * 60
STATIC_FRESHNESS_SECONDS = 30 * 24 * 60 * 60
PAGE_FRESHNESS_SECONDS = 24 * 60 * 60

DEFAULT_IMAGE_PLACEHOLDER = "/assets/default-product.svg"
DEFAULT_PAGE_ROOT = "/"
WEBP_ENCODING = AlternateEncoding(media_type="image/webp", param="format", value="webp")


# --- Matchers ---

@dataclass(frozen=True)
class PathPrefix:
    prefix: str

    def __call__(self, request: ResourceRequest) -> bool:
        return request.path.startswith(self.prefix)


@dataclass(frozen=True)
class MethodIsNot:
    method: str

    def __call__(self, request: ResourceRequest) -> bool:
        return request.method.upper() != self.method.upper()


@dataclass(frozen=True)
class MatchAll:
    def __call__(self, request: ResourceRequest) -> bool:
        return True


# --- Rule Sets ---

def default_rules(
    image_freshness: Optional[float] = IMAGE_FRESHNESS_SECONDS,
    api_freshness: Optional[float] = API_FRESHNESS_SECONDS,
    static_freshness: Optional[float] = STATIC_FRESHNESS_SECONDS,
    image_placeholder: str = DEFAULT_IMAGE_PLACEHOLDER,
) -> List[PolicyRule]:
    """The four observed buckets, preceded by the non-GET bypass."""
    return [
        PolicyRule(
            name="bypass",
            kind=ResourceKind.BYPASS,
            matcher=MethodIsNot("GET"),
            strategy=Strategy.NETWORK_ONLY,
        ),
        PolicyRule(
            name="images",
            kind=ResourceKind.IMAGE,
            matcher=PathPrefix("/uploads/"),
            strategy=Strategy.CACHE_FIRST,
            partition_purpose=PURPOSE_IMAGES,
            freshness_window=image_freshness,
            fallback_resource=image_placeholder,
            alternate_encoding=WEBP_ENCODING,
        ),
        PolicyRule(
            name="api",
            kind=ResourceKind.API,
            matcher=PathPrefix("/api/"),
            strategy=Strategy.NETWORK_FIRST,
            partition_purpose=PURPOSE_API,
            freshness_window=api_freshness,
        ),
        PolicyRule(
            name="static",
            kind=ResourceKind.STATIC,
            matcher=PathPrefix("/static/"),
            strategy=Strategy.CACHE_FIRST,
            partition_purpose=PURPOSE_STATIC,
            freshness_window=static_freshness,
        ),
    ]


def default_page_rule(
    page_freshness: Optional[float] = PAGE_FRESHNESS_SECONDS,
    page_root: str = DEFAULT_PAGE_ROOT,
) -> PolicyRule:
    """Network-first catch-all; its only cached fallback is the root resource."""
    return PolicyRule(
        name="pages",
        kind=ResourceKind.PAGE,
        matcher=MatchAll(),
        strategy=Strategy.NETWORK_FIRST,
        partition_purpose=PURPOSE_PAGES,
        freshness_window=page_freshness,
        fallback_resource=page_root,
    )


class PolicyRouter:
    """Selects the PolicyRule governing a request."""

    def __init__(
        self,
        rules: Optional[Iterable[PolicyRule]] = None,
        default_rule: Optional[PolicyRule] = None,
    ):
        """Initializes the router.

        Args:
            rules: Ordered rules; the first match wins.
            default_rule: Rule used when nothing matches (network-first pages by default).
        """
        self.rules: Tuple[PolicyRule, ...] = tuple(default_rules() if rules is None else rules)
        self.default_rule = default_rule or default_page_rule()
        if self.default_rule.strategy is Strategy.CACHE_FIRST:
            raise ValueError("The default rule must not be cache-first")
        logger.info(
            f"PolicyRouter initialized with rules: {[r.name for r in self.rules]} "
            f"(default: {self.default_rule.name})"
        )

    @property
    def partition_purposes(self) -> List[str]:
        """Every partition purpose referenced by the rule set, in declaration order."""
        purposes: List[str] = []
        for rule in self.rules + (self.default_rule,):
            if rule.partition_purpose and rule.partition_purpose not in purposes:
                purposes.append(rule.partition_purpose)
        return purposes

    def route(self, request: ResourceRequest) -> PolicyRule:
        """Classifies a request.

        Raises:
            UnclassifiedRequestError: If the request descriptor is malformed.
        """
        self.validate(request)
        for rule in self.rules:
            if rule.matches(request):
                logger.debug(f"Routed {request.method} {request.url} -> {rule.name}")
                return rule
        logger.debug(f"Routed {request.method} {request.url} -> {self.default_rule.name} (default)")
        return self.default_rule

    @staticmethod
    def validate(request: ResourceRequest) -> None:
        if not isinstance(request, ResourceRequest):
            raise UnclassifiedRequestError(f"Not a ResourceRequest: {type(request).__name__}")
        if not isinstance(request.url, str) or not request.url.strip():
            raise UnclassifiedRequestError("Request URL is empty")
        if not isinstance(request.method, str) or not request.method.isalpha():
            raise UnclassifiedRequestError(f"Invalid request method: {request.method!r}")
        parts = urlsplit(request.url.strip())
        if parts.scheme.lower() not in SUPPORTED_SCHEMES:
            raise UnclassifiedRequestError(f"Unsupported URL scheme in {request.url!r}")
        if not parts.hostname:
            raise UnclassifiedRequestError(f"Request URL has no host: {request.url!r}")
        try:
            normalize_url(request.url)
        except ValueError as e:
            raise UnclassifiedRequestError(f"Malformed request URL {request.url!r}: {e}") from e
