"""Fallback Resolver: turns executor failures into user-visible results.

Successful and degraded outcomes pass through untouched. Failures are
resolved by rule kind: images degrade to a placeholder, pages to the single
configured root resource, API and bypass requests to a 503 JSON body, and
static assets to a 404.
"""

import json
import logging
from typing import Iterable, Optional
from urllib.parse import urljoin

# Domain Layer Imports
from rescache.domain.interfaces.cache import PartitionHandle, PartitionStore
from rescache.domain.models.policy import (
    ErrorKind,
    Outcome,
    PolicyRule,
    ResourceKind,
    ResourceResult,
    ResponseSource,
    StrategyOutcome,
)
from rescache.domain.models.resource import CacheRecord, ResourceRequest, ResourceResponse

logger = logging.getLogger(__name__)

STATUS_METADATA = "x-rescache-status"

PLACEHOLDER_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="200" height="200" viewBox="0 0 200 200">'
    b'<rect width="200" height="200" fill="#f3f4f6"/>'
    b'<path d="M70 80h60v50H70z" fill="none" stroke="#9ca3af" stroke-width="4"/>'
    b'<circle cx="88" cy="96" r="6" fill="#9ca3af"/>'
    b'<text x="100" y="160" font-family="sans-serif" font-size="12" text-anchor="middle" '
    b'fill="#6b7280">Image unavailable</text></svg>'
)
UNAVAILABLE_BODY = json.dumps({"error": "Network unavailable"}).encode("utf-8")
OFFLINE_PAGE_BODY = b"Offline - Page not available"
NOT_FOUND_BODY = b"Asset not available"


def unavailable_response() -> ResourceResponse:
    return ResourceResponse(
        status=503,
        payload=UNAVAILABLE_BODY,
        metadata={"content-type": "application/json", STATUS_METADATA: "unavailable"},
    )


class FallbackResolver:
    """Resolves FAILURE outcomes according to the rule's fallback target."""

    def __init__(self, store: PartitionStore):
        self.store = store

    def resolve(
        self,
        request: ResourceRequest,
        rule: PolicyRule,
        outcome: StrategyOutcome,
        search: Iterable[Optional[PartitionHandle]] = (),
    ) -> ResourceResult:
        """Builds the final result for one request.

        Args:
            request: The request as routed.
            rule: The rule that governed it.
            outcome: What the executor produced.
            search: Partitions to look up the fallback resource in, in order.
        """
        if outcome.outcome is not Outcome.FAILURE:
            return ResourceResult(
                key=outcome.key,
                rule_name=rule.name,
                outcome=outcome.outcome,
                source=outcome.source,
                response=outcome.response,
                error=outcome.error,
            )

        handles = [h for h in search if h is not None]
        if rule.kind is ResourceKind.IMAGE:
            return self._image_placeholder(request, rule, outcome, handles)
        if rule.kind is ResourceKind.PAGE:
            return self._page_root(request, rule, outcome, handles)
        if rule.kind in (ResourceKind.API, ResourceKind.BYPASS):
            return self._failure(rule, outcome, unavailable_response(), ErrorKind.NETWORK_UNAVAILABLE)
        return self._not_found(rule, outcome)

    # --- Per-kind Resolution ---

    def _image_placeholder(self, request, rule, outcome, handles) -> ResourceResult:
        if not rule.fallback_resource:
            return self._failure(rule, outcome, unavailable_response(), ErrorKind.NETWORK_UNAVAILABLE)
        record = self._find(request, rule.fallback_resource, handles)
        if record is not None:
            response = record.payload.with_metadata(x_rescache_status="fallback")
        else:
            logger.debug(f"No cached placeholder for {outcome.key}; using built-in image")
            response = ResourceResponse(
                status=200,
                payload=PLACEHOLDER_SVG,
                metadata={"content-type": "image/svg+xml", STATUS_METADATA: "fallback"},
            )
        return self._degraded(rule, outcome, response)

    def _page_root(self, request, rule, outcome, handles) -> ResourceResult:
        record = self._find(request, rule.fallback_resource, handles)
        if record is None:
            response = ResourceResponse(
                status=503,
                payload=OFFLINE_PAGE_BODY,
                metadata={"content-type": "text/plain", STATUS_METADATA: "unavailable"},
            )
            return self._failure(rule, outcome, response, ErrorKind.NETWORK_UNAVAILABLE)
        return self._degraded(rule, outcome, record.payload.with_metadata(x_rescache_status="fallback"))

    def _not_found(self, rule, outcome) -> ResourceResult:
        response = ResourceResponse(
            status=404,
            payload=NOT_FOUND_BODY,
            metadata={"content-type": "text/plain", STATUS_METADATA: "not-found"},
        )
        return self._failure(rule, outcome, response, ErrorKind.NOT_FOUND)

    # --- Helpers ---

    def _find(self, request, resource: Optional[str], handles) -> Optional[CacheRecord]:
        """Looks the fallback resource up, resolved against the request's origin."""
        if not resource:
            return None
        key = ResourceRequest(url=urljoin(request.url, resource)).cache_key
        for handle in handles:
            record = self.store.get(handle, key)
            if record is not None:
                logger.info(f"Fallback {key} served from {handle.name}")
                return record
        return None

    @staticmethod
    def _degraded(rule, outcome, response) -> ResourceResult:
        return ResourceResult(
            key=outcome.key,
            rule_name=rule.name,
            outcome=Outcome.DEGRADED,
            source=ResponseSource.FALLBACK,
            response=response,
            error=outcome.error,
        )

    @staticmethod
    def _failure(rule, outcome, response, error) -> ResourceResult:
        return ResourceResult(
            key=outcome.key,
            rule_name=rule.name,
            outcome=Outcome.FAILURE,
            source=ResponseSource.NONE,
            response=response,
            error=error,
        )
