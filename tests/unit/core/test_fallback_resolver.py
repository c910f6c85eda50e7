import json
from dataclasses import replace

import pytest

from rescache.core.services.fallback_resolver import PLACEHOLDER_SVG, FallbackResolver
from rescache.core.services.policy_router import PolicyRouter
from rescache.domain.models.common import CacheKey, PartitionName
from rescache.domain.models.policy import ErrorKind, Outcome, ResponseSource, StrategyOutcome
from rescache.domain.models.resource import CacheRecord, ResourceRequest, ResourceResponse


@pytest.fixture
def rules():
    router = PolicyRouter()
    return {rule.name: rule for rule in router.rules + (router.default_rule,)}


@pytest.fixture
def static(store):
    return store.open(PartitionName("static-v1"), 1)


@pytest.fixture
def resolver(store):
    return FallbackResolver(store)


def failure(url: str) -> StrategyOutcome:
    return StrategyOutcome(
        key=ResourceRequest(url=url).cache_key,
        outcome=Outcome.FAILURE,
        source=ResponseSource.NONE,
        error=ErrorKind.NETWORK_UNAVAILABLE,
    )


def seed(store, handle, url: str, payload: bytes, content_type: str, stored_at: float) -> None:
    key = ResourceRequest(url=url).cache_key
    store.put(handle, key, CacheRecord(
        key=key,
        payload=ResourceResponse(status=200, payload=payload, metadata={"content-type": content_type}),
        stored_at=stored_at,
        freshness_window=None,
        source_strategy="precache",
    ))


def test_success_passes_through_unchanged(resolver, rules):
    response = ResourceResponse(status=200, payload=b"fine")
    outcome = StrategyOutcome(
        key=CacheKey("GET http://shop.test/api/x"),
        outcome=Outcome.MISS,
        source=ResponseSource.NETWORK,
        response=response,
    )

    result = resolver.resolve(ResourceRequest(url="http://shop.test/api/x"), rules["api"], outcome)

    assert result.outcome is Outcome.MISS
    assert result.response is response
    assert result.rule_name == "api"


def test_image_failure_uses_cached_placeholder(resolver, rules, store, static, clock):
    seed(store, static, "http://shop.test/assets/default-product.svg", b"<svg>cached</svg>", "image/svg+xml", clock.now)
    url = "http://shop.test/uploads/gone.jpg"

    result = resolver.resolve(ResourceRequest(url=url), rules["images"], failure(url), search=[static])

    assert result.outcome is Outcome.DEGRADED
    assert result.source is ResponseSource.FALLBACK
    assert result.payload == b"<svg>cached</svg>"
    assert result.error is ErrorKind.NETWORK_UNAVAILABLE
    assert result.key == ResourceRequest(url=url).cache_key


def test_image_failure_without_cached_placeholder_uses_builtin(resolver, rules, static):
    url = "http://shop.test/uploads/gone.jpg"

    result = resolver.resolve(ResourceRequest(url=url), rules["images"], failure(url), search=[static])

    assert result.outcome is Outcome.DEGRADED
    assert result.payload == PLACEHOLDER_SVG
    assert result.response.content_type == "image/svg+xml"
    assert result.ok


def test_image_failure_without_configured_placeholder_is_failure(resolver, rules, static):
    rule = replace(rules["images"], fallback_resource=None)
    url = "http://shop.test/uploads/gone.jpg"

    result = resolver.resolve(ResourceRequest(url=url), rule, failure(url), search=[static])

    assert result.outcome is Outcome.FAILURE
    assert result.source is ResponseSource.NONE
    assert result.error is ErrorKind.NETWORK_UNAVAILABLE
    assert result.response.status == 503
    assert PLACEHOLDER_SVG not in result.payload


def test_page_failure_serves_cached_root(resolver, rules, store, static, clock):
    seed(store, static, "http://shop.test/", b"<html>home</html>", "text/html", clock.now)
    url = "http://shop.test/catalog/shoes"

    result = resolver.resolve(ResourceRequest(url=url), rules["pages"], failure(url), search=[static])

    assert result.outcome is Outcome.DEGRADED
    assert result.payload == b"<html>home</html>"
    assert result.response.metadata["x-rescache-status"] == "fallback"


def test_page_failure_ignores_other_cached_pages(resolver, rules, store, static, clock):
    seed(store, static, "http://shop.test/about", b"<html>about</html>", "text/html", clock.now)
    url = "http://shop.test/catalog/shoes"

    result = resolver.resolve(ResourceRequest(url=url), rules["pages"], failure(url), search=[static])

    assert result.outcome is Outcome.FAILURE
    assert result.response.status == 503
    assert result.error is ErrorKind.NETWORK_UNAVAILABLE


def test_api_failure_is_structured_503(resolver, rules):
    url = "http://shop.test/api/products"

    result = resolver.resolve(ResourceRequest(url=url), rules["api"], failure(url))

    assert result.outcome is Outcome.FAILURE
    assert result.response.status == 503
    assert json.loads(result.payload) == {"error": "Network unavailable"}
    assert result.response.metadata["x-rescache-status"] == "unavailable"
    assert not result.ok


def test_bypass_failure_never_gets_placeholder(resolver, rules, store, static, clock):
    seed(store, static, "http://shop.test/assets/default-product.svg", b"<svg/>", "image/svg+xml", clock.now)
    request = ResourceRequest(url="http://shop.test/uploads/a.jpg", method="POST")

    result = resolver.resolve(request, rules["bypass"], failure(request.url), search=[static])

    assert result.response.status == 503
    assert result.source is ResponseSource.NONE


def test_static_failure_is_not_found(resolver, rules):
    url = "http://shop.test/static/app.js"

    result = resolver.resolve(ResourceRequest(url=url), rules["static"], failure(url))

    assert result.outcome is Outcome.FAILURE
    assert result.error is ErrorKind.NOT_FOUND
    assert result.response.status == 404
    assert result.payload == b"Asset not available"
