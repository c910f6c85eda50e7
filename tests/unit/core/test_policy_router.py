import pytest

from rescache.core.services.policy_router import (
    MatchAll,
    PathPrefix,
    PolicyRouter,
    default_page_rule,
)
from rescache.domain.exceptions import UnclassifiedRequestError
from rescache.domain.models.policy import PolicyRule, ResourceKind, Strategy
from rescache.domain.models.resource import ResourceRequest


@pytest.fixture
def router():
    return PolicyRouter()


@pytest.mark.parametrize("url,rule_name,strategy", [
    ("http://shop.test/uploads/products/a.jpg", "images", Strategy.CACHE_FIRST),
    ("http://shop.test/api/products?page=2", "api", Strategy.NETWORK_FIRST),
    ("http://shop.test/static/js/main.js", "static", Strategy.CACHE_FIRST),
    ("http://shop.test/catalog/shoes", "pages", Strategy.NETWORK_FIRST),
    ("http://shop.test/", "pages", Strategy.NETWORK_FIRST),
])
def test_default_classification(router, url, rule_name, strategy):
    rule = router.route(ResourceRequest(url=url))

    assert rule.name == rule_name
    assert rule.strategy is strategy


def test_non_get_requests_bypass_the_cache(router):
    rule = router.route(ResourceRequest(url="http://shop.test/api/orders", method="POST"))

    assert rule.kind is ResourceKind.BYPASS
    assert rule.strategy is Strategy.NETWORK_ONLY
    assert rule.partition_purpose is None


def test_default_freshness_windows(router):
    windows = {rule.name: rule.freshness_window for rule in router.rules}

    assert windows["images"] == 7 * 24 * 60 * 60
    assert windows["api"] == 5 * 60
    assert router.default_rule.freshness_window == 24 * 60 * 60


def test_image_rule_carries_placeholder_and_webp_encoding(router):
    rule = router.route(ResourceRequest(url="http://shop.test/uploads/a.jpg"))

    assert rule.fallback_resource == "/assets/default-product.svg"
    assert rule.alternate_encoding.media_type == "image/webp"


def test_page_rule_falls_back_to_root_only(router):
    assert router.default_rule.fallback_resource == "/"


def test_first_match_wins():
    broad = PolicyRule("broad", ResourceKind.STATIC, PathPrefix("/"), Strategy.CACHE_FIRST, "static")
    narrow = PolicyRule("narrow", ResourceKind.API, PathPrefix("/api/"), Strategy.NETWORK_FIRST, "api")
    router = PolicyRouter(rules=[broad, narrow])

    assert router.route(ResourceRequest(url="http://shop.test/api/x")).name == "broad"


def test_unmatched_requests_use_network_first_default():
    router = PolicyRouter(rules=[])

    rule = router.route(ResourceRequest(url="http://shop.test/uploads/a.jpg"))

    assert rule is router.default_rule
    assert rule.strategy is Strategy.NETWORK_FIRST


def test_cache_first_default_rule_rejected():
    rule = PolicyRule("bad", ResourceKind.STATIC, MatchAll(), Strategy.CACHE_FIRST, "static")
    with pytest.raises(ValueError):
        PolicyRouter(default_rule=rule)


def test_partition_purposes_in_declaration_order(router):
    assert router.partition_purposes == ["images", "api", "static", "pages"]


def test_custom_page_root():
    assert default_page_rule(page_root="/offline.html").fallback_resource == "/offline.html"


@pytest.mark.parametrize("request_", [
    ResourceRequest(url=""),
    ResourceRequest(url="   "),
    ResourceRequest(url="ftp://shop.test/file"),
    ResourceRequest(url="/relative/path"),
    ResourceRequest(url="http:///no-host"),
    ResourceRequest(url="http://shop.test:notaport/x"),
    ResourceRequest(url="http://shop.test/x", method="GE T"),
    ResourceRequest(url="http://shop.test/x", method=""),
])
def test_malformed_requests_are_unclassified(router, request_):
    with pytest.raises(UnclassifiedRequestError):
        router.route(request_)


def test_non_request_objects_are_unclassified(router):
    with pytest.raises(UnclassifiedRequestError):
        router.route({"url": "http://shop.test/"})
