import pytest

from rescache.core.services.lifecycle_manager import LifecycleManager
from rescache.domain.events.cache_events import PartitionsActivated
from rescache.domain.exceptions import LifecycleError
from rescache.domain.models.common import PartitionName
from rescache.domain.models.resource import ResourceRequest

ORIGIN = "http://shop.test"
PRECACHE = ["/", "/assets/default-product.svg", "/manifest.json"]


@pytest.fixture
def manager(store, transport, events, clock):
    return LifecycleManager(
        store, transport=transport, origin=ORIGIN, precache_urls=PRECACHE, events=events, clock=clock
    )


@pytest.fixture
def online(transport):
    transport.serve(ORIGIN + "/", b"<html>home</html>", content_type="text/html")
    transport.serve(ORIGIN + "/assets/default-product.svg", b"<svg/>", content_type="image/svg+xml")
    transport.serve(ORIGIN + "/manifest.json", b"{}", content_type="application/json")
    return transport


def names(store):
    return [p.name for p in store.list_partitions()]


@pytest.mark.asyncio
async def test_activate_creates_one_partition_per_purpose(manager, store, online):
    report = await manager.activate(1)

    assert report.partitions == ["images-v1", "api-v1", "static-v1", "pages-v1"]
    assert names(store) == ["api-v1", "images-v1", "pages-v1", "static-v1"]
    assert manager.active_version == 1
    assert manager.active_handle("images").name == "images-v1"


@pytest.mark.asyncio
async def test_activate_precaches_into_static_partition(manager, store, online):
    report = await manager.activate(1)

    assert report.precached == 3
    assert report.precache_failures == 0
    static = manager.active_handle("static")
    record = store.get(static, ResourceRequest(url=ORIGIN + "/").cache_key)
    assert record.payload.payload == b"<html>home</html>"
    assert record.source_strategy == "precache"


@pytest.mark.asyncio
async def test_precache_failures_do_not_block_activation(manager, transport):
    transport.offline = True

    report = await manager.activate(1)

    assert manager.active_version == 1
    assert report.precached == 0
    assert report.precache_failures == 3


@pytest.mark.asyncio
async def test_upgrade_deletes_previous_version(manager, store, online, events):
    activated = []
    events.subscribe(lambda e: activated.append(e) if isinstance(e, PartitionsActivated) else None)
    await manager.activate(1)
    old_images = manager.active_handle("images")

    report = await manager.activate(2)

    assert sorted(report.deleted) == ["api-v1", "images-v1", "pages-v1", "static-v1"]
    assert names(store) == ["api-v2", "images-v2", "pages-v2", "static-v2"]
    assert old_images.closed
    assert store.get(old_images, ResourceRequest(url=ORIGIN + "/uploads/a.jpg").cache_key) is None
    assert [e.version for e in activated] == [1, 2]


@pytest.mark.asyncio
async def test_reactivating_same_version_is_idempotent(manager, store, online):
    await manager.activate(1)
    handle = manager.active_handle("api")

    report = await manager.activate(1)

    assert report.deleted == []
    assert manager.active_handle("api") is handle


@pytest.mark.asyncio
async def test_failed_creation_keeps_previous_active_set(manager, store, online, mocker):
    await manager.activate(1)
    original_open = store.open

    def failing_open(name, version):
        if name == PartitionName("static-v2"):
            raise OSError("disk full")
        return original_open(name, version)

    mocker.patch.object(store, "open", side_effect=failing_open)

    with pytest.raises(LifecycleError):
        await manager.activate(2)

    assert manager.active_version == 1
    assert manager.active_handle("static").name == "static-v1"
    assert "static-v1" in names(store)


def test_active_handle_before_activation_raises(manager):
    with pytest.raises(LifecycleError):
        manager.active_handle("images")


@pytest.mark.asyncio
async def test_unknown_purpose_raises(manager, online):
    await manager.activate(1)
    with pytest.raises(LifecycleError):
        manager.active_handle("videos")


@pytest.mark.asyncio
async def test_invalid_version_rejected(manager):
    with pytest.raises(LifecycleError):
        await manager.activate(0)


@pytest.mark.asyncio
async def test_ensure_active_only_activates_once(manager, online, mocker):
    spy = mocker.spy(manager, "activate")

    await manager.ensure_active(1)
    await manager.ensure_active(1)

    assert spy.call_count == 1


@pytest.mark.asyncio
async def test_no_transport_skips_precache(store, clock):
    manager = LifecycleManager(store, precache_urls=PRECACHE, clock=clock)

    report = await manager.activate(1)

    assert report.precached == 0
    assert report.precache_failures == 0
