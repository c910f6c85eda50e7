import pytest
from typer.testing import CliRunner
from pathlib import Path
from typing import Dict, List, Optional

from rescache.core.services.lifecycle_manager import LifecycleManager
from rescache.core.services.policy_router import PolicyRouter
from rescache.core.services.resource_service import ResourceCacheService
from rescache.domain.events.dispatcher import EventDispatcher
from rescache.domain.exceptions import NetworkUnavailable
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.resource import ResourceRequest, ResourceResponse, normalize_url
from rescache.infrastructure.cache.ephemeral_cache import EphemeralValueCache
from rescache.infrastructure.cache.partition_store import DiskPartitionStore
from rescache.infrastructure.config.settings import clear_test_config

ORIGIN = "http://shop.test"


class FakeClock:
    """Manually advanced clock usable wherever a time source is injected."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubTransport(NetworkTransport):
    """In-memory transport: canned responses by URL, switchable offline mode.

    Unknown URLs answer 404 like a real origin would.
    """

    def __init__(self):
        self.responses: Dict[str, ResourceResponse] = {}
        self.calls: List[ResourceRequest] = []
        self.offline = False
        self.closed = False

    def serve(self, url: str, payload: bytes, status: int = 200, content_type: str = "text/plain") -> None:
        self.responses[normalize_url(url)] = ResourceResponse(
            status=status, payload=payload, metadata={"content-type": content_type}
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def fetch(self, request: ResourceRequest) -> ResourceResponse:
        self.calls.append(request)
        if self.offline:
            raise NetworkUnavailable("stub transport offline", url=request.url)
        response = self.responses.get(normalize_url(request.url))
        if response is None:
            return ResourceResponse(status=404, payload=b"not found")
        return response

    async def close(self) -> None:
        self.closed = True


class ThrowingTransport(NetworkTransport):
    """Transport whose every fetch raises the given exception."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or ConnectionError("connection refused")
        self.calls: List[ResourceRequest] = []

    async def fetch(self, request: ResourceRequest) -> ResourceResponse:
        self.calls.append(request)
        raise self.error


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_test_config():
    yield
    clear_test_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def throwing_transport() -> ThrowingTransport:
    return ThrowingTransport()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock):
    """A DiskPartitionStore rooted in a temporary directory."""
    partition_store = DiskPartitionStore(tmp_path / "partitions", clock=clock)
    yield partition_store
    partition_store.close()


@pytest.fixture
def value_cache(clock: FakeClock) -> EphemeralValueCache:
    return EphemeralValueCache(max_size=10, default_ttl=60, sweep_interval=30, clock=clock)


@pytest.fixture
def events() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def service(store, transport, value_cache, events, clock) -> ResourceCacheService:
    """ResourceCacheService over the default policy, a stub network and a temp store."""
    router = PolicyRouter()
    lifecycle = LifecycleManager(
        store,
        purposes=router.partition_purposes,
        transport=transport,
        origin=ORIGIN,
        events=events,
        clock=clock,
    )
    return ResourceCacheService(
        store=store,
        transport=transport,
        value_cache=value_cache,
        router=router,
        lifecycle=lifecycle,
        events=events,
        version=1,
        clock=clock,
    )
