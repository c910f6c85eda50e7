"""Resource Cache Service: the single entry point for resource requests.

`respond` routes a request, executes the rule's strategy against the active
partition, resolves fallbacks and reports a hit/miss/degraded/failure
classification to registered listeners. It never raises for network or
classification problems; those come back as tagged results.
"""

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

# Domain Layer Imports
from rescache.domain.events.cache_events import RequestDiagnostics
from rescache.domain.events.dispatcher import EventDispatcher, EventListener
from rescache.domain.exceptions import LifecycleError, UnclassifiedRequestError
from rescache.domain.interfaces.cache import PartitionHandle, PartitionStore, ValueCache
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.common import PURPOSE_STATIC, CachePrefix, OutcomeCounters
from rescache.domain.models.policy import (
    ErrorKind,
    Outcome,
    PolicyRule,
    ResourceKind,
    ResourceResult,
    ResponseSource,
    Strategy,
    ValueResult,
)
from rescache.domain.models.resource import ResourceRequest, ResourceResponse

# Core Layer Imports
from .fallback_resolver import FallbackResolver
from .lifecycle_manager import LifecycleManager
from .policy_router import PolicyRouter
from .strategies import StrategyExecutor, build_executors

logger = logging.getLogger(__name__)

DEFAULT_PARTITION_VERSION = 1


class ResourceCacheService:
    """Coordinates routing, strategy execution and fallback for every request."""

    def __init__(
        self,
        store: PartitionStore,
        transport: NetworkTransport,
        value_cache: ValueCache,
        router: Optional[PolicyRouter] = None,
        lifecycle: Optional[LifecycleManager] = None,
        fallback: Optional[FallbackResolver] = None,
        events: Optional[EventDispatcher] = None,
        version: int = DEFAULT_PARTITION_VERSION,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the service.

        Args:
            store: Durable partition store.
            transport: Network transport used by the strategies.
            value_cache: Ephemeral cache for decoded values.
            router: Policy router (default rule set if None).
            lifecycle: Lifecycle manager (one over the router's purposes if None).
            fallback: Fallback resolver (built over `store` if None).
            events: Dispatcher shared with the executors and lifecycle manager.
            version: Partition version activated lazily on first use.
            clock: Wall-clock source for record timestamps.
        """
        self.store = store
        self.transport = transport
        self.value_cache = value_cache
        self.events = events or EventDispatcher()
        self.router = router or PolicyRouter()
        self.lifecycle = lifecycle or LifecycleManager(
            store, purposes=self.router.partition_purposes, events=self.events, clock=clock
        )
        self.fallback = fallback or FallbackResolver(store)
        self.version = version
        self.executors: Dict[Strategy, StrategyExecutor] = build_executors(
            store, events=self.events, clock=clock
        )
        self._counters: OutcomeCounters = {"hit": 0, "miss": 0, "degraded": 0, "failure": 0}
        self._counter_lock = threading.Lock()
        logger.info(f"ResourceCacheService initialized (partition version {version})")

    # --- Lifecycle ---

    async def start(self) -> None:
        """Activates the configured partition version and starts the value sweep."""
        await self.lifecycle.ensure_active(self.version)
        await self.value_cache.start()

    async def stop(self) -> None:
        await self.value_cache.stop()
        await self.transport.close()
        logger.debug("ResourceCacheService stopped")

    def add_listener(self, listener: EventListener) -> None:
        """Registers an observability hook for diagnostics and lifecycle events."""
        self.events.subscribe(listener)

    # --- Entry Point ---

    async def respond(self, request: ResourceRequest) -> ResourceResult:
        """Produces a response for a request under its routed policy."""
        started = time.perf_counter()
        try:
            rule = self.router.route(request)
        except UnclassifiedRequestError as e:
            logger.warning(f"Rejected request: {e}")
            result = ResourceResult(
                key=self._safe_key(request),
                rule_name="unclassified",
                outcome=Outcome.FAILURE,
                source=ResponseSource.NONE,
                response=ResourceResponse(
                    status=400,
                    payload=str(e).encode("utf-8"),
                    metadata={"content-type": "text/plain", "x-rescache-status": "unclassified"},
                ),
                error=ErrorKind.UNCLASSIFIED,
            )
            self._record(result, started)
            return result

        handle = await self._handle_for(rule)
        executor = self.executors[rule.strategy]
        outcome = await executor.execute(request, handle, rule, self.transport)
        result = self.fallback.resolve(request, rule, outcome, search=self._fallback_search(rule, handle))
        self._record(result, started)
        return result

    async def fetch_value(
        self,
        request: ResourceRequest,
        decode: Callable[[bytes], Any] = json.loads,
        ttl: Optional[float] = None,
    ) -> ValueResult:
        """Returns a decoded API value, fronted by the ephemeral cache.

        Only values decoded from a fresh network response are cached; a
        degraded result is returned but not stored.

        Raises:
            UnclassifiedRequestError: If the request descriptor is malformed.
            ValueError: If the request does not route to an API rule.
        """
        rule = self.router.route(request)
        if rule.kind is not ResourceKind.API:
            raise ValueError(f"fetch_value only serves API resources, got rule '{rule.name}'")
        key = request.cache_key

        cached = self.value_cache.get(key)
        if cached is not None:
            logger.debug(f"Value cache HIT for key: {key}")
            return ValueResult(key=key, outcome=Outcome.HIT, value=cached)

        result = await self.respond(request)
        if not result.ok:
            return ValueResult(key=key, outcome=Outcome.FAILURE, error=result.error, result=result)

        try:
            value = decode(result.payload)
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to decode payload for {key}: {e}")
            return ValueResult(key=key, outcome=Outcome.FAILURE, error=ErrorKind.DECODE_FAILED, result=result)

        window = ttl if ttl is not None else rule.freshness_window
        if value is not None and result.source is ResponseSource.NETWORK:
            self.value_cache.set(key, value, ttl=window)
        return ValueResult(key=key, outcome=result.outcome, value=value, error=result.error, result=result)

    def invalidate_values(self, prefix: CachePrefix) -> int:
        """Drops every decoded value whose key starts with `prefix`."""
        removed = self.value_cache.invalidate_prefix(prefix)
        logger.info(f"Invalidated {removed} cached values with prefix '{prefix}'")
        return removed

    def stats(self) -> Dict[str, Any]:
        with self._counter_lock:
            counters = dict(self._counters)
        return {
            "active_version": self.lifecycle.active_version,
            "outcomes": counters,
            "values": self.value_cache.stats(),
        }

    # --- Internals ---

    async def _handle_for(self, rule: PolicyRule) -> Optional[PartitionHandle]:
        if rule.partition_purpose is None:
            return None
        await self.lifecycle.ensure_active(self.version)
        return self.lifecycle.active_handle(rule.partition_purpose)

    def _fallback_search(self, rule: PolicyRule, handle: Optional[PartitionHandle]):
        if not rule.fallback_resource:
            return []
        search = []
        try:
            search.append(self.lifecycle.active_handle(PURPOSE_STATIC))
        except LifecycleError as e:
            logger.debug(f"No static partition for fallback lookup: {e}")
        if handle is not None and handle not in search:
            search.append(handle)
        return search

    def _record(self, result: ResourceResult, started: float) -> None:
        with self._counter_lock:
            self._counters[result.outcome.value] += 1
        self.events.dispatch(RequestDiagnostics(
            key=result.key,
            rule=result.rule_name,
            outcome=result.outcome.value,
            source=result.source.value,
            status=result.response.status if result.response is not None else None,
            error=result.error.value if result.error is not None else None,
            latency_ms=(time.perf_counter() - started) * 1000,
        ))

    @staticmethod
    def _safe_key(request: Any) -> str:
        try:
            return request.cache_key
        except (AttributeError, TypeError, ValueError):
            return f"{getattr(request, 'method', '?')} {getattr(request, 'url', '?')}"
