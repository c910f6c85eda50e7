"""Strategy executors: one consistency policy each.

Executors sit between the partition store and the network transport. Every
exception a transport raises is caught here and classified as 'network
unavailable'; nothing above this layer sees a raw transport error.
asyncio.CancelledError is a BaseException and passes through untouched, and
since records are written only once a full response is in hand, a cancelled
fetch never leaves anything behind in the store.
"""

import abc
import logging
import time
from typing import Callable, Dict, Optional, Tuple

# Domain Layer Imports
from rescache.domain.events.cache_events import NetworkFetchFailed, StaleServedDueToOutage
from rescache.domain.events.dispatcher import EventDispatcher
from rescache.domain.interfaces.cache import PartitionHandle, PartitionStore
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.common import CacheKey
from rescache.domain.models.policy import (
    ErrorKind,
    Outcome,
    PolicyRule,
    ResponseSource,
    Strategy,
    StrategyOutcome,
)
from rescache.domain.models.resource import CacheRecord, ResourceRequest, ResourceResponse

logger = logging.getLogger(__name__)

STORED_AT_METADATA = "x-rescache-stored-at"


class StrategyExecutor(abc.ABC):
    """Base class for strategy executors."""

    strategy: Strategy

    def __init__(
        self,
        store: PartitionStore,
        events: Optional[EventDispatcher] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.events = events or EventDispatcher()
        self._clock = clock

    @abc.abstractmethod
    async def execute(
        self,
        request: ResourceRequest,
        handle: Optional[PartitionHandle],
        rule: PolicyRule,
        transport: NetworkTransport,
    ) -> StrategyOutcome:
        """Produces a response for the request under this strategy."""
        pass

    # --- Shared Steps ---

    async def _fetch(
        self, request: ResourceRequest, transport: NetworkTransport
    ) -> Tuple[Optional[ResourceResponse], Optional[Exception]]:
        """Runs the transport. Returns (response, None) or (None, error)."""
        try:
            return await transport.fetch(request), None
        except Exception as e:
            logger.warning(
                f"Network unavailable for {request.method} {request.url} "
                f"({self.strategy.value}): {type(e).__name__}: {e}"
            )
            self.events.dispatch(NetworkFetchFailed(
                key=request.cache_key,
                strategy=self.strategy.value,
                error_type=type(e).__name__,
                error_message=str(e),
            ))
            return None, e

    def _lookup(self, handle: Optional[PartitionHandle], key: CacheKey) -> Optional[CacheRecord]:
        if handle is None:
            return None
        return self.store.get(handle, key)

    def _write(
        self,
        handle: Optional[PartitionHandle],
        key: CacheKey,
        response: ResourceResponse,
        rule: PolicyRule,
    ) -> ResourceResponse:
        """Stores an ok response with a fresh stored_at and returns the stamped copy."""
        now = self._clock()
        stamped = response.with_metadata(x_rescache_stored_at=f"{now:.3f}").stamped(now)
        if handle is None:
            return stamped
        self.store.put(handle, key, CacheRecord(
            key=key,
            payload=stamped,
            stored_at=now,
            freshness_window=rule.freshness_window,
            source_strategy=self.strategy.value,
        ))
        return stamped

    def _serve_stale(self, record: CacheRecord) -> StrategyOutcome:
        age = record.age(self._clock())
        logger.info(f"Serving cached {record.key} after network failure (age {age:.1f}s)")
        self.events.dispatch(StaleServedDueToOutage(key=record.key, age_seconds=age))
        return StrategyOutcome(
            key=record.key,
            outcome=Outcome.DEGRADED,
            source=ResponseSource.CACHE,
            response=record.payload,
            error=ErrorKind.STALE_SERVED_DUE_TO_OUTAGE,
        )

    @staticmethod
    def _unavailable(key: CacheKey) -> StrategyOutcome:
        return StrategyOutcome(
            key=key,
            outcome=Outcome.FAILURE,
            source=ResponseSource.NONE,
            error=ErrorKind.NETWORK_UNAVAILABLE,
        )


class CacheFirstExecutor(StrategyExecutor):
    """Serve a fresh record without touching the network; otherwise fetch.

    On network failure any record is served regardless of age.
    """

    strategy = Strategy.CACHE_FIRST

    async def execute(self, request, handle, rule, transport) -> StrategyOutcome:
        if rule.alternate_encoding is not None:
            request = rule.alternate_encoding.rewrite(request)
        key = request.cache_key

        record = self._lookup(handle, key)
        if record is not None and record.is_fresh(self._clock()):
            return StrategyOutcome(
                key=key, outcome=Outcome.HIT, source=ResponseSource.CACHE, response=record.payload
            )

        response, _ = await self._fetch(request, transport)
        if response is None:
            if record is not None:
                return self._serve_stale(record)
            return self._unavailable(key)

        if not response.ok:
            logger.debug(f"Not caching {key}: status {response.status}")
            return StrategyOutcome(key=key, outcome=Outcome.MISS, source=ResponseSource.NETWORK, response=response)

        stamped = self._write(handle, key, response, rule)
        return StrategyOutcome(
            key=key, outcome=Outcome.MISS, source=ResponseSource.NETWORK, response=stamped, writeback=True
        )


class NetworkFirstExecutor(StrategyExecutor):
    """Always try the network; fall back to a record only while it is fresh."""

    strategy = Strategy.NETWORK_FIRST

    async def execute(self, request, handle, rule, transport) -> StrategyOutcome:
        key = request.cache_key

        response, _ = await self._fetch(request, transport)
        if response is not None:
            if not response.ok:
                logger.debug(f"Not caching {key}: status {response.status}")
                return StrategyOutcome(
                    key=key, outcome=Outcome.MISS, source=ResponseSource.NETWORK, response=response
                )
            stamped = self._write(handle, key, response, rule)
            return StrategyOutcome(
                key=key, outcome=Outcome.MISS, source=ResponseSource.NETWORK, response=stamped, writeback=True
            )

        record = self._lookup(handle, key)
        if record is not None and record.is_fresh(self._clock()):
            return self._serve_stale(record)
        if record is not None:
            logger.debug(f"Cached {key} is past its freshness window; not serving it")
        return self._unavailable(key)


class NetworkOnlyExecutor(StrategyExecutor):
    """Pass-through: never reads or writes the store."""

    strategy = Strategy.NETWORK_ONLY

    async def execute(self, request, handle, rule, transport) -> StrategyOutcome:
        key = request.cache_key
        response, _ = await self._fetch(request, transport)
        if response is None:
            return self._unavailable(key)
        return StrategyOutcome(key=key, outcome=Outcome.MISS, source=ResponseSource.NETWORK, response=response)


EXECUTOR_TYPES = {
    Strategy.CACHE_FIRST: CacheFirstExecutor,
    Strategy.NETWORK_FIRST: NetworkFirstExecutor,
    Strategy.NETWORK_ONLY: NetworkOnlyExecutor,
}


def build_executors(
    store: PartitionStore,
    events: Optional[EventDispatcher] = None,
    clock: Callable[[], float] = time.time,
) -> Dict[Strategy, StrategyExecutor]:
    """Creates one executor per strategy sharing a store, dispatcher and clock."""
    return {strategy: cls(store, events=events, clock=clock) for strategy, cls in EXECUTOR_TYPES.items()}
