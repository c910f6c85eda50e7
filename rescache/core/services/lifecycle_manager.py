"""Lifecycle Manager: owns which partition version is active.

Activation is two-phase. New partitions are created (and precached) first;
only after every one of them exists does the active set switch over, and
only after the switch are the partitions of other versions deleted. A
failed creation leaves the previous active set untouched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin

# Domain Layer Imports
from rescache.domain.events.cache_events import PartitionsActivated
from rescache.domain.events.dispatcher import EventDispatcher
from rescache.domain.exceptions import LifecycleError
from rescache.domain.interfaces.cache import PartitionHandle, PartitionStore
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.common import (
    ALL_PURPOSES,
    PURPOSE_STATIC,
    PartitionName,
    partition_name_for,
)
from rescache.domain.models.resource import CacheRecord, Partition, ResourceRequest

logger = logging.getLogger(__name__)

PRECACHE_STRATEGY = "precache"


@dataclass
class ActivationReport:
    """Summary of one activation."""
    version: int
    partitions: List[PartitionName] = field(default_factory=list)
    deleted: List[PartitionName] = field(default_factory=list)
    precached: int = 0
    precache_failures: int = 0


class LifecycleManager:
    """Creates, activates and garbage-collects versioned partitions."""

    def __init__(
        self,
        store: PartitionStore,
        purposes: Sequence[str] = ALL_PURPOSES,
        transport: Optional[NetworkTransport] = None,
        origin: Optional[str] = None,
        precache_urls: Sequence[str] = (),
        precache_purpose: str = PURPOSE_STATIC,
        events: Optional[EventDispatcher] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the manager.

        Args:
            store: Durable partition store.
            purposes: Partition purposes opened for every version.
            transport: Transport used for precaching (None disables it).
            origin: Base URL relative precache paths are resolved against.
            precache_urls: Resources fetched into the precache partition on activation.
            precache_purpose: Purpose of the partition receiving precached resources.
            events: Dispatcher notified of completed activations.
            clock: Wall-clock source for record timestamps.
        """
        self.store = store
        self.purposes = list(dict.fromkeys(purposes))
        self.transport = transport
        self.origin = origin
        self.precache_urls = list(precache_urls)
        self.precache_purpose = precache_purpose
        self.events = events or EventDispatcher()
        self._clock = clock
        self._active: Dict[str, PartitionHandle] = {}
        self._active_version: Optional[int] = None
        self._lock = asyncio.Lock()

    @property
    def active_version(self) -> Optional[int]:
        return self._active_version

    @property
    def is_active(self) -> bool:
        return self._active_version is not None

    def active_handle(self, purpose: str) -> PartitionHandle:
        """Returns the active partition for a purpose.

        Raises:
            LifecycleError: If nothing is active or the purpose is unknown.
        """
        active = self._active  # single read; activation swaps the whole map
        if self._active_version is None:
            raise LifecycleError("No partition version is active")
        handle = active.get(purpose)
        if handle is None:
            raise LifecycleError(f"No active partition for purpose '{purpose}'")
        return handle

    def active_names(self) -> List[PartitionName]:
        return [handle.name for handle in self._active.values()]

    def partitions(self) -> List[Partition]:
        return self.store.list_partitions()

    async def activate(self, version: int) -> ActivationReport:
        """Makes `version` the active partition set.

        Raises:
            LifecycleError: If any partition of the new version cannot be created.
        """
        if version < 1:
            raise LifecycleError(f"Partition version must be >= 1, got {version}")

        async with self._lock:
            report = ActivationReport(version=version)

            # Phase 1: create
            opened: Dict[str, PartitionHandle] = {}
            for purpose in self.purposes:
                name = partition_name_for(purpose, version)
                try:
                    opened[purpose] = self.store.open(name, version)
                except Exception as e:
                    logger.error(f"Failed to create partition {name}: {e}", exc_info=True)
                    raise LifecycleError(f"Could not create partition {name}: {e}") from e
                report.partitions.append(name)

            precache_handle = opened.get(self.precache_purpose)
            if precache_handle is not None:
                await self._precache(precache_handle, report)

            # Phase 2: switch, then garbage-collect everything else
            self._active = opened
            self._active_version = version
            logger.info(f"Activated partition version {version}: {', '.join(report.partitions)}")

            try:
                report.deleted = self.store.delete_all_except(report.partitions)
            except Exception as e:
                logger.error(f"Partition cleanup after activating v{version} failed: {e}", exc_info=True)

            self.events.dispatch(PartitionsActivated(
                version=version,
                partitions=list(report.partitions),
                deleted=list(report.deleted),
            ))
            return report

    async def ensure_active(self, version: int) -> None:
        """Activates `version` unless some version is already active."""
        if self._active_version is None:
            await self.activate(version)

    async def _precache(self, handle: PartitionHandle, report: ActivationReport) -> None:
        if not self.precache_urls:
            return
        if self.transport is None:
            logger.debug("No transport configured; skipping precache")
            return

        for path in self.precache_urls:
            url = urljoin(f"{self.origin.rstrip('/')}/", path) if self.origin else path
            request = ResourceRequest(url=url)
            try:
                response = await self.transport.fetch(request)
            except Exception as e:
                report.precache_failures += 1
                logger.warning(f"Precache of {url} failed: {type(e).__name__}: {e}")
                continue
            if not response.ok:
                report.precache_failures += 1
                logger.warning(f"Precache of {url} returned status {response.status}")
                continue
            now = self._clock()
            self.store.put(handle, request.cache_key, CacheRecord(
                key=request.cache_key,
                payload=response.stamped(now),
                stored_at=now,
                freshness_window=None,
                source_strategy=PRECACHE_STRATEGY,
            ))
            report.precached += 1
        logger.info(
            f"Precached {report.precached}/{len(self.precache_urls)} resources into {handle.name}"
        )
