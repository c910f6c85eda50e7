"""Interfaces for the two cache tiers.

PartitionStore is the durable, named, versioned request->response store.
ValueCache is the bounded, TTL-based in-process store of decoded values that
fronts it. Losing ValueCache contents must never change behavior, only cost
extra round-trips.
"""

import abc
from typing import Any, Iterable, List, Optional

# Import relevant domain models
from ..models.common import CacheKey, CacheStats, PartitionName
from ..models.resource import CacheRecord, Partition


class PartitionHandle(abc.ABC):
    """An open reference to one partition."""

    @property
    @abc.abstractmethod
    def partition(self) -> Partition:
        """Metadata of the partition this handle points to."""

    @property
    def name(self) -> PartitionName:
        return self.partition.name

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        """True once the partition has been deleted or the store closed."""


class PartitionStore(abc.ABC):
    """Abstract Base Class for durable partitioned storage."""

    @abc.abstractmethod
    def open(self, name: PartitionName, version: int) -> PartitionHandle:
        """Opens a partition, creating it (and its metadata) if missing.

        Args:
            name: Partition name, e.g. 'images-v2'.
            version: Version number the partition belongs to.

        Returns:
            A handle used for get/put.
        """
        pass

    @abc.abstractmethod
    def get(self, handle: PartitionHandle, key: CacheKey) -> Optional[CacheRecord]:
        """Returns the stored record for a key, or None if absent."""
        pass

    @abc.abstractmethod
    def put(self, handle: PartitionHandle, key: CacheKey, record: CacheRecord) -> None:
        """Stores a record; last write wins, atomic per record."""
        pass

    @abc.abstractmethod
    def delete_all_except(self, active_names: Iterable[PartitionName]) -> List[PartitionName]:
        """Deletes every partition whose name is not in `active_names`.

        Returns:
            The names of the deleted partitions.
        """
        pass

    @abc.abstractmethod
    def record_count(self, handle: PartitionHandle) -> int:
        """Number of records held by a partition (0 once closed)."""
        pass

    @abc.abstractmethod
    def list_partitions(self) -> List[Partition]:
        """Lists known partitions."""
        pass

    @abc.abstractmethod
    def clear(self) -> int:
        """Deletes every partition. Returns how many were removed."""
        pass

    @abc.abstractmethod
    def close(self) -> None:
        """Releases any open resources."""
        pass


class ValueCache(abc.ABC):
    """Abstract Base Class for the in-process decoded value cache."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Returns the live value for a key, or None if absent or expired."""
        pass

    @abc.abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Stores a value, overwriting value, timestamp and ttl of an existing key."""
        pass

    @abc.abstractmethod
    def delete(self, key: str) -> bool:
        """Removes a key. Returns True if it was present."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes every entry."""
        pass

    @abc.abstractmethod
    def invalidate_prefix(self, prefix: str) -> int:
        """Removes every entry whose key starts with prefix."""
        pass

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Returns an occupancy snapshot."""
        pass

    async def start(self) -> None:
        """Starts background maintenance, if the implementation has any."""
        return None

    async def stop(self) -> None:
        """Stops background maintenance started by `start`."""
        return None
