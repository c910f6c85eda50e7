"""Durable partitioned store for request->response records.

Each partition is a `diskcache.Cache` living in its own subdirectory of the
cache root; partition metadata (name, version, creation time) is kept in a
separate registry cache. Writes are single diskcache `set` calls, which are
atomic per key, so a reader never observes a partially written record.

Read/write errors degrade to a miss / no-op and are logged: the durable tier
improves availability, it is never the source of truth.
"""

import logging
import re
import shutil
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

import diskcache as dc

# Domain Layer Imports
from rescache.domain.interfaces.cache import PartitionHandle, PartitionStore
from rescache.domain.models.common import CacheKey, PartitionName
from rescache.domain.models.resource import CacheRecord, Partition

logger = logging.getLogger(__name__)

REGISTRY_DIR_NAME = "_registry"
DEFAULT_DISK_TIMEOUT_SECONDS = 1.0

_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_VERSION_SUFFIX = re.compile(r"-v(\d+)$")
_PARTITION_DIR_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._]*-v\d+$")
# File diskcache creates in every cache directory
DISKCACHE_DB_NAME = "cache.db"


def version_from_name(name: str) -> int:
    """Extracts N from '<purpose>-v<N>'; 0 when the name carries no version."""
    match = _VERSION_SUFFIX.search(name)
    return int(match.group(1)) if match else 0


class DiskPartitionHandle(PartitionHandle):
    """Handle to one open diskcache-backed partition."""

    def __init__(self, partition: Partition, cache: dc.Cache):
        self._partition = partition
        self._cache = cache
        self._closed = False

    @property
    def partition(self) -> Partition:
        return self._partition

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cache(self) -> dc.Cache:
        return self._cache

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._cache.close()

    def __repr__(self) -> str:
        return f"DiskPartitionHandle(name={self.name!r}, closed={self._closed})"


class DiskPartitionStore(PartitionStore):
    """PartitionStore implementation on top of diskcache."""

    def __init__(
        self,
        root_dir: Union[str, Path],
        disk_timeout: float = DEFAULT_DISK_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the store and its partition registry.

        Args:
            root_dir: Directory holding one subdirectory per partition.
            disk_timeout: SQLite lock timeout passed to diskcache.
            clock: Wall-clock source used for creation and write timestamps.
        """
        self.root_dir = Path(root_dir) if not isinstance(root_dir, Path) else root_dir
        self.disk_timeout = disk_timeout
        self._clock = clock
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self._registry = dc.Cache(str(self.root_dir / REGISTRY_DIR_NAME), timeout=disk_timeout)
        self._handles: Dict[str, DiskPartitionHandle] = {}
        self._lock = threading.Lock()
        logger.info(f"DiskPartitionStore initialized at: {self.root_dir}")

    def _partition_dir(self, name: str) -> Path:
        return self.root_dir / name

    @staticmethod
    def _validate_name(name: str) -> None:
        if not name or name == REGISTRY_DIR_NAME or not _SAFE_NAME.match(name):
            raise ValueError(f"Invalid partition name: {name!r}")

    # --- PartitionStore Interface Implementation ---

    def open(self, name: PartitionName, version: int) -> DiskPartitionHandle:
        """Opens (creating if needed) a partition and returns its handle."""
        self._validate_name(name)
        with self._lock:
            handle = self._handles.get(name)
            if handle is not None and not handle.closed:
                return handle

            partition = self._registry.get(name)
            if not isinstance(partition, Partition):
                partition = Partition(name=name, version=version, created_at=self._clock())
                self._registry.set(name, partition)
                logger.info(f"Created partition {name} (version {version})")
            elif partition.version != version:
                logger.warning(
                    f"Partition {name} registered with version {partition.version}, opened as {version}"
                )

            cache = dc.Cache(str(self._partition_dir(name)), timeout=self.disk_timeout)
            handle = DiskPartitionHandle(partition, cache)
            self._handles[name] = handle
            logger.debug(f"Opened partition {name} at {cache.directory}")
            return handle

    def get(self, handle: PartitionHandle, key: CacheKey) -> Optional[CacheRecord]:
        if handle.closed:
            logger.debug(f"Read from closed partition {handle.name} ignored (key: {key})")
            return None
        try:
            value = handle.cache.get(key, default=None)
        except Exception as e:
            logger.error(f"Error reading partition {handle.name} (key: {key}): {e}", exc_info=True)
            return None
        if value is None:
            logger.debug(f"Partition {handle.name} MISS for key: {key}")
            return None
        if not isinstance(value, CacheRecord):
            logger.warning(f"Unexpected value type {type(value).__name__} in {handle.name} for key {key}. Ignoring.")
            return None
        logger.debug(f"Partition {handle.name} HIT for key: {key}")
        return value

    def put(self, handle: PartitionHandle, key: CacheKey, record: CacheRecord) -> None:
        if handle.closed:
            logger.debug(f"Write to closed partition {handle.name} dropped (key: {key})")
            return
        now = self._clock()
        if record.stored_at > now:
            record = replace(record, stored_at=now)
        try:
            handle.cache.set(key, record)
            logger.debug(f"Partition {handle.name} PUT key: {key}")
        except Exception as e:
            logger.error(f"Error writing partition {handle.name} (key: {key}): {e}", exc_info=True)

    def record_count(self, handle: PartitionHandle) -> int:
        if handle.closed:
            return 0
        try:
            return len(handle.cache)
        except Exception as e:
            logger.error(f"Error counting records in {handle.name}: {e}")
            return 0

    def delete_all_except(self, active_names: Iterable[PartitionName]) -> List[PartitionName]:
        """Deletes every registered or orphaned partition not in active_names."""
        active = set(active_names)
        deleted: List[PartitionName] = []
        for name in sorted(self._known_names() - active):
            if self._delete_partition(name):
                deleted.append(PartitionName(name))
        if deleted:
            logger.info(f"Deleted partitions: {', '.join(deleted)}")
        return deleted

    def list_partitions(self) -> List[Partition]:
        partitions: Dict[str, Partition] = {}
        for name in self._registry:
            meta = self._registry.get(name)
            if isinstance(meta, Partition):
                partitions[name] = meta
        # Directories left behind without registry metadata
        for name in self._known_names() - set(partitions):
            path = self._partition_dir(name)
            created_at = path.stat().st_mtime if path.exists() else 0.0
            partitions[name] = Partition(
                name=PartitionName(name), version=version_from_name(name), created_at=created_at
            )
        return [partitions[n] for n in sorted(partitions)]

    def is_registered(self, name: str) -> bool:
        return isinstance(self._registry.get(name), Partition)

    def clear(self) -> int:
        count = len(self.delete_all_except([]))
        logger.info(f"Cleared partition store. Removed {count} partitions.")
        return count

    def close(self) -> None:
        with self._lock:
            for handle in self._handles.values():
                handle.close()
            self._handles.clear()
        self._registry.close()
        logger.debug("DiskPartitionStore closed")

    # --- Internals ---

    def _known_names(self) -> set:
        names = {str(n) for n in self._registry}
        if self.root_dir.exists():
            names.update(p.name for p in self.root_dir.iterdir() if self._is_orphan_partition(p))
        return names

    @staticmethod
    def _is_orphan_partition(path: Path) -> bool:
        """Only versioned diskcache directories count; anything else in the root is left alone."""
        return (
            path.is_dir()
            and _PARTITION_DIR_NAME.match(path.name) is not None
            and (path / DISKCACHE_DB_NAME).is_file()
        )

    def _delete_partition(self, name: str) -> bool:
        with self._lock:
            handle = self._handles.pop(name, None)
            if handle is not None:
                handle.close()
        try:
            self._registry.delete(name)
            path = self._partition_dir(name)
            if path.exists():
                shutil.rmtree(path)
            logger.debug(f"Deleted partition {name}")
            return True
        except OSError as e:
            logger.error(f"Failed to delete partition {name}: {e}")
            return False
