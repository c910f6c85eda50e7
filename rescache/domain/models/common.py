"""Defines common Value Objects used across the cache layers.

These objects represent simple values such as cache keys, partition names
and resource URLs, ensuring consistency across the router, executors and
storage adapters.
"""

from typing import NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
CacheKey = NewType("CacheKey", str)              # "<METHOD> <normalized-url>"
CachePrefix = NewType("CachePrefix", str)        # Prefix grouping ephemeral keys (e.g., 'products_list')
PartitionName = NewType("PartitionName", str)    # "<purpose>-v<N>", e.g. 'images-v2'
PartitionPurpose = NewType("PartitionPurpose", str)  # 'images', 'api', 'static', 'pages'
ResourceUrl = NewType("ResourceUrl", str)        # Absolute or origin-relative URL

# Seconds, float. None means "never goes stale".
Seconds = float

# Partition purposes known to the default policy
PURPOSE_IMAGES = PartitionPurpose("images")
PURPOSE_API = PartitionPurpose("api")
PURPOSE_STATIC = PartitionPurpose("static")
PURPOSE_PAGES = PartitionPurpose("pages")
ALL_PURPOSES = (PURPOSE_IMAGES, PURPOSE_API, PURPOSE_STATIC, PURPOSE_PAGES)


def partition_name_for(purpose: str, version: int) -> PartitionName:
    """Builds the versioned partition name for a purpose."""
    return PartitionName(f"{purpose}-v{version}")


# --- Structured Data ---
class CacheStats(TypedDict):
    """Snapshot of ephemeral cache occupancy."""
    total: int
    valid: int
    expired: int
    max_size: int


class OutcomeCounters(TypedDict):
    """Per-outcome request counters kept by the resource service."""
    hit: int
    miss: int
    degraded: int
    failure: int
