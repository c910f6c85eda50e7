"""Domain Events related to request handling and partition lifecycle.

Examples include per-request diagnostics (hit/miss/degraded/failure),
network failures caught at the executor boundary, and partitions being
created or garbage-collected on activation.
"""

from dataclasses import dataclass, field
import time
from typing import List, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Request Events ---

@dataclass
class RequestDiagnostics(DomainEvent):
    """Emitted once per `respond` call with its final classification."""
    key: str
    rule: str
    outcome: str  # 'hit', 'miss', 'degraded', 'failure'
    source: str   # 'cache', 'network', 'fallback', 'none'
    status: Optional[int] = None
    error: Optional[str] = None
    latency_ms: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class NetworkFetchFailed(DomainEvent):
    """A transport error classified as 'unavailable' inside an executor."""
    key: str
    strategy: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class StaleServedDueToOutage(DomainEvent):
    """A cached record was served after a network failure."""
    key: str
    age_seconds: float
    timestamp: float = field(default_factory=time.time)


# --- Lifecycle Events ---

@dataclass
class PartitionsActivated(DomainEvent):
    """A partition version became the active set."""
    version: int
    partitions: List[str]
    deleted: List[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
