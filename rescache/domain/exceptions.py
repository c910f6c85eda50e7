"""Exception taxonomy for the resource cache.

NetworkUnavailable is raised by transports and always caught at the strategy
executor boundary; UnclassifiedRequestError is raised by the policy router
and converted into a tagged failure by the resource service. Neither ever
escapes `respond`.
"""

from typing import Optional


class ResourceCacheError(Exception):
    """Base class for all rescache errors."""


class NetworkUnavailable(ResourceCacheError):
    """The fetch threw, timed out, or never resolved."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message if url is None else f"{message} ({url})")


class MaxRetryError(NetworkUnavailable):
    """Exception raised when max retries are exceeded."""

    def __init__(self, original_exception: Exception, attempts: int, url: Optional[str] = None):
        self.original_exception = original_exception
        self.attempts = attempts
        super().__init__(
            f"Max attempts ({attempts}) exceeded. Last error: {original_exception}", url=url
        )


class UnclassifiedRequestError(ResourceCacheError):
    """Malformed request descriptor, rejected before reaching any strategy."""


class LifecycleError(ResourceCacheError):
    """Partition activation failed or no partition version is active."""
