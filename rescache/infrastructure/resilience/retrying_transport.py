"""Transport wrapper adding per-attempt timeouts and retries.

Implements exponential backoff for transient network failures. A fetch that
does not resolve within `timeout_s` is treated exactly like a failed fetch.
After the last attempt the wrapper raises MaxRetryError, which is itself a
NetworkUnavailable, so executors classify it like any other outage.
"""

import asyncio
import logging
from typing import Optional

# Domain Layer Imports
from rescache.domain.exceptions import MaxRetryError, NetworkUnavailable
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.resource import ResourceRequest, ResourceResponse

logger = logging.getLogger(__name__)

# Programming errors are never retried
NON_RETRYABLE_EXCEPTIONS = (ValueError, TypeError)


class RetryingTransport(NetworkTransport):
    """Handles transport calls with timeouts and bounded retries."""

    def __init__(
        self,
        inner: NetworkTransport,
        max_retries: int = 0,
        initial_backoff_s: float = 0.5,
        backoff_factor: float = 2.0,
        timeout_s: Optional[float] = None,
    ):
        """Initializes the RetryingTransport.

        Args:
            inner: The transport doing the actual fetch.
            max_retries: Retries after the first attempt (0 = single attempt).
            initial_backoff_s: Delay before the first retry.
            backoff_factor: Multiplier applied to the delay after each retry.
            timeout_s: Per-attempt timeout; None leaves timing to the inner transport.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.inner = inner
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.backoff_factor = backoff_factor
        self.timeout_s = timeout_s
        logger.info(
            f"RetryingTransport initialized: max_retries={max_retries}, "
            f"initial_backoff={initial_backoff_s}s, factor={backoff_factor}, timeout={timeout_s}"
        )

    async def _attempt(self, request: ResourceRequest) -> ResourceResponse:
        if self.timeout_s is None:
            return await self.inner.fetch(request)
        try:
            return await asyncio.wait_for(self.inner.fetch(request), timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            raise NetworkUnavailable(f"Fetch did not resolve within {self.timeout_s}s", url=request.url) from e

    async def fetch(self, request: ResourceRequest) -> ResourceResponse:
        last_exception: Optional[Exception] = None
        current_backoff = self.initial_backoff_s
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                return await self._attempt(request)
            except NON_RETRYABLE_EXCEPTIONS:
                raise
            except Exception as e:
                last_exception = e
                if attempt < self.max_retries:
                    logger.warning(
                        f"Fetch of {request.url} failed on attempt {attempt + 1}/{attempts}: "
                        f"{type(e).__name__}. Waiting {current_backoff:.2f}s..."
                    )
                    await asyncio.sleep(current_backoff)
                    current_backoff *= self.backoff_factor
                else:
                    logger.debug(f"Fetch of {request.url} failed on final attempt {attempt + 1}: {e}")

        final_error = last_exception or Exception("Unknown error after retries")
        raise MaxRetryError(final_error, attempts, url=request.url)

    async def close(self) -> None:
        await self.inner.close()
