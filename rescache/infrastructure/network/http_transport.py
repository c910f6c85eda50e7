"""HTTP transport for resource fetches, built on httpx.AsyncClient.

Translates ResourceRequest/ResourceResponse to and from httpx and maps every
client-side failure (connect errors, timeouts, protocol errors) to
NetworkUnavailable. Non-2xx statuses are ordinary responses, not errors.
"""

import logging
from email.utils import formatdate
from typing import Optional

import httpx

# Domain Layer Imports
from rescache.domain.exceptions import NetworkUnavailable
from rescache.domain.interfaces.transport import NetworkTransport
from rescache.domain.models.resource import ResourceRequest, ResourceResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpTransport(NetworkTransport):
    """NetworkTransport implementation using httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the transport.

        Args:
            base_url: Origin used to resolve relative URLs.
            timeout: Total request timeout in seconds (ignored if `client` is given).
            client: Pre-built AsyncClient; the transport will not close it.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or "", timeout=timeout, follow_redirects=True
        )
        logger.info(f"HttpTransport initialized (base_url={base_url or '-'}, timeout={timeout}s)")

    async def fetch(self, request: ResourceRequest) -> ResourceResponse:
        logger.debug(f"HTTP {request.method} {request.url}")
        try:
            response = await self._client.request(
                request.method.upper(), request.url, headers=request.headers
            )
        except httpx.TimeoutException as e:
            raise NetworkUnavailable(f"Request timed out: {type(e).__name__}", url=request.url) from e
        except httpx.HTTPError as e:
            raise NetworkUnavailable(f"Request failed: {type(e).__name__}: {e}", url=request.url) from e

        metadata = {k: v for k, v in response.headers.items()}
        metadata.setdefault("date", formatdate(usegmt=True))
        logger.debug(f"HTTP {response.status_code} for {request.url} ({len(response.content)} bytes)")
        return ResourceResponse(
            status=response.status_code,
            payload=response.content,
            metadata=metadata,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
            logger.debug("HttpTransport client closed")
