"""Interface for network transports.

Defines the contract used by strategy executors to reach the backend.
Implementations raise on failure; the executors are responsible for turning
any raised error into an 'unavailable' classification.
"""

import abc

from ..models.resource import ResourceRequest, ResourceResponse


class NetworkTransport(abc.ABC):
    """Abstract Base Class for async resource fetching."""

    @abc.abstractmethod
    async def fetch(self, request: ResourceRequest) -> ResourceResponse:
        """Fetches a resource from the network.

        Args:
            request: The request descriptor (method, URL, headers).

        Returns:
            The full response. Non-2xx statuses are returned, not raised.

        Raises:
            NetworkUnavailable: If the fetch failed or timed out.
        """
        pass

    async def close(self) -> None:
        """Releases connections. Default is a no-op."""
        return None
