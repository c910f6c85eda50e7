"""Interface for presenting cache results to the user.

Defines the contract for displaying request outcomes, partition listings,
errors and informational messages, allowing different UI implementations
(e.g., console, JSON output).
"""

import abc
from typing import Any, List, Mapping

# Import relevant domain models
from ..models.policy import ResourceResult
from ..models.resource import Partition


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_result(self, result: ResourceResult, **kwargs: Any) -> None:
        """Displays the outcome of one `respond` call.

        Args:
            result: The resolved result.
            **kwargs: Additional arguments for formatting (e.g., preview size).
        """
        pass

    @abc.abstractmethod
    def display_partitions(self, partitions: List[Partition], active: List[str]) -> None:
        """Displays known partitions, marking the active ones.

        Args:
            partitions: All partitions found in the store.
            active: Names of the currently active partitions.
        """
        pass

    @abc.abstractmethod
    def display_stats(self, stats: Mapping[str, Any]) -> None:
        """Displays counters as a key/value table."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
