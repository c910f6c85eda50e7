import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rescache.domain.interfaces.user_interface import UserInterface
from rescache.domain.models.policy import Outcome, ResourceResult
from rescache.domain.models.resource import Partition

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_CHARS = 400

OUTCOME_STYLES = {
    Outcome.HIT: "bold green",
    Outcome.MISS: "bold cyan",
    Outcome.DEGRADED: "bold yellow",
    Outcome.FAILURE: "bold red",
}


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, result: ResourceResult, **kwargs: Any) -> None:
        """Displays one request outcome as a summary table plus a payload preview.

        Args:
            result: The resolved result.
            **kwargs: Additional arguments including:
                - preview_chars: Maximum payload characters to show (0 hides the preview)
        """
        preview_chars = kwargs.get("preview_chars", DEFAULT_PREVIEW_CHARS)
        style = OUTCOME_STYLES.get(result.outcome, "bold white")
        logger.debug(f"display_result called: {result.to_dict()}")

        table = Table(show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="cyan", justify="right")
        table.add_column("Value", style="white")
        table.add_row("Key", result.key)
        table.add_row("Rule", result.rule_name)
        table.add_row("Outcome", f"[{style}]{result.outcome.value}[/{style}]")
        table.add_row("Source", result.source.value)
        if result.response is not None:
            table.add_row("Status", str(result.response.status))
            table.add_row("Content-Type", result.response.content_type or "-")
            table.add_row("Size", f"{len(result.response.payload)} bytes")
            if result.response.stored_at is not None:
                stored = datetime.fromtimestamp(result.response.stored_at).strftime("%Y-%m-%d %H:%M:%S")
                table.add_row("Stored At", stored)
        if result.error is not None:
            table.add_row("Error", f"[yellow]{result.error.value}[/yellow]")
        self.console.print(table)

        if preview_chars and result.payload:
            content_type = (result.response.content_type or "") if result.response else ""
            if content_type.startswith(("image/", "application/octet-stream")) and "svg" not in content_type:
                return
            preview = result.response.text()
            if len(preview) > preview_chars:
                preview = preview[: preview_chars - 3] + "..."
            self.console.print(Panel(
                Text(preview, style="white"),
                title="[bold blue]Payload[/bold blue]",
                title_align="left",
                border_style="blue",
                box=SIMPLE,
                padding=(0, 1),
            ))

    def display_partitions(self, partitions: List[Partition], active: List[str]) -> None:
        """Displays known partitions, marking the active ones."""
        if not partitions:
            self.display_info("No partitions found.")
            return
        active_names = set(active)
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Partition", style="bold")
        table.add_column("Version", justify="right")
        table.add_column("Created", style="dim")
        table.add_column("Active", justify="center")
        for partition in partitions:
            created = datetime.fromtimestamp(partition.created_at).strftime("%Y-%m-%d %H:%M:%S")
            marker = "[bold green]yes[/bold green]" if partition.name in active_names else "[dim]no[/dim]"
            table.add_row(partition.name, str(partition.version), created, marker)
        self.console.print(table)

    def display_stats(self, stats: Mapping[str, Any]) -> None:
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        for name, value in _flatten_stats(stats):
            table.add_row(name, "-" if value is None else str(value))
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)


def _flatten_stats(stats: Mapping[str, Any], parent: str = "") -> List[tuple]:
    rows = []
    for key, value in stats.items():
        name = f"{parent}.{key}" if parent else str(key)
        if isinstance(value, Mapping):
            rows.extend(_flatten_stats(value, name))
        else:
            rows.append((name, value))
    return rows
