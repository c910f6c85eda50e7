import pytest
from unittest.mock import MagicMock

from rich.panel import Panel
from rich.table import Table

from rescache.domain.models.common import CacheKey, PartitionName
from rescache.domain.models.policy import ErrorKind, Outcome, ResourceResult, ResponseSource
from rescache.domain.models.resource import Partition, ResourceResponse
from rescache.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    return ConsoleDisplay(console=mock_console)


def make_result(payload: bytes = b"hello", content_type: str = "text/plain", outcome=Outcome.MISS, error=None):
    return ResourceResult(
        key=CacheKey("GET http://shop.test/"),
        rule_name="pages",
        outcome=outcome,
        source=ResponseSource.NETWORK,
        response=ResourceResponse(status=200, payload=payload, metadata={"content-type": content_type}),
        error=error,
    )


def printed(mock_console: MagicMock):
    return [c.args[0] for c in mock_console.print.call_args_list]


def test_display_result_prints_table_and_preview(console_display, mock_console):
    console_display.display_result(make_result())

    objects = printed(mock_console)
    assert isinstance(objects[0], Table)
    assert isinstance(objects[1], Panel)


def test_display_result_skips_binary_preview(console_display, mock_console):
    console_display.display_result(make_result(payload=b"\xff\xd8", content_type="image/jpeg"))

    assert len(printed(mock_console)) == 1


def test_display_result_preview_can_be_disabled(console_display, mock_console):
    console_display.display_result(make_result(), preview_chars=0)

    assert len(printed(mock_console)) == 1


def test_display_result_shows_error_row(console_display, mock_console):
    result = make_result(outcome=Outcome.DEGRADED, error=ErrorKind.STALE_SERVED_DUE_TO_OUTAGE)
    console_display.display_result(result, preview_chars=0)

    table = printed(mock_console)[0]
    assert "Error" in table.columns[0]._cells


def test_display_partitions_marks_active(console_display, mock_console):
    partitions = [
        Partition(name=PartitionName("api-v1"), version=1, created_at=0.0),
        Partition(name=PartitionName("api-v2"), version=2, created_at=0.0),
    ]
    console_display.display_partitions(partitions, active=["api-v2"])

    table = printed(mock_console)[0]
    assert table.row_count == 2
    assert "yes" in table.columns[3]._cells[1]


def test_display_partitions_empty(console_display, mock_console):
    console_display.display_partitions([], active=[])

    assert isinstance(printed(mock_console)[0], Panel)


def test_display_stats_flattens_nested_mappings(console_display, mock_console):
    console_display.display_stats({"outcomes": {"hit": 1, "miss": 2}, "active_version": None})

    table = printed(mock_console)[0]
    assert table.columns[0]._cells == ["outcomes.hit", "outcomes.miss", "active_version"]
    assert table.columns[1]._cells == ["1", "2", "-"]


def test_display_error(console_display, mock_console):
    console_display.display_error("Something went wrong")

    panel = printed(mock_console)[0]
    assert isinstance(panel, Panel)
    assert "Error" in panel.title
