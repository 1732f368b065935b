from __future__ import annotations

from datetime import UTC
from zoneinfo import ZoneInfo

import pytest

from watchpost_core.escalation import count_operations_delay
from watchpost_core.timeunits import (
    convert_units_uptime,
    format_timestamp,
    parse_range_time,
    parse_simple_interval,
)
from watchpost_core.ui.operations import Operation


@pytest.mark.parametrize(
    ("value", "expected"),
    [("0", 0), ("90", 90), ("30m", 1800), ("1h", 3600), ("2d", 172800), ("1w", 604800), (60, 60)],
)
def test_parse_simple_interval(value, expected) -> None:
    assert parse_simple_interval(value) == expected


@pytest.mark.parametrize("value", [None, "", "{$ESC_PERIOD}", "1.5h", "-1"])
def test_parse_simple_interval_rejects(value) -> None:
    assert parse_simple_interval(value) is None


def test_convert_units_uptime() -> None:
    assert convert_units_uptime(0) == "00:00:00"
    assert convert_units_uptime(125) == "00:02:05"
    assert convert_units_uptime(90061) == "1 day, 01:01:01"
    assert convert_units_uptime(2 * 86400) == "2 days, 00:00:00"


def test_parse_range_time_uses_timezone() -> None:
    utc = parse_range_time("2030-01-01 00:00", UTC)
    berlin = parse_range_time("2030-01-01 00:00", ZoneInfo("Europe/Berlin"))
    assert utc - berlin == 3600
    assert format_timestamp(utc, UTC) == "2030-01-01 00:00:00"

    with pytest.raises(ValueError):
        parse_range_time("01/01/2030", UTC)


def _op(step_from: int, step_to: int, period: str = "0") -> Operation:
    return Operation(esc_step_from=step_from, esc_step_to=step_to, esc_period=period)


def test_count_operations_delay_uses_default_for_zero_period() -> None:
    delays = count_operations_delay([_op(1, 1), _op(2, 5, "10m")], "1h")
    assert delays == {1: 0, 2: 3600, 3: 4200}


def test_count_operations_delay_takes_shortest_overlapping_period() -> None:
    delays = count_operations_delay([_op(1, 3, "30m"), _op(2, 2, "5m"), _op(4, 4)], "1h")
    assert delays[1] == 0
    assert delays[2] == 1800
    assert delays[3] == 1800 + 300
    assert delays[4] == 1800 + 300 + 1800
    assert delays[5] == 1800 + 300 + 1800 + 3600


def test_count_operations_delay_unknown_period_poisons_later_steps() -> None:
    delays = count_operations_delay([_op(1, 1), _op(3, 3, "5m")], "{$ESC_PERIOD}")
    assert delays[1] == 0
    assert delays[2] is None
    assert delays[3] is None
