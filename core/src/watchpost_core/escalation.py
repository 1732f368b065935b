from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from watchpost_core.timeunits import parse_simple_interval

# An operation with esc_step_to == 0 repeats "forever"; this bounds the walk.
MAX_ESCALATION_STEP = 9999


class _EscalatedOperation(Protocol):
    esc_step_from: int
    esc_step_to: int
    esc_period: str


def count_operations_delay(
    operations: Iterable[_EscalatedOperation],
    default_period: str | int | None,
) -> dict[int, int | None]:
    """Compute when each escalation step starts, in seconds after the event.

    Step 1 always starts at 0. A step lasts for the shortest period among the
    operations covering it; a period of 0 means the action's default period,
    and steps no operation covers use the default period too. An unparsable
    period makes that step, and every later one, unknown (None).
    """

    def_period = parse_simple_interval(default_period)

    periods: dict[int, int | None] = {}
    max_step = 0

    for operation in operations:
        esc_period = parse_simple_interval(operation.esc_period)
        if esc_period == 0:
            esc_period = def_period

        step_from = int(operation.esc_step_from)
        step_to = int(operation.esc_step_to) or MAX_ESCALATION_STEP
        max_step = max(max_step, step_from)

        for step in range(step_from, step_to + 1):
            current = periods.get(step)
            if (
                step not in periods
                or esc_period is None
                or (current is not None and current > esc_period)
            ):
                periods[step] = esc_period

    delays: dict[int, int | None] = {1: 0}
    for step in range(1, max_step + 1):
        period = periods[step] if step in periods else def_period
        previous = delays[step]
        delays[step + 1] = previous + period if period is not None and previous is not None else None

    return delays
