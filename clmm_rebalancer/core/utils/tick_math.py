"""Tick snapping and range helpers.

Ticks are signed integers; every rounding below is floor/ceil based (never
truncation toward zero) so negative ticks snap to the correct spacing multiple.
"""

from __future__ import annotations


def round_tick_down(tick: int, spacing: int) -> int:
    """Largest multiple of spacing <= tick."""
    return (tick // spacing) * spacing


def round_tick_up(tick: int, spacing: int) -> int:
    """Smallest multiple of spacing >= tick."""
    return -((-tick) // spacing) * spacing


def is_tick_in_range(tick_lower: int, tick_upper: int, current_tick: int) -> bool:
    return tick_lower <= current_tick < tick_upper


def tightest_range(current_tick: int, tick_spacing: int) -> tuple[int, int]:
    lower = round_tick_down(current_tick, tick_spacing)
    return lower, lower + tick_spacing


def centered_range(
    current_tick: int, tick_spacing: int, width: int
) -> tuple[int, int]:
    """Center ``width`` ticks on current_tick, snapping each bound outward.

    A width of one spacing or less collapses to the tightest bin: snapping a
    one-bin window outward would otherwise grow it to two bins.
    """
    if width <= tick_spacing:
        return tightest_range(current_tick, tick_spacing)
    ticks_below = width // 2
    ticks_above = width - ticks_below
    lower = round_tick_down(current_tick - ticks_below, tick_spacing)
    upper = round_tick_up(current_tick + ticks_above, tick_spacing)
    return lower, upper


def distance_to_edge(tick_lower: int, tick_upper: int, current_tick: int) -> int:
    return min(current_tick - tick_lower, tick_upper - current_tick)


def ranges_equivalent(
    old: tuple[int, int], new: tuple[int, int], tick_spacing: int
) -> bool:
    """True when both bounds differ by less than one spacing."""
    return (
        abs(old[0] - new[0]) < tick_spacing and abs(old[1] - new[1]) < tick_spacing
    )
