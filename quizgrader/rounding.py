"""Rounding helpers shared by the scorer and the reporting views."""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: Decimal | int | float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> int:
    """Integer percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_half_up(Decimal(part) * 100 / Decimal(whole))


def mean(values: list[int]) -> int:
    """Rounded mean, 0 for an empty list."""
    if not values:
        return 0
    return round_half_up(Decimal(sum(values)) / Decimal(len(values)))
