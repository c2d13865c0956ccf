"""Decimal rounding and pagination arithmetic shared by the read-side services."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: Decimal | int | float, places: int = 0) -> Decimal:
    """Round like a person would: 2.5 -> 3, 0.125 -> 0.13."""
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def mean_half_up(values: list[int] | list[Decimal], places: int = 0) -> Decimal | None:
    """Arithmetic mean rounded half-up, or None for an empty list."""
    if not values:
        return None
    return round_half_up(Decimal(sum(values)) / Decimal(len(values)), places)


def page_window(page: int, limit: int | None, *, default: int, maximum: int) -> tuple[int, int, int]:
    """Normalize page/limit and return (page, limit, offset)."""
    page = max(page, 1)
    limit = min(max(limit or default, 1), maximum)
    return page, limit, (page - 1) * limit
