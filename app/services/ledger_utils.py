"""
Arithmetic shared by the leave and salary ledgers: day counting, money rounding
and pagination windows.
"""
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple, Union

from app.schemas.common import Pagination

Number = Union[int, float, Decimal]

_CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def round2(value: Number) -> float:
    """Round half-up to two decimals (29.995 -> 30.0, not banker's rounding)."""
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def count_leave_days(start: date, end: date, is_half_day: bool = False) -> float:
    """Inclusive day count of a leave range; a half-day request is always 0.5."""
    if is_half_day:
        return 0.5
    return float(abs((end - start).days) + 1)


def page_window(page: int, limit: int) -> Tuple[int, int]:
    """Return (skip, limit) for a 1-based page."""
    page = max(page, 1)
    return (page - 1) * limit, limit


def pagination_block(total: int, page: int, limit: int) -> Pagination:
    return Pagination(
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if limit else 0,
    )
