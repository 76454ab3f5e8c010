from __future__ import annotations

import math
from typing import NamedTuple, Sequence

from .bonds import GraceType
from .errors import InvalidInputError


class GracePolicy(NamedTuple):
    amortizes: bool
    interest_capitalizes: bool


_POLICIES = {
    GraceType.NONE: GracePolicy(amortizes=True, interest_capitalizes=False),
    GraceType.PARTIAL: GracePolicy(amortizes=False, interest_capitalizes=False),
    GraceType.TOTAL: GracePolicy(amortizes=False, interest_capitalizes=True),
}


def classify(code) -> GracePolicy:
    """
    none    -> principal amortizes, interest paid in cash
    partial -> no amortization, interest paid in cash
    total   -> no amortization, interest capitalizes into principal
    """
    return _POLICIES[GraceType.parse(code)]


def year_index(period: int, periods_per_year: int) -> int:
    """0-based year of term that coupon period `period` (1-based) falls in."""
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")
    return math.ceil(period / periods_per_year) - 1


def grace_for_period(series: Sequence, period: int, periods_per_year: int) -> GraceType:
    idx = year_index(period, periods_per_year)
    if idx >= len(series):
        raise InvalidInputError(
            f"No grace code for year {idx + 1} (series has {len(series)})",
            field="grace_series",
            period=period,
        )
    return GraceType.parse(series[idx])
