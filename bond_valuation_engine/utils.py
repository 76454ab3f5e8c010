from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import List

import pandas as pd


def coupon_dates(issue_date: pd.Timestamp, months: int, n_periods: int) -> List[pd.Timestamp]:
    """
    Payment dates for periods 0..n_periods, period 0 being the issue date.

    Each date is offset from the issue date directly (not chained), so month-end
    issues do not drift (Jan-31 -> Feb-28 -> Mar-31, never Mar-28).
    """
    if months <= 0:
        raise ValueError("months must be positive")
    if n_periods < 0:
        raise ValueError("n_periods must be non-negative")

    issue_date = pd.Timestamp(issue_date)
    return [issue_date + pd.DateOffset(months=months * p) for p in range(n_periods + 1)]


def round_half_up(value: float, decimals: int, rounding: str = ROUND_HALF_UP) -> float:
    """
    Round for display/persistence. Goes through Decimal(str(x)) so that 2.675
    rounds to 2.68 instead of binary-float 2.67.
    """
    if value is None or pd.isna(value):
        return value
    q = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(q, rounding=rounding))
