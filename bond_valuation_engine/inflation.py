from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .errors import InvalidInputError
from .grace import year_index
from .rates import annual_to_period


class InflationIndexer:
    """
    Per-period indexation of principal from an annual inflation series.

    Each year's inflation is converted to a per-coupon-period rate with
    effective compounding; the factor of period p is the product of (1 + pi_k)
    over k = 1..p. With indexation disabled every factor is 1, while the
    annual/period rates are still reported for the schedule.
    """

    def __init__(
        self,
        annual_series: Sequence[float],
        coupons_per_year: int,
        periods_per_year: float,
        enabled: bool = True,
    ):
        if coupons_per_year <= 0:
            raise InvalidInputError("coupons_per_year must be positive", field="coupon_frequency")
        self.annual_series: Tuple[float, ...] = tuple(float(x) for x in annual_series)
        self.coupons_per_year = int(coupons_per_year)
        self.periods_per_year = float(periods_per_year)
        self.enabled = bool(enabled)

    def _year(self, period: int) -> int:
        idx = year_index(period, self.coupons_per_year)
        if idx >= len(self.annual_series):
            raise InvalidInputError(
                f"No inflation for year {idx + 1} (series has {len(self.annual_series)})",
                field="inflation_series",
                period=period,
            )
        return idx

    def annual_rate(self, period: int) -> float:
        return self.annual_series[self._year(period)]

    def period_rate(self, period: int) -> float:
        return annual_to_period(self.annual_rate(period), self.periods_per_year)

    def factors(self, n_periods: int) -> np.ndarray:
        """Cumulative factors for periods 0..n_periods (factor(0) == 1)."""
        if not self.enabled:
            return np.ones(n_periods + 1, dtype=float)
        step = np.array([1.0 + self.period_rate(p) for p in range(1, n_periods + 1)], dtype=float)
        return np.concatenate(([1.0], np.cumprod(step)))

    def factor(self, period: int) -> float:
        if period < 0:
            raise ValueError(f"period must be >= 0, got {period}")
        return float(self.factors(period)[-1])

    def index(self, principal: float, period: int) -> float:
        return principal * self.factor(period)
