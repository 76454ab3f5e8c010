from __future__ import annotations

import math
from typing import Optional

from .bonds import RateType
from .errors import InvalidRateError


def _check_periodicity(value: float, field: str) -> None:
    if value is None or not value > 0:
        raise InvalidRateError(f"{field} must be positive, got {value!r}", field=field)


def _check_rate(rate: float, field: str = "annual_rate") -> None:
    if rate is None or not math.isfinite(rate) or rate < 0:
        raise InvalidRateError(f"{field} must be >= 0, got {rate!r}", field=field)


def periods_per_year(day_basis: int, period_days: int) -> float:
    """Number of periods of `period_days` in a year of `day_basis` days."""
    _check_periodicity(day_basis, "day_basis")
    _check_periodicity(period_days, "period_days")
    return day_basis / period_days


def nominal_to_effective(nominal_rate: float, capitalization_periods: float) -> float:
    """TEA = (1 + j/m)^m - 1."""
    _check_rate(nominal_rate)
    _check_periodicity(capitalization_periods, "capitalization_periods")
    m = capitalization_periods
    return (1.0 + nominal_rate / m) ** m - 1.0


def annual_to_period(annual_effective: float, periods: float) -> float:
    """
    Effective annual rate -> effective rate of one period, compounding (not linear).

    Also used for inflation, so rates in (-1, 0) are accepted here.
    """
    _check_periodicity(periods, "periods_per_year")
    if annual_effective <= -1.0:
        raise InvalidRateError(f"annual rate must be > -1, got {annual_effective!r}", field="annual_rate")
    return (1.0 + annual_effective) ** (1.0 / periods) - 1.0


def period_to_annual(period_rate: float, periods: float) -> float:
    """Inverse of annual_to_period."""
    _check_periodicity(periods, "periods_per_year")
    if period_rate <= -1.0:
        raise InvalidRateError(f"period rate must be > -1, got {period_rate!r}", field="period_rate")
    return (1.0 + period_rate) ** periods - 1.0


def effective_annual_rate(
    annual_rate: float,
    rate_type: RateType,
    capitalization_periods: Optional[float] = None,
) -> float:
    _check_rate(annual_rate)
    try:
        rate_type = RateType(rate_type)
    except ValueError:
        raise InvalidRateError(f"Unrecognized rate_type: {rate_type!r}", field="rate_type") from None
    if rate_type is RateType.NOMINAL:
        if capitalization_periods is None:
            raise InvalidRateError("Nominal rate requires a capitalization periodicity", field="capitalization")
        return nominal_to_effective(annual_rate, capitalization_periods)
    return annual_rate


def period_effective_rate(
    annual_rate: float,
    rate_type: RateType,
    coupon_periods_per_year: float,
    capitalization_periods: Optional[float] = None,
) -> float:
    """
    Effective rate for one coupon period.

    Nominal rates are first compounded to an effective annual rate with their
    own capitalization periodicity, then brought down to the coupon period.
    """
    _check_periodicity(coupon_periods_per_year, "coupon_periods_per_year")
    tea = effective_annual_rate(annual_rate, rate_type, capitalization_periods)
    return annual_to_period(tea, coupon_periods_per_year)
