from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from .cashflows import Schedule
from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import InvalidInputError, ValuationError
from .rates import annual_to_period
from .solver import npv, solve_effective_rate
from .utils import round_half_up

logger = logging.getLogger(__name__)

_RATE_FIELDS = ("issuer_effective_cost", "issuer_effective_cost_with_shield", "investor_effective_yield")


@dataclass(frozen=True)
class MetricsResult:
    """
    Metrics of one valued bond.

    `investor_npv` is the price plus the period-0 investor flow (the
    investor's gain or loss on purchase). `issuer_npv` is the NPV of the gross
    issuer flows, period 0 included, at the issuer's cost of capital; it is not
    the investor's utility restated from the issuer side.
    """
    current_price: float
    investor_npv: float
    issuer_npv: float
    issuer_effective_cost: float
    issuer_effective_cost_with_shield: float
    investor_effective_yield: float
    macaulay_duration: float
    modified_duration: float
    convexity: float
    decision_ratio: float
    computed_at: pd.Timestamp

    def as_dict(self, rounded: bool = False, settings: EngineSettings = DEFAULT_SETTINGS) -> Dict[str, object]:
        out = asdict(self)
        if not rounded:
            return out
        for k, v in out.items():
            if k == "computed_at":
                continue
            decimals = settings.rate_decimals if k in _RATE_FIELDS else settings.money_decimals
            out[k] = round_half_up(v, decimals, settings.rounding)
        return out


def present_values(flows: Sequence[float], annual_rate: float, periods_per_year: float) -> np.ndarray:
    """PV of each flow; flows[k] is paid at period k + 1."""
    cf = np.asarray(flows, dtype=float)
    periods = np.arange(1, len(cf) + 1, dtype=float)
    return cf * (1.0 + annual_rate) ** (-periods / periods_per_year)


def _checked_pv(flows, annual_rate, periods_per_year):
    pv = present_values(flows, annual_rate, periods_per_year)
    total = float(pv.sum())
    if total <= 0:
        raise InvalidInputError(
            f"Present value of future flows must be positive for duration (got {total})", field="flows"
        )
    return pv, total


def macaulay_duration(flows: Sequence[float], annual_rate: float, periods_per_year: float) -> float:
    """Macaulay duration in years of flows paid at periods 1..N."""
    pv, total = _checked_pv(flows, annual_rate, periods_per_year)
    t = np.arange(1, len(pv) + 1, dtype=float) / periods_per_year
    return float(np.sum(t * pv) / total)


def modified_duration(flows: Sequence[float], annual_rate: float, periods_per_year: float) -> float:
    period_rate = annual_to_period(annual_rate, periods_per_year)
    return macaulay_duration(flows, annual_rate, periods_per_year) / (1.0 + period_rate)


def convexity(flows: Sequence[float], annual_rate: float, periods_per_year: float) -> float:
    """
    sum t (t + 1/n) PV / ((1 + i)^2 sum PV), t in years, i the period rate.
    """
    pv, total = _checked_pv(flows, annual_rate, periods_per_year)
    period_rate = annual_to_period(annual_rate, periods_per_year)
    t = np.arange(1, len(pv) + 1, dtype=float) / periods_per_year
    return float(np.sum(t * (t + 1.0 / periods_per_year) * pv) / ((1.0 + period_rate) ** 2 * total))


def compute_metrics(
    schedule: Schedule,
    issuer_discount_rate: float,
    investor_discount_rate: float,
    settings: Optional[EngineSettings] = None,
    computed_at: Optional[pd.Timestamp] = None,
) -> MetricsResult:
    """
    Valuation metrics of a schedule.

    Discount rates are effective annual. Period 0 is the issuance exchange and
    only enters the NPVs and the solved rates, never price/duration/convexity.
    `computed_at` defaults to now; pass it explicitly for reproducible output.
    """
    settings = settings or DEFAULT_SETTINGS
    n = schedule.periods_per_year
    bond_id = schedule.terms.bond_id

    try:
        for name, r in (("issuer_discount_rate", issuer_discount_rate), ("investor_discount_rate", investor_discount_rate)):
            if r is None or not np.isfinite(r) or r <= -1.0:
                raise InvalidInputError(f"{name} must be a finite rate > -1, got {r!r}", field=name)

        investor = schedule.investor_flows
        issuer = schedule.issuer_flows
        issuer_shield = schedule.issuer_flows_with_shield

        future = investor[1:]
        price = float(present_values(future, investor_discount_rate, n).sum())

        mac = macaulay_duration(future, investor_discount_rate, n)
        mod = modified_duration(future, investor_discount_rate, n)
        conv = convexity(future, investor_discount_rate, n)

        tcea = solve_effective_rate(issuer, n, settings)
        tcea_shield = solve_effective_rate(issuer_shield, n, settings)
        trea = solve_effective_rate(investor, n, settings)
    except ValuationError as exc:
        raise exc.with_bond_id(bond_id)

    result = MetricsResult(
        current_price=price,
        investor_npv=price + float(investor[0]),
        issuer_npv=npv(issuer, issuer_discount_rate, n),
        issuer_effective_cost=tcea,
        issuer_effective_cost_with_shield=tcea_shield,
        investor_effective_yield=trea,
        macaulay_duration=mac,
        modified_duration=mod,
        convexity=conv,
        decision_ratio=mac + conv,
        computed_at=pd.Timestamp.now(tz="UTC") if computed_at is None else pd.Timestamp(computed_at),
    )
    logger.debug("Metrics bond=%s price=%.6f tcea=%.8f trea=%.8f", bond_id, price, tcea, trea)
    return result
