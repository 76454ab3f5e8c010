from __future__ import annotations

import logging
import math
import numbers
from dataclasses import asdict, dataclass, replace
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .bonds import AmortizationMethod, BondTerms, CostStructure, GraceType
from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import InvalidInputError, InvalidScheduleError, ValuationError
from .grace import classify, grace_for_period
from .inflation import InflationIndexer
from .rates import annual_to_period, effective_annual_rate
from .utils import coupon_dates, round_half_up

logger = logging.getLogger(__name__)

RATE_COLUMNS = ("annual_inflation", "period_inflation")
FACTOR_COLUMNS = ("weighted_discounted_flow", "convexity_factor")


@dataclass(frozen=True)
class CashFlowPeriod:
    period: int
    date: pd.Timestamp
    annual_inflation: float
    period_inflation: float
    grace: Optional[GraceType]
    bond_capital: float              # balance carried in, before this period's indexation
    bond_indexed: float              # balance after indexation; coupon base
    nominal_balance: float           # bond_indexed deflated to issue-date units
    coupon: float                    # interest accrued, paid or capitalized
    capitalized_interest: float
    amortization: float
    nominal_amortization: float
    installment: float
    premium: float
    tax_shield: float
    issuer_flow: float
    issuer_flow_with_shield: float
    investor_flow: float
    discounted_flow: Optional[float] = None
    weighted_discounted_flow: Optional[float] = None
    convexity_factor: Optional[float] = None


@dataclass(frozen=True)
class ScheduleIntermediates:
    """Rates and counts derived from the terms before the fold runs."""
    effective_annual_rate: float
    period_rate: float
    coupons_per_year: int
    periods_per_year: float
    total_periods: int
    issuer_initial_costs: float
    investor_initial_costs: float
    discount_rate: Optional[float] = None
    discount_period_rate: Optional[float] = None


@dataclass(frozen=True)
class Schedule:
    terms: BondTerms
    periods: Tuple[CashFlowPeriod, ...]
    intermediates: ScheduleIntermediates

    def __len__(self) -> int:
        return len(self.periods)

    def __iter__(self):
        return iter(self.periods)

    @property
    def periods_per_year(self) -> float:
        return self.intermediates.periods_per_year

    def _column(self, name: str) -> np.ndarray:
        return np.array([getattr(p, name) for p in self.periods], dtype=float)

    @property
    def issuer_flows(self) -> np.ndarray:
        return self._column("issuer_flow")

    @property
    def issuer_flows_with_shield(self) -> np.ndarray:
        return self._column("issuer_flow_with_shield")

    @property
    def investor_flows(self) -> np.ndarray:
        return self._column("investor_flow")

    def discounted(self, annual_rate: float) -> "Schedule":
        """New schedule with the discounting columns filled at `annual_rate` (effective annual)."""
        r = annual_to_period(annual_rate, self.periods_per_year)
        periods = [self.periods[0]]
        for p in self.periods[1:]:
            df = (1.0 + r) ** (-p.period)
            pv = p.investor_flow * df
            periods.append(
                replace(
                    p,
                    discounted_flow=pv,
                    weighted_discounted_flow=pv * p.period / self.periods_per_year,
                    convexity_factor=pv * p.period * (p.period + 1),
                )
            )
        inter = replace(self.intermediates, discount_rate=annual_rate, discount_period_rate=r)
        return Schedule(self.terms, tuple(periods), inter)

    def to_frame(self, rounded: bool = False, settings: EngineSettings = DEFAULT_SETTINGS) -> pd.DataFrame:
        """
        Tabular view of the schedule, one row per period.

        Rounding (half-up) happens here only, for display/persistence; the
        schedule itself keeps full precision.
        """
        df = pd.DataFrame([asdict(p) for p in self.periods])
        df["grace"] = [p.grace.value if p.grace is not None else None for p in self.periods]
        if not rounded:
            return df

        for col in df.columns:
            if col in ("period", "date", "grace"):
                continue
            decimals = settings.rate_decimals if col in RATE_COLUMNS + FACTOR_COLUMNS else settings.money_decimals
            df[col] = df[col].map(lambda v: round_half_up(v, decimals, settings.rounding))
        return df


def _remaining_amortizing(grace: List[GraceType], period: int) -> int:
    return sum(1 for g in grace[period - 1:] if g is GraceType.NONE)


def _amortization(
    method: AmortizationMethod,
    balance: float,
    rate: float,
    period: int,
    total_periods: int,
    remaining: int,
) -> float:
    if method is AmortizationMethod.AMERICAN:
        return balance if period == total_periods else 0.0

    if method is AmortizationMethod.STRAIGHT_LINE:
        return balance / remaining

    if method is AmortizationMethod.LEVEL_INSTALLMENT:
        if rate == 0.0:
            return balance / remaining
        payment = balance * rate / (1.0 - (1.0 + rate) ** (-remaining))
        return payment - balance * rate

    raise InvalidInputError(f"Unsupported amortization method: {method!r}", field="amortization")


def _check_costs(terms: BondTerms, costs: CostStructure) -> None:
    """Percentages, when given, must agree with the totals charged at period 0."""
    if not isinstance(costs, CostStructure):
        raise InvalidInputError(f"costs must be a CostStructure, got {type(costs).__name__}", field="costs")

    for side, pct, total in (
        ("issuer", costs.issuer_pct, costs.issuer_total),
        ("investor", costs.investor_pct, costs.investor_total),
    ):
        if pct == 0.0:
            continue
        expected = terms.commercial_value * pct
        if abs(total - expected) > 1e-9 * max(1.0, expected):
            raise InvalidInputError(
                f"{side}_total ({total}) does not match commercial_value x {side} percentages ({expected})",
                field="costs",
            )


def _check_discount_rate(rate) -> None:
    if isinstance(rate, bool) or not isinstance(rate, numbers.Real) or not math.isfinite(rate) or rate <= -1.0:
        raise InvalidInputError(f"discount_rate must be a finite rate > -1, got {rate!r}", field="discount_rate")


def generate_schedule(
    terms: BondTerms,
    costs: CostStructure,
    discount_rate: Optional[float] = None,
) -> Schedule:
    """
    Cash-flow schedule for periods 0..N, N = term_years * coupons_per_year.

    The principal is carried between periods in issue-date units (B); each
    period indexes it with the cumulative inflation factor, accrues the coupon
    on the indexed balance, then folds amortization and capitalized interest
    back into B for the next period.

    Sign convention: issuer pays (negative flows) after issuance, investor
    receives (positive flows). Period 0 holds the issuance exchange net of
    initial costs.

    If `discount_rate` (effective annual) is given, the discounting columns
    used for duration/convexity are filled as well.
    """
    if not isinstance(terms, BondTerms):
        raise InvalidInputError(f"terms must be a BondTerms, got {type(terms).__name__}", field="terms")

    try:
        _check_costs(terms, costs)
        if discount_rate is not None:
            _check_discount_rate(discount_rate)
        schedule = _build(terms, costs)
        if discount_rate is not None:
            schedule = schedule.discounted(discount_rate)
    except ValuationError as exc:
        raise exc.with_bond_id(terms.bond_id)
    return schedule


def _build(terms: BondTerms, costs: CostStructure) -> Schedule:
    n = terms.total_periods
    ppy = terms.periods_per_year
    cpy = terms.coupons_per_year

    tea = effective_annual_rate(terms.annual_rate, terms.rate_type, terms.capitalization_periods_per_year)
    rate = annual_to_period(tea, ppy)

    grace = [grace_for_period(terms.grace_series, p, cpy) for p in range(1, n + 1)]
    if grace[-1] is not GraceType.NONE:
        raise InvalidScheduleError(
            f"Final period has {grace[-1].value} grace; principal cannot be repaid at maturity",
            period=n,
            field="grace_series",
        )

    indexer = InflationIndexer(terms.inflation_series, cpy, ppy, enabled=terms.inflation_indexed)
    factors = indexer.factors(n)
    dates = coupon_dates(terms.issue_date, terms.coupon_frequency.months, n)

    logger.debug(
        "Generating schedule bond=%s periods=%s tea=%.10f period_rate=%.10f method=%s indexed=%s",
        terms.bond_id, n, tea, rate, terms.amortization.value, terms.inflation_indexed,
    )

    issuer_0 = terms.commercial_value - costs.issuer_total
    investor_0 = -terms.commercial_value - costs.investor_total
    periods: List[CashFlowPeriod] = [
        CashFlowPeriod(
            period=0,
            date=dates[0],
            annual_inflation=0.0,
            period_inflation=0.0,
            grace=None,
            bond_capital=0.0,
            bond_indexed=0.0,
            nominal_balance=0.0,
            coupon=0.0,
            capitalized_interest=0.0,
            amortization=0.0,
            nominal_amortization=0.0,
            installment=0.0,
            premium=0.0,
            tax_shield=0.0,
            issuer_flow=issuer_0,
            issuer_flow_with_shield=issuer_0,
            investor_flow=investor_0,
        )
    ]

    base = float(terms.nominal_value)
    for p in range(1, n + 1):
        g = grace[p - 1]
        policy = classify(g)
        f = float(factors[p])

        carried = base * float(factors[p - 1])
        indexed = base * f
        coupon = indexed * rate

        capitalized = coupon if policy.interest_capitalizes else 0.0
        paid_coupon = coupon - capitalized

        if policy.amortizes:
            remaining = _remaining_amortizing(grace, p)
            amort = _amortization(terms.amortization, indexed, rate, p, n, remaining)
        else:
            amort = 0.0

        premium = indexed * terms.premium_pct if p == n else 0.0
        installment = paid_coupon + amort
        shield = paid_coupon * terms.income_tax_rate
        issuer = -(installment + premium)

        periods.append(
            CashFlowPeriod(
                period=p,
                date=dates[p],
                annual_inflation=indexer.annual_rate(p),
                period_inflation=indexer.period_rate(p),
                grace=g,
                bond_capital=carried,
                bond_indexed=indexed,
                nominal_balance=base,
                coupon=coupon,
                capitalized_interest=capitalized,
                amortization=amort,
                nominal_amortization=amort / f,
                installment=installment,
                premium=premium,
                tax_shield=shield,
                issuer_flow=issuer,
                issuer_flow_with_shield=issuer + shield,
                investor_flow=installment + premium,
            )
        )

        base = base - amort / f + capitalized / f
        if base < -1e-9 * terms.nominal_value:
            raise InvalidScheduleError(f"Principal turned negative ({base})", period=p)

    if abs(base) > 1e-9 * terms.nominal_value:
        raise InvalidScheduleError(f"Principal not repaid at maturity (residual {base})", period=n)

    intermediates = ScheduleIntermediates(
        effective_annual_rate=tea,
        period_rate=rate,
        coupons_per_year=cpy,
        periods_per_year=ppy,
        total_periods=n,
        issuer_initial_costs=costs.issuer_total,
        investor_initial_costs=costs.investor_total,
    )
    return Schedule(terms, tuple(periods), intermediates)
