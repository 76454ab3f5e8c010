"""
American Bond Valuation Engine

Modules:
- bonds: bond terms + cost structure (immutable inputs)
- rates: nominal/effective annual -> coupon period rate conversion
- grace: grace-period classification (none/partial/total)
- inflation: per-period inflation indexation factors
- cashflows: schedule generation (issuer/investor flows per period)
- solver: NPV + generic root finder for effective costs/yields
- metrics: price, NPVs, TCEA/TREA, duration, convexity
- valuation: single-bond facade + bounded batch runner
- config / errors / utils: settings, error taxonomy, dates + rounding
"""
from .bonds import (
    AmortizationMethod,
    BondTerms,
    Capitalization,
    CostStructure,
    CouponFrequency,
    GraceType,
    RateType,
)
from .cashflows import CashFlowPeriod, Schedule, generate_schedule
from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import (
    ConvergenceError,
    InvalidInputError,
    InvalidRateError,
    InvalidScheduleError,
    SeriesLengthMismatchError,
    ValuationError,
)
from .metrics import MetricsResult, compute_metrics
from .solver import find_root, npv, solve_effective_rate
from .valuation import ValuationOutcome, ValuationRequest, value_bond, value_bonds

__all__ = [
    "AmortizationMethod",
    "BondTerms",
    "Capitalization",
    "CashFlowPeriod",
    "ConvergenceError",
    "CostStructure",
    "CouponFrequency",
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "GraceType",
    "InvalidInputError",
    "InvalidRateError",
    "InvalidScheduleError",
    "MetricsResult",
    "RateType",
    "Schedule",
    "SeriesLengthMismatchError",
    "ValuationError",
    "ValuationOutcome",
    "ValuationRequest",
    "compute_metrics",
    "find_root",
    "generate_schedule",
    "npv",
    "solve_effective_rate",
    "value_bond",
    "value_bonds",
]
