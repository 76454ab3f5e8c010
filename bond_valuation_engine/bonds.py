from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import InvalidInputError, InvalidRateError, SeriesLengthMismatchError


class CouponFrequency(str, Enum):
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    FOUR_MONTHLY = "four-monthly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"

    @property
    def days(self) -> int:
        """Length of one coupon period in days (30-day months)."""
        return _FREQUENCY_DAYS[self]

    @property
    def months(self) -> int:
        return self.days // 30

    @property
    def per_year(self) -> int:
        return 12 // self.months


_FREQUENCY_DAYS = {
    CouponFrequency.MONTHLY: 30,
    CouponFrequency.BIMONTHLY: 60,
    CouponFrequency.QUARTERLY: 90,
    CouponFrequency.FOUR_MONTHLY: 120,
    CouponFrequency.SEMIANNUAL: 180,
    CouponFrequency.ANNUAL: 360,
}


class Capitalization(str, Enum):
    DAILY = "daily"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    FOUR_MONTHLY = "four-monthly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"

    @property
    def days(self) -> int:
        return _CAPITALIZATION_DAYS[self]


_CAPITALIZATION_DAYS = {
    Capitalization.DAILY: 1,
    Capitalization.BIWEEKLY: 15,
    Capitalization.MONTHLY: 30,
    Capitalization.BIMONTHLY: 60,
    Capitalization.QUARTERLY: 90,
    Capitalization.FOUR_MONTHLY: 120,
    Capitalization.SEMIANNUAL: 180,
    Capitalization.ANNUAL: 360,
}


class RateType(str, Enum):
    EFFECTIVE = "effective"
    NOMINAL = "nominal"


class GraceType(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    TOTAL = "total"

    @classmethod
    def parse(cls, code: Union["GraceType", str]) -> "GraceType":
        """Accepts enum members, names ("partial") and single-letter codes (S/P/T)."""
        if isinstance(code, cls):
            return code
        if isinstance(code, str):
            key = code.strip().lower()
            if key in _GRACE_CODES:
                return _GRACE_CODES[key]
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidInputError(f"Unrecognized grace code: {code!r}", field="grace_series")


_GRACE_CODES = {"s": GraceType.NONE, "p": GraceType.PARTIAL, "t": GraceType.TOTAL}


class AmortizationMethod(str, Enum):
    AMERICAN = "american"              # bullet: full balance repaid at maturity
    STRAIGHT_LINE = "straight-line"    # equal principal over remaining non-grace periods
    LEVEL_INSTALLMENT = "level-installment"


def _parse_enum(enum_cls, value, field: str, bond_id: Optional[str], error=InvalidInputError):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise error(f"Unrecognized {field}: {value!r}", bond_id=bond_id, field=field) from None


def _finite(x) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, bool) and math.isfinite(x)


@dataclass(frozen=True)
class BondTerms:
    """
    Issuance terms of an American-method bond.

    Series inputs are per year of term; they are stored as tuples so that a
    BondTerms instance is fully immutable once validated.
    """
    nominal_value: float
    commercial_value: float
    term_years: int
    coupon_frequency: CouponFrequency
    day_count_basis: int
    rate_type: RateType
    annual_rate: float
    issue_date: pd.Timestamp
    inflation_series: Tuple[float, ...]
    grace_series: Tuple[GraceType, ...]
    capitalization: Optional[Capitalization] = None
    premium_pct: float = 0.0
    income_tax_rate: float = 0.0
    inflation_indexed: bool = False
    amortization: AmortizationMethod = AmortizationMethod.AMERICAN
    bond_id: Optional[str] = None

    def __post_init__(self):
        bid = self.bond_id

        for name in ("nominal_value", "commercial_value"):
            v = getattr(self, name)
            if not _finite(v) or v <= 0:
                raise InvalidInputError(f"{name} must be a positive number, got {v!r}", bond_id=bid, field=name)

        if isinstance(self.term_years, bool) or not isinstance(self.term_years, numbers.Integral) or self.term_years <= 0:
            raise InvalidInputError(
                f"term_years must be a positive integer, got {self.term_years!r}", bond_id=bid, field="term_years"
            )

        if self.day_count_basis not in (360, 365):
            raise InvalidInputError(
                f"day_count_basis must be 360 or 365, got {self.day_count_basis!r}", bond_id=bid, field="day_count_basis"
            )

        object.__setattr__(self, "coupon_frequency", _parse_enum(CouponFrequency, self.coupon_frequency, "coupon_frequency", bid))
        object.__setattr__(self, "rate_type", _parse_enum(RateType, self.rate_type, "rate_type", bid, InvalidRateError))
        object.__setattr__(self, "amortization", _parse_enum(AmortizationMethod, self.amortization, "amortization", bid))

        if self.capitalization is not None:
            object.__setattr__(
                self, "capitalization",
                _parse_enum(Capitalization, self.capitalization, "capitalization", bid, InvalidRateError),
            )
        elif self.rate_type is RateType.NOMINAL:
            raise InvalidRateError("Nominal rate requires a capitalization periodicity", bond_id=bid, field="capitalization")

        if not _finite(self.annual_rate) or self.annual_rate < 0:
            raise InvalidRateError(f"annual_rate must be >= 0, got {self.annual_rate!r}", bond_id=bid, field="annual_rate")

        if not _finite(self.premium_pct) or self.premium_pct < 0:
            raise InvalidInputError(f"premium_pct must be >= 0, got {self.premium_pct!r}", bond_id=bid, field="premium_pct")

        if not _finite(self.income_tax_rate) or not (0.0 <= self.income_tax_rate < 1.0):
            raise InvalidInputError(
                f"income_tax_rate must be in [0, 1), got {self.income_tax_rate!r}", bond_id=bid, field="income_tax_rate"
            )

        try:
            object.__setattr__(self, "issue_date", pd.Timestamp(self.issue_date))
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid issue_date: {self.issue_date!r}", bond_id=bid, field="issue_date") from exc
        if pd.isna(self.issue_date):
            raise InvalidInputError("issue_date is missing", bond_id=bid, field="issue_date")

        object.__setattr__(self, "inflation_series", self._check_inflation(self.inflation_series))
        object.__setattr__(self, "grace_series", self._check_grace(self.grace_series))

    def _check_length(self, series: Sequence, field: str) -> None:
        if isinstance(series, (str, bytes)) or not hasattr(series, "__len__"):
            raise InvalidInputError(f"{field} must be a sequence, got {type(series).__name__}", bond_id=self.bond_id, field=field)
        if len(series) != self.term_years:
            raise SeriesLengthMismatchError(
                f"{field} must have {self.term_years} elements (got {len(series)})",
                bond_id=self.bond_id,
                field=field,
            )

    def _check_inflation(self, series: Sequence) -> Tuple[float, ...]:
        self._check_length(series, "inflation_series")
        out = []
        for i, x in enumerate(series):
            if not _finite(x) or x <= -1.0:
                raise InvalidInputError(
                    f"inflation_series[{i}] must be a finite rate > -1, got {x!r}",
                    bond_id=self.bond_id,
                    field="inflation_series",
                )
            out.append(float(x))
        return tuple(out)

    def _check_grace(self, series: Sequence) -> Tuple[GraceType, ...]:
        self._check_length(series, "grace_series")
        out = []
        for code in series:
            try:
                out.append(GraceType.parse(code))
            except InvalidInputError as exc:
                raise exc.with_bond_id(self.bond_id)
        return tuple(out)

    @property
    def coupons_per_year(self) -> int:
        return self.coupon_frequency.per_year

    @property
    def periods_per_year(self) -> float:
        """Coupon periods per year on the day-count basis (365/180 on a 365 basis)."""
        return self.day_count_basis / self.coupon_frequency.days

    @property
    def capitalization_periods_per_year(self) -> Optional[float]:
        if self.capitalization is None:
            return None
        return self.day_count_basis / self.capitalization.days

    @property
    def total_periods(self) -> int:
        return self.term_years * self.coupons_per_year


@dataclass(frozen=True)
class CostStructure:
    """
    Initial transaction costs as fractions of the commercial value, plus the
    absolute totals charged at issuance (period 0).
    """
    structuring_pct: float = 0.0
    placement_pct: float = 0.0
    issuer_flotation_pct: float = 0.0
    issuer_settlement_pct: float = 0.0
    investor_flotation_pct: float = 0.0
    investor_settlement_pct: float = 0.0
    issuer_total: float = 0.0
    investor_total: float = 0.0
    total: float = 0.0

    def __post_init__(self):
        for name in (
            "structuring_pct", "placement_pct", "issuer_flotation_pct", "issuer_settlement_pct",
            "investor_flotation_pct", "investor_settlement_pct", "issuer_total", "investor_total", "total",
        ):
            v = getattr(self, name)
            if not _finite(v) or v < 0:
                raise InvalidInputError(f"{name} must be a non-negative number, got {v!r}", field=name)

        if abs(self.total - (self.issuer_total + self.investor_total)) > 1e-6:
            raise InvalidInputError(
                f"total ({self.total}) != issuer_total + investor_total ({self.issuer_total + self.investor_total})",
                field="total",
            )

    @property
    def issuer_pct(self) -> float:
        return self.structuring_pct + self.placement_pct + self.issuer_flotation_pct + self.issuer_settlement_pct

    @property
    def investor_pct(self) -> float:
        return self.investor_flotation_pct + self.investor_settlement_pct

    @classmethod
    def from_percentages(
        cls,
        commercial_value: float,
        structuring: float = 0.0,
        placement: float = 0.0,
        issuer_flotation: float = 0.0,
        issuer_settlement: float = 0.0,
        investor_flotation: float = 0.0,
        investor_settlement: float = 0.0,
    ) -> "CostStructure":
        if not _finite(commercial_value) or commercial_value <= 0:
            raise InvalidInputError(f"commercial_value must be positive, got {commercial_value!r}", field="commercial_value")

        issuer_total = commercial_value * (structuring + placement + issuer_flotation + issuer_settlement)
        investor_total = commercial_value * (investor_flotation + investor_settlement)

        return cls(
            structuring_pct=structuring,
            placement_pct=placement,
            issuer_flotation_pct=issuer_flotation,
            issuer_settlement_pct=issuer_settlement,
            investor_flotation_pct=investor_flotation,
            investor_settlement_pct=investor_settlement,
            issuer_total=issuer_total,
            investor_total=investor_total,
            total=issuer_total + investor_total,
        )
