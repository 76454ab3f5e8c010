from __future__ import annotations

from typing import Optional


class ValuationError(Exception):
    """
    Base error of the engine.

    Carries optional context (bond id, offending field, period index) so that
    callers can surface an actionable message without parsing strings.
    """

    def __init__(
        self,
        message: str,
        *,
        bond_id: Optional[str] = None,
        field: Optional[str] = None,
        period: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.bond_id = bond_id
        self.field = field
        self.period = period

    @property
    def kind(self) -> str:
        return type(self).__name__

    def with_bond_id(self, bond_id: Optional[str]) -> "ValuationError":
        if self.bond_id is None:
            self.bond_id = bond_id
        return self

    def __str__(self) -> str:
        ctx = []
        if self.bond_id is not None:
            ctx.append(f"bond={self.bond_id}")
        if self.field is not None:
            ctx.append(f"field={self.field}")
        if self.period is not None:
            ctx.append(f"period={self.period}")
        if not ctx:
            return self.message
        return f"{self.message} [{', '.join(ctx)}]"


class InvalidInputError(ValuationError, ValueError):
    """Malformed bond terms or cost structure."""


class SeriesLengthMismatchError(InvalidInputError):
    """Inflation or grace series length differs from the term in years."""


class InvalidRateError(ValuationError, ValueError):
    """Negative rate or non-positive periodicity."""


class InvalidScheduleError(ValuationError, ValueError):
    """Amortization cannot bring the principal to zero by maturity."""


class ConvergenceError(ValuationError, RuntimeError):
    """Root finder found no sign change or ran out of iterations."""
