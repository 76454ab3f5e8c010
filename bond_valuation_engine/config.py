from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP
from typing import Tuple


@dataclass(frozen=True)
class EngineSettings:
    """
    Numeric settings shared by the solver, metrics and output helpers.

    - root_tolerance: |NPV(r)| accepted as zero by the root finder
    - max_iterations: iteration budget of the root finder
    - bracket: annualized rate bracket searched for a root
    - money_decimals / rate_decimals: rounding applied at output boundaries only
    - batch_size: worker count of the batch runner
    """
    root_tolerance: float = 1e-8
    max_iterations: int = 200
    bracket: Tuple[float, float] = (-0.99, 10.0)
    money_decimals: int = 4
    rate_decimals: int = 6
    batch_size: int = 5
    rounding: str = ROUND_HALF_UP

    def __post_init__(self):
        lower, upper = self.bracket
        if not lower < upper:
            raise ValueError(f"bracket must be increasing: {self.bracket}")
        if lower <= -1.0:
            raise ValueError("bracket lower bound must be > -1 (discount base must stay positive)")
        if self.root_tolerance <= 0 or self.max_iterations <= 0:
            raise ValueError("root_tolerance and max_iterations must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")


DEFAULT_SETTINGS = EngineSettings()
