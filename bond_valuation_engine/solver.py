from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.optimize import brentq

from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import ConvergenceError, InvalidInputError

logger = logging.getLogger(__name__)


def npv(flows: Sequence[float], rate: float, periods_per_year: float) -> float:
    """
    NPV(flows, r) = sum_p flow[p] / (1 + r)^(p / periods_per_year)

    `rate` is an effective annual rate; flow[0] is undiscounted.
    """
    cf = np.asarray(flows, dtype=float)
    t = np.arange(len(cf), dtype=float) / float(periods_per_year)
    return float(np.sum(cf * (1.0 + rate) ** (-t)))


def find_root(
    func: Callable[[float], float],
    lower: float,
    upper: float,
    tol: float = 1e-8,
    max_iter: int = 200,
) -> float:
    """
    Root of `func` in [lower, upper] such that |func(root)| < tol.

    Brent's method (bisection safeguarded secant / inverse quadratic steps);
    deterministic for a given bracket. Raises ConvergenceError when the bracket
    has no sign change, the budget runs out, or the residual stays above tol.
    """
    f_lo, f_hi = func(lower), func(upper)
    if not (np.isfinite(f_lo) and np.isfinite(f_hi)):
        raise ConvergenceError(f"Non-finite value at bracket ends: f({lower})={f_lo}, f({upper})={f_hi}")
    if abs(f_lo) < tol:
        return lower
    if abs(f_hi) < tol:
        return upper
    if f_lo * f_hi > 0:
        raise ConvergenceError(
            f"Root not bracketed in [{lower}, {upper}]: f={f_lo:.6g}, {f_hi:.6g} (flows of a single sign?)"
        )

    try:
        root, info = brentq(func, lower, upper, xtol=1e-15, maxiter=max_iter, full_output=True, disp=False)
    except (RuntimeError, ValueError) as exc:
        raise ConvergenceError(f"Root finder failed: {exc}") from exc

    if not info.converged:
        raise ConvergenceError(f"No convergence after {info.iterations} iterations ({info.flag})")

    residual = func(root)
    logger.debug("brentq root=%.12f iterations=%s residual=%.3e", root, info.iterations, residual)
    if abs(residual) >= tol:
        raise ConvergenceError(f"Residual {residual:.3e} above tolerance {tol:.1e} at r={root}")
    return float(root)


def solve_effective_rate(
    flows: Sequence[float],
    periods_per_year: float,
    settings: Optional[EngineSettings] = None,
) -> float:
    """
    Effective annual rate r with NPV(flows, r) = 0 (IRR on an annualized time basis).

    Sign convention is the caller's: issuer flows (inflow then outflows) give
    the effective annual cost, investor flows (outflow then inflows) the yield.

    The NPV tolerance scales with the largest flow (never below
    `settings.root_tolerance`), so large issues converge in double precision.
    """
    settings = settings or DEFAULT_SETTINGS
    cf = np.asarray(flows, dtype=float)
    if cf.ndim != 1 or len(cf) < 2:
        raise InvalidInputError("Need at least two cash flows to solve a rate", field="flows")
    if not np.all(np.isfinite(cf)):
        raise InvalidInputError("Cash flows must be finite", field="flows")
    if periods_per_year <= 0:
        raise InvalidInputError(f"periods_per_year must be positive, got {periods_per_year}", field="periods_per_year")

    lower, upper = settings.bracket
    tol = settings.root_tolerance * max(1.0, float(np.max(np.abs(cf))))
    return find_root(
        lambda r: npv(cf, r, periods_per_year),
        lower,
        upper,
        tol=tol,
        max_iter=settings.max_iterations,
    )
