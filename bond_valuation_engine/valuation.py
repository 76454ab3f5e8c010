from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from .bonds import BondTerms, CostStructure
from .cashflows import Schedule, generate_schedule
from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import ValuationError
from .metrics import MetricsResult, compute_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValuationRequest:
    terms: BondTerms
    costs: CostStructure
    issuer_discount_rate: float
    investor_discount_rate: float


@dataclass(frozen=True)
class ValuationOutcome:
    bond_id: Optional[str]
    success: bool
    schedule: Optional[Schedule] = None
    metrics: Optional[MetricsResult] = None
    errors: Tuple[str, ...] = ()
    error_kind: Optional[str] = None

    @property
    def flows_count(self) -> int:
        return len(self.schedule) if self.schedule is not None else 0


def value_bond(
    terms: BondTerms,
    costs: CostStructure,
    issuer_discount_rate: float,
    investor_discount_rate: float,
    settings: Optional[EngineSettings] = None,
    computed_at: Optional[pd.Timestamp] = None,
) -> ValuationOutcome:
    """
    Schedule + metrics for one bond, with engine errors reported in the outcome
    instead of raised. Anything that is not a ValuationError still propagates.
    """
    settings = settings or DEFAULT_SETTINGS
    bond_id = getattr(terms, "bond_id", None)
    try:
        schedule = generate_schedule(terms, costs, discount_rate=investor_discount_rate)
        metrics = compute_metrics(
            schedule, issuer_discount_rate, investor_discount_rate, settings=settings, computed_at=computed_at
        )
    except ValuationError as exc:
        logger.warning("Valuation failed for bond %s: %s", bond_id, exc)
        return ValuationOutcome(bond_id=bond_id, success=False, errors=(str(exc),), error_kind=exc.kind)

    return ValuationOutcome(bond_id=bond_id, success=True, schedule=schedule, metrics=metrics)


def value_bonds(
    requests: Sequence[ValuationRequest],
    max_workers: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
    on_progress: Optional[Callable[[int, int], None]] = None,
    computed_at: Optional[pd.Timestamp] = None,
) -> List[ValuationOutcome]:
    """
    Value independent bonds on a bounded thread pool.

    Results keep the input order. A failing bond yields a failed outcome and
    never aborts the rest of the batch.
    """
    settings = settings or DEFAULT_SETTINGS
    workers = max_workers or settings.batch_size
    total = len(requests)
    if total == 0:
        return []

    def run(req: ValuationRequest) -> ValuationOutcome:
        return value_bond(
            req.terms,
            req.costs,
            req.issuer_discount_rate,
            req.investor_discount_rate,
            settings=settings,
            computed_at=computed_at,
        )

    outcomes: List[ValuationOutcome] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run, req) for req in requests]
        for i, (req, fut) in enumerate(zip(requests, futures), start=1):
            try:
                outcomes.append(fut.result())
            except Exception as exc:
                bond_id = getattr(req.terms, "bond_id", None)
                logger.exception("Unexpected failure valuing bond %s", bond_id)
                outcomes.append(
                    ValuationOutcome(bond_id=bond_id, success=False, errors=(str(exc),), error_kind=type(exc).__name__)
                )
            if on_progress is not None:
                on_progress(i, total)

    failed = sum(1 for o in outcomes if not o.success)
    logger.debug("Batch valued %s bonds (%s failed) with %s workers", total, failed, workers)
    return outcomes
