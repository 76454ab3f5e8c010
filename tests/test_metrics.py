import numpy as np
import pandas as pd
import pytest

from bond_valuation_engine.bonds import BondTerms, CostStructure, CouponFrequency, RateType
from bond_valuation_engine.cashflows import generate_schedule
from bond_valuation_engine.errors import InvalidInputError
from bond_valuation_engine.metrics import (
    compute_metrics,
    convexity,
    macaulay_duration,
    modified_duration,
    present_values,
)
from bond_valuation_engine.solver import npv


@pytest.fixture(scope="module")
def schedule():
    terms = BondTerms(
        nominal_value=1000.0,
        commercial_value=1050.0,
        term_years=5,
        coupon_frequency=CouponFrequency.SEMIANNUAL,
        day_count_basis=360,
        rate_type=RateType.EFFECTIVE,
        annual_rate=0.08,
        issue_date=pd.Timestamp("2025-06-01"),
        inflation_series=[0.10] * 5,
        grace_series=["S"] * 5,
        premium_pct=0.01,
        income_tax_rate=0.30,
        inflation_indexed=True,
        bond_id="AMER_5Y_8PCT",
    )
    costs = CostStructure.from_percentages(
        1050.0, structuring=0.01, placement=0.0025, issuer_flotation=0.0045, issuer_settlement=0.005,
        investor_flotation=0.0045, investor_settlement=0.005,
    )
    return generate_schedule(terms, costs)


@pytest.fixture(scope="module")
def metrics(schedule):
    return compute_metrics(schedule, 0.045, 0.045, computed_at=pd.Timestamp("2025-06-01", tz="UTC"))


def test_textbook_duration():
    # 3y annual 10% coupon bond at 10%: price 100, Macaulay 2.7355
    flows = [10.0, 10.0, 110.0]
    assert abs(present_values(flows, 0.10, 1).sum() - 100.0) < 1e-10
    assert abs(macaulay_duration(flows, 0.10, 1) - 2.735537) < 1e-6
    assert abs(modified_duration(flows, 0.10, 1) - 2.735537 / 1.1) < 1e-6


def test_zero_coupon_duration_equals_maturity():
    flows = [0.0] * 9 + [1000.0]
    assert abs(macaulay_duration(flows, 0.06, 2) - 5.0) < 1e-12


def test_duration_and_convexity_match_price_derivatives():
    flows = np.array([6.0, 6.0, 6.0, 6.0, 106.0])
    y, h = 0.07, 1e-4

    def price(r):
        return present_values(flows, r, 1).sum()

    p0 = price(y)
    dp = (price(y + h) - price(y - h)) / (2 * h)
    d2p = (price(y + h) + price(y - h) - 2 * p0) / h ** 2

    assert abs(modified_duration(flows, y, 1) - (-dp / p0)) < 1e-6
    assert abs(convexity(flows, y, 1) - d2p / p0) < 1e-3


def test_price_excludes_period_zero(schedule, metrics):
    future = schedule.investor_flows[1:]
    expected = sum(cf / 1.045 ** (k / 2) for k, cf in enumerate(future, start=1))
    assert abs(metrics.current_price - expected) < 1e-9
    assert abs(metrics.investor_npv - (expected + schedule.investor_flows[0])) < 1e-9


def test_issuer_npv_at_cost_of_capital(schedule, metrics):
    assert abs(metrics.issuer_npv - npv(schedule.issuer_flows, 0.045, 2)) < 1e-12


def test_effective_rates_zero_their_npvs(schedule, metrics):
    assert abs(npv(schedule.issuer_flows, metrics.issuer_effective_cost, 2)) < 1e-8
    assert abs(npv(schedule.issuer_flows_with_shield, metrics.issuer_effective_cost_with_shield, 2)) < 1e-8
    assert abs(npv(schedule.investor_flows, metrics.investor_effective_yield, 2)) < 1e-8


def test_tax_shield_lowers_issuer_cost(metrics):
    assert metrics.issuer_effective_cost_with_shield < metrics.issuer_effective_cost
    # costs on both sides: issuer pays more than the investor earns
    assert metrics.issuer_effective_cost > metrics.investor_effective_yield


def test_duration_convexity_sanity(metrics):
    assert 0.0 < metrics.modified_duration < metrics.macaulay_duration <= 5.0
    assert metrics.convexity > 0.0
    assert abs(metrics.decision_ratio - (metrics.macaulay_duration + metrics.convexity)) < 1e-12


def test_metrics_agree_with_discounted_columns(schedule, metrics):
    disc = schedule.discounted(0.045)
    pv = sum(p.discounted_flow for p in disc.periods[1:])
    weighted = sum(p.weighted_discounted_flow for p in disc.periods[1:])
    conv = sum(p.convexity_factor for p in disc.periods[1:])
    r = disc.intermediates.discount_period_rate

    assert abs(pv - metrics.current_price) < 1e-9
    assert abs(weighted / pv - metrics.macaulay_duration) < 1e-12
    assert abs(conv / ((1 + r) ** 2 * pv * 2 ** 2) - metrics.convexity) < 1e-10


def test_metrics_are_reproducible(schedule, metrics):
    again = compute_metrics(schedule, 0.045, 0.045, computed_at=pd.Timestamp("2025-06-01", tz="UTC"))
    assert again == metrics


def test_rounded_dict(metrics):
    d = metrics.as_dict(rounded=True)
    assert d["current_price"] == round(d["current_price"], 4)
    assert d["investor_effective_yield"] == round(d["investor_effective_yield"], 6)
    assert d["computed_at"] == metrics.computed_at


@pytest.mark.parametrize("rate", [-1.0, float("nan"), None])
def test_bad_discount_rate(schedule, rate):
    with pytest.raises(InvalidInputError) as err:
        compute_metrics(schedule, 0.05, rate)
    assert err.value.bond_id == "AMER_5Y_8PCT"


def test_large_issue_rates_converge():
    terms = BondTerms(
        nominal_value=1e8,
        commercial_value=1.05e8,
        term_years=5,
        coupon_frequency=CouponFrequency.SEMIANNUAL,
        day_count_basis=360,
        rate_type=RateType.EFFECTIVE,
        annual_rate=0.08,
        issue_date=pd.Timestamp("2025-06-01"),
        inflation_series=[0.10] * 5,
        grace_series=["S"] * 5,
        premium_pct=0.01,
        income_tax_rate=0.30,
        inflation_indexed=True,
        bond_id="BIG",
    )
    costs = CostStructure.from_percentages(1.05e8, structuring=0.01, placement=0.0025, investor_flotation=0.0045)
    sched = generate_schedule(terms, costs)
    m = compute_metrics(sched, 0.045, 0.045, computed_at=pd.Timestamp("2025-06-01", tz="UTC"))

    scale = np.max(np.abs(sched.investor_flows))
    assert abs(npv(sched.investor_flows, m.investor_effective_yield, 2)) < 1e-8 * scale
    assert abs(npv(sched.issuer_flows, m.issuer_effective_cost, 2)) < 1e-8 * scale
    assert m.issuer_effective_cost > m.investor_effective_yield
