import numpy as np
import pytest

from bond_valuation_engine.bonds import GraceType
from bond_valuation_engine.errors import InvalidInputError
from bond_valuation_engine.grace import classify, grace_for_period, year_index
from bond_valuation_engine.inflation import InflationIndexer


@pytest.mark.parametrize(
    "code, amortizes, capitalizes",
    [
        ("none", True, False),
        ("S", True, False),
        ("partial", False, False),
        ("P", False, False),
        ("total", False, True),
        ("t", False, True),
        (GraceType.TOTAL, False, True),
    ],
)
def test_grace_classification(code, amortizes, capitalizes):
    policy = classify(code)
    assert policy.amortizes is amortizes
    assert policy.interest_capitalizes is capitalizes


@pytest.mark.parametrize("code", ["X", "", "[S]", None, 1])
def test_unrecognized_grace_code_raises(code):
    with pytest.raises(InvalidInputError):
        classify(code)


def test_period_maps_to_year_of_term():
    # quarterly: periods 1..4 are year 0, 5..8 year 1
    assert [year_index(p, 4) for p in range(1, 9)] == [0, 0, 0, 0, 1, 1, 1, 1]
    series = ["T", "P", "S"]
    assert grace_for_period(series, 1, 2) is GraceType.TOTAL
    assert grace_for_period(series, 4, 2) is GraceType.PARTIAL
    assert grace_for_period(series, 6, 2) is GraceType.NONE


def test_grace_lookup_past_series_raises():
    with pytest.raises(InvalidInputError):
        grace_for_period(["S"], 3, 2)


def test_inflation_factor_compounds_per_period():
    idx = InflationIndexer([0.10] * 5, coupons_per_year=2, periods_per_year=2.0)
    assert abs(idx.period_rate(1) - (1.1 ** 0.5 - 1.0)) < 1e-15
    for p in range(0, 11):
        assert abs(idx.factor(p) - 1.1 ** (p / 2)) < 1e-12, f"factor({p}) should be 1.1^(p/2)"


def test_inflation_factor_uses_each_years_rate():
    idx = InflationIndexer([0.10, 0.20, 0.0], coupons_per_year=1, periods_per_year=1.0)
    f = idx.factors(3)
    assert np.allclose(f, [1.0, 1.1, 1.1 * 1.2, 1.1 * 1.2])
    assert idx.annual_rate(2) == 0.20


def test_disabled_indexation_is_identity():
    idx = InflationIndexer([0.10] * 3, coupons_per_year=4, periods_per_year=4.0, enabled=False)
    assert np.all(idx.factors(12) == 1.0)
    assert idx.index(1000.0, 12) == 1000.0
    # rates are still reported
    assert idx.period_rate(1) > 0.0


def test_indexer_rejects_period_beyond_series():
    idx = InflationIndexer([0.05], coupons_per_year=2, periods_per_year=2.0)
    with pytest.raises(InvalidInputError):
        idx.factor(3)
