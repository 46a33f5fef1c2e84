import math

import pandas as pd
import pytest

from ytm_engine.bonds import BondTerms, PaymentFrequency, price_bond
from ytm_engine.estimators import first_order_yield
from ytm_engine.solver import (
    refine,
    solve_yield_brent,
    RefinementError,
    FlatDerivativeError,
    NonConvergenceError,
)


@pytest.fixture(scope="module")
def eval_date():
    return pd.Timestamp("2024-01-01")


@pytest.fixture(scope="module")
def terms(eval_date):
    return BondTerms(1000.0, 0.05, PaymentFrequency.SEMI_ANNUAL, eval_date, pd.Timestamp("2026-01-01"))


def test_concrete_scenario_converges_from_first_order(terms):
    price = price_bond(terms, 0.06)
    guess = first_order_yield(terms, price)

    y, n = refine(terms, price, guess)
    assert abs(y - 0.06) < 1e-8
    assert 0 < n < 20


@pytest.mark.parametrize("true_yield", [0.005, 0.05, 0.12, 0.25])
@pytest.mark.parametrize("maturity", ["2024-07-01", "2029-01-01", "2054-01-01"])
@pytest.mark.parametrize("freq", [PaymentFrequency.ANNUAL, PaymentFrequency.SEMI_ANNUAL])
def test_round_trip(eval_date, true_yield, maturity, freq):
    """Price at y, refine from a generic 5% guess, recover y."""
    terms = BondTerms(1000.0, 0.06, freq, eval_date, pd.Timestamp(maturity))
    price = price_bond(terms, true_yield)

    res = refine(terms, price, 0.05)
    assert abs(res.yield_ - true_yield) < 1e-8
    assert res.iterations < 100


def test_refine_matches_brent_reference(terms):
    price = 950.0
    y_newton, _ = refine(terms, price, 0.05)
    y_brent = solve_yield_brent(terms, price)
    assert y_newton == pytest.approx(y_brent, abs=1e-8)


def test_flat_derivative_raises_for_degenerate_bond(eval_date):
    degenerate = BondTerms(1000.0, 0.05, PaymentFrequency.ANNUAL, eval_date, eval_date)
    with pytest.raises(FlatDerivativeError):
        refine(degenerate, 0.0, 0.05)


def test_iteration_budget_exhausted_raises(terms):
    price = price_bond(terms, 0.06)
    with pytest.raises(NonConvergenceError):
        refine(terms, price, 0.0, max_iterations=1)


def test_failure_modes_are_distinct():
    assert issubclass(FlatDerivativeError, RefinementError)
    assert issubclass(NonConvergenceError, RefinementError)
    assert not issubclass(FlatDerivativeError, NonConvergenceError)
    assert FlatDerivativeError.status != NonConvergenceError.status


def test_refined_yield_is_clamped_at_zero(terms):
    """Price above the undiscounted cashflows has a negative root; the result is floored at 0."""
    y, _ = refine(terms, 1150.0, 0.01)
    assert y == 0.0


def test_brent_rejects_unbracketed_price(terms):
    with pytest.raises(ValueError):
        solve_yield_brent(terms, 1e9)


def test_brent_rejects_empty_schedule(eval_date):
    degenerate = BondTerms(1000.0, 0.05, PaymentFrequency.ANNUAL, eval_date, eval_date)
    with pytest.raises(ValueError):
        solve_yield_brent(degenerate, 100.0)


def test_refine_is_reentrant(terms):
    price = price_bond(terms, 0.07)
    a = refine(terms, price, 0.03)
    b = refine(terms, price, 0.03)
    assert a == b
    assert math.isfinite(a.yield_)
