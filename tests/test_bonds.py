import numpy as np
import pandas as pd
import pytest

from ytm_engine.bonds import (
    BondTerms,
    PaymentFrequency,
    build_schedule,
    schedule_for,
    present_value,
    present_value_derivative,
    price_bond,
)
from ytm_engine.utils import to_business_day, payment_dates


@pytest.fixture(scope="module")
def eval_date():
    return pd.Timestamp("2024-01-01")  # Monday


@pytest.fixture(scope="module")
def terms(eval_date):
    return BondTerms(
        notional=1000.0,
        coupon_rate=0.05,
        frequency=PaymentFrequency.SEMI_ANNUAL,
        evaluation_date=eval_date,
        maturity_date=pd.Timestamp("2026-01-01"),
    )


def test_business_day_adjustment():
    sat, sun, mon = pd.Timestamp("2024-01-06"), pd.Timestamp("2024-01-07"), pd.Timestamp("2024-01-08")
    assert to_business_day(sat) == pd.Timestamp("2024-01-05")
    assert to_business_day(sun) == pd.Timestamp("2024-01-05")
    assert to_business_day(sun, backwards=False) == mon
    assert to_business_day(sat, backwards=False) == mon
    assert to_business_day(mon) == mon, "Weekdays are left unchanged"


def test_schedule_dates_and_cashflows(terms):
    sched = schedule_for(terms)
    expected = [pd.Timestamp(d) for d in ("2024-07-01", "2025-01-01", "2025-07-01", "2026-01-01")]
    assert list(sched.payment_dates) == expected

    assert np.all(np.diff(sched.times) > 0.0), "Times must be strictly increasing"
    assert sched.times[0] == pytest.approx(182 / 365.25)
    assert sched.times[-1] == pytest.approx(731 / 365.25)

    assert np.allclose(sched.cash_flows[:-1], 25.0), "Earlier cashflows are coupon only"
    assert sched.cash_flows[-1] == pytest.approx(1025.0), "Last cashflow carries the notional"


def test_annual_schedule_weekend_stops_are_adjusted(eval_date):
    # 2025-06-01 is a Sunday -> Friday 2025-05-30; 2024-06-01 is a Saturday -> 2024-05-31
    sched = build_schedule(100.0, 0.04, PaymentFrequency.ANNUAL, eval_date, pd.Timestamp("2025-06-01"))
    assert list(sched.payment_dates) == [pd.Timestamp("2024-05-31"), pd.Timestamp("2025-05-30")]
    assert sched.cash_flows.tolist() == pytest.approx([4.0, 104.0])


def test_stop_adjusting_onto_evaluation_date_is_dropped():
    """
    Raw stop 2024-01-07 (Sunday) is after the Friday evaluation date but
    adjusts back onto it, so it is not a payment.
    """
    dates = payment_dates(1, pd.Timestamp("2024-01-05"), pd.Timestamp("2025-01-07"))
    assert dates == [pd.Timestamp("2025-01-07")]


def test_degenerate_bond_has_empty_schedule_and_zero_price():
    # maturity Saturday 2024-01-06 adjusts to the Friday evaluation date
    terms = BondTerms(1000.0, 0.05, 2, pd.Timestamp("2024-01-05"), pd.Timestamp("2024-01-06"))
    assert terms.is_degenerate
    sched = schedule_for(terms)
    assert sched.is_empty and len(sched.times) == 0 and len(sched.cash_flows) == 0
    assert price_bond(terms, 0.05) == 0.0
    assert present_value_derivative(sched.cash_flows, sched.times, 0.05) == 0.0


def test_invalid_terms_raise(eval_date):
    with pytest.raises(ValueError):
        BondTerms(0.0, 0.05, 2, eval_date, pd.Timestamp("2026-01-01"))
    with pytest.raises(ValueError):
        BondTerms(1000.0, 0.05, 4, eval_date, pd.Timestamp("2026-01-01"))


def test_frequency_is_coerced_to_enum(eval_date):
    t = BondTerms(1000.0, 0.05, 1, eval_date, pd.Timestamp("2026-01-01"))
    assert t.frequency is PaymentFrequency.ANNUAL
    assert t.frequency.months_between_payments == 12
    assert PaymentFrequency.SEMI_ANNUAL.months_between_payments == 6


def test_present_value_monotone_in_yield(terms):
    sched = schedule_for(terms)
    grid = np.linspace(0.0, 0.30, 31)
    pvs = np.array([present_value(sched.cash_flows, sched.times, y) for y in grid])
    assert np.all(np.diff(pvs) <= 0.0), "Price should fall as yield rises"


def test_present_value_zero_yield_is_sum_of_cashflows(terms):
    sched = schedule_for(terms)
    assert present_value(sched.cash_flows, sched.times, 0.0) == pytest.approx(1100.0)


def test_analytic_derivative_matches_finite_difference(terms):
    sched = schedule_for(terms)
    y, h = 0.06, 1e-6
    fd = (present_value(sched.cash_flows, sched.times, y + h) - present_value(sched.cash_flows, sched.times, y - h)) / (2 * h)
    an = present_value_derivative(sched.cash_flows, sched.times, y)
    assert an < 0.0
    assert an == pytest.approx(fd, rel=1e-6)


def test_year_basis_is_injectable(terms):
    px_default = price_bond(terms, 0.06)
    px_365 = price_bond(terms, 0.06, days_per_year=365.0)
    assert px_default != px_365
    # longer times under a shorter year -> more discounting
    assert px_365 < px_default
