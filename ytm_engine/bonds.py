from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

from .config import DAYS_PER_YEAR
from .utils import to_business_day, cached_payment_dates, months_between_payments


class PaymentFrequency(IntEnum):
    ANNUAL = 1
    SEMI_ANNUAL = 2

    @property
    def months_between_payments(self) -> int:
        return months_between_payments(int(self))


@dataclass(frozen=True)
class BondTerms:
    notional: float
    coupon_rate: float
    frequency: PaymentFrequency
    evaluation_date: pd.Timestamp
    maturity_date: pd.Timestamp

    def __post_init__(self):
        if not self.notional > 0:
            raise ValueError(f"notional must be positive, got {self.notional}")
        try:
            freq = PaymentFrequency(self.frequency)
        except ValueError:
            raise ValueError(f"Unsupported frequency {self.frequency!r}; supported: 1, 2.") from None

        object.__setattr__(self, "frequency", freq)
        object.__setattr__(self, "evaluation_date", pd.Timestamp(self.evaluation_date).normalize())
        object.__setattr__(self, "maturity_date", pd.Timestamp(self.maturity_date).normalize())

    @property
    def adjusted_maturity(self) -> pd.Timestamp:
        return to_business_day(self.maturity_date)

    @property
    def days_to_expiry(self) -> int:
        return (self.adjusted_maturity - self.evaluation_date).days

    @property
    def coupon_per_period(self) -> float:
        return self.notional * self.coupon_rate / int(self.frequency)

    @property
    def is_degenerate(self) -> bool:
        return self.adjusted_maturity <= self.evaluation_date

    def years_to_maturity(self, days_per_year: float = DAYS_PER_YEAR) -> float:
        return self.days_to_expiry / days_per_year


@dataclass(frozen=True)
class CashFlowSchedule:
    """
    Payment dates with matching year fractions and cash amounts, ascending.
    Empty for a degenerate bond.
    """
    payment_dates: tuple
    times: np.ndarray
    cash_flows: np.ndarray

    def __len__(self) -> int:
        return len(self.payment_dates)

    @property
    def is_empty(self) -> bool:
        return len(self.payment_dates) == 0


def build_schedule(
    notional: float,
    coupon_rate: float,
    freq: int,
    evaluation_date: pd.Timestamp,
    maturity: pd.Timestamp,
    days_per_year: float = DAYS_PER_YEAR,
) -> CashFlowSchedule:
    evaluation_date = pd.Timestamp(evaluation_date).normalize()
    pay_dates = cached_payment_dates(evaluation_date, pd.Timestamp(maturity).normalize(), int(freq))

    if len(pay_dates) == 0:
        return CashFlowSchedule((), np.empty(0, dtype=float), np.empty(0, dtype=float))

    times = np.array([(d - evaluation_date).days for d in pay_dates], dtype=float) / days_per_year

    coupon_cf = notional * (coupon_rate / int(freq))
    cfs = np.full(len(pay_dates), coupon_cf, dtype=float)
    cfs[-1] += notional

    return CashFlowSchedule(tuple(pay_dates), times, cfs)


def schedule_for(terms: BondTerms, days_per_year: float = DAYS_PER_YEAR) -> CashFlowSchedule:
    return build_schedule(
        terms.notional,
        terms.coupon_rate,
        terms.frequency,
        terms.evaluation_date,
        terms.adjusted_maturity,
        days_per_year,
    )


def present_value(cash_flows: Sequence[float], times: Sequence[float], yld: float) -> float:
    """Flat-yield PV: sum cf_i * (1+y)^(-t_i)."""
    cfs = np.asarray(cash_flows, dtype=float)
    taus = np.asarray(times, dtype=float)
    if cfs.size == 0:
        return 0.0
    return float(np.sum(cfs * np.power(1.0 + yld, -taus)))


def present_value_derivative(cash_flows: Sequence[float], times: Sequence[float], yld: float) -> float:
    """dPV/dy: sum -t_i * cf_i * (1+y)^(-t_i-1)."""
    cfs = np.asarray(cash_flows, dtype=float)
    taus = np.asarray(times, dtype=float)
    if cfs.size == 0:
        return 0.0
    return float(np.sum(-taus * cfs * np.power(1.0 + yld, -taus - 1.0)))


def price_bond(terms: BondTerms, yld: float, days_per_year: float = DAYS_PER_YEAR) -> float:
    sched = schedule_for(terms, days_per_year)
    return present_value(sched.cash_flows, sched.times, yld)
