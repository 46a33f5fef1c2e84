from __future__ import annotations

import pandas as pd
from typing import List, Tuple
from functools import lru_cache

from .config import DAYS_PER_YEAR


def to_business_day(date: pd.Timestamp, backwards: bool = True) -> pd.Timestamp:
    """
    Shift a weekend date onto the nearest weekday.

    Steps one calendar day at a time (back by default, forward when
    backwards=False). No holiday calendar.
    """
    step = pd.Timedelta(days=-1 if backwards else 1)
    d = pd.Timestamp(date).normalize()
    while d.dayofweek >= 5:
        d = d + step
    return d


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, days_per_year: float = DAYS_PER_YEAR) -> float:
    """Whole calendar days between two dates over a fixed-length year."""
    return (pd.Timestamp(end) - pd.Timestamp(start)).days / days_per_year


def months_between_payments(freq: int) -> int:
    if freq <= 0:
        raise ValueError("freq must be positive")
    return int(12 / freq)


def payment_dates(
    freq: int,
    evaluation_date: pd.Timestamp,
    maturity: pd.Timestamp,
) -> List[pd.Timestamp]:
    """
    Payment dates strictly AFTER evaluation_date, ending at maturity.

    Walks back from maturity in 12/freq month steps, business-day adjusting
    each stop. Empty when the adjusted maturity is on/before evaluation_date.
    """
    evaluation_date = pd.Timestamp(evaluation_date).normalize()
    months = months_between_payments(freq)

    dates: List[pd.Timestamp] = []
    d = pd.Timestamp(maturity).normalize()
    while d > evaluation_date:
        adj = to_business_day(d)
        if adj > evaluation_date:
            dates.append(adj)
        d = d - pd.DateOffset(months=months)

    dates.sort()
    return dates


@lru_cache(maxsize=100_000)
def cached_payment_dates(evaluation_date: pd.Timestamp, maturity: pd.Timestamp, freq: int) -> Tuple[pd.Timestamp, ...]:
    """Cache payment dates by (evaluation_date, maturity, freq)."""
    return tuple(payment_dates(int(freq), pd.Timestamp(evaluation_date), pd.Timestamp(maturity)))
