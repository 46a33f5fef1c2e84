from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .bonds import BondTerms, PaymentFrequency, price_bond
from .config import EngineConfig, DEFAULT_CONFIG
from .estimators import Estimator, build_estimators
from .estimators import timed as timed_estimator
from .solver import refine as newton_refine, RefinementError
from .utils import to_business_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimateResult:
    estimate: float
    error: float
    elapsed: Optional[float] = None
    refined_yield: float = float("nan")
    iterations: int = -1
    refine_elapsed: Optional[float] = None
    refine_status: Optional[str] = None

    @property
    def refined(self) -> bool:
        return self.refine_status == "converged"


@dataclass(frozen=True)
class BondRecord:
    terms: BondTerms
    sampling_yield: float
    price: float
    estimates: Dict[str, EstimateResult] = field(default_factory=dict)

    @property
    def maturity_date(self) -> pd.Timestamp:
        return self.terms.adjusted_maturity

    @property
    def days_to_expiry(self) -> int:
        return self.terms.days_to_expiry

    @property
    def coupon_minus_yield(self) -> float:
        return self.terms.coupon_rate - self.sampling_yield

    @property
    def dedup_key(self) -> Tuple[float, float, PaymentFrequency, pd.Timestamp]:
        return (self.terms.coupon_rate, self.sampling_yield, self.terms.frequency, self.maturity_date)

    def yield_of(self, name: str) -> float:
        return self.estimates[name].estimate

    def error_of(self, name: str) -> float:
        return self.estimates[name].error


def _refine_one(terms: BondTerms, price: float, guess: float, config: EngineConfig):
    t0 = time.perf_counter()
    try:
        y, n = newton_refine(
            terms,
            price,
            guess,
            tolerance=config.tolerance,
            max_iterations=config.max_iterations,
            days_per_year=config.days_per_year,
        )
        status = "converged"
    except RefinementError as exc:
        logger.debug("Refinement failed for %s from guess %s: %s", terms, guess, exc)
        y, n, status = float("nan"), -1, exc.status
    return y, n, time.perf_counter() - t0, status


def evaluate_bond(
    terms: BondTerms,
    sampling_yield: float,
    estimators: Optional[Mapping[str, Estimator]] = None,
    *,
    refine: bool = False,
    timed: bool = False,
    config: EngineConfig = DEFAULT_CONFIG,
) -> BondRecord:
    """
    Price the bond at sampling_yield, then run every estimator on that price.

    With refine=True each estimate also seeds a Newton-Raphson solve; a failed
    solve is recorded as refined_yield=NaN, iterations=-1 instead of raising.
    """
    if estimators is None:
        estimators = build_estimators(config)

    price = price_bond(terms, sampling_yield, config.days_per_year)

    results: Dict[str, EstimateResult] = {}
    for name, est_fn in estimators.items():
        elapsed = None
        if timed:
            est, elapsed = timed_estimator(est_fn)(terms, price)
        else:
            est = est_fn(terms, price)

        extra = {}
        if refine:
            y, n, r_elapsed, status = _refine_one(terms, price, est, config)
            extra = dict(
                refined_yield=y,
                iterations=n,
                refine_elapsed=r_elapsed if timed else None,
                refine_status=status,
            )

        results[name] = EstimateResult(estimate=est, error=est - sampling_yield, elapsed=elapsed, **extra)

    return BondRecord(terms=terms, sampling_yield=sampling_yield, price=price, estimates=results)


def default_grid() -> Tuple[List[float], List[float], List[PaymentFrequency]]:
    """Coupons 1%..10%, yields 1%..20%, annual and semi-annual."""
    coupon_rates = [x / 100.0 for x in range(1, 11)]
    yields = [x / 100.0 for x in range(1, 21)]
    return coupon_rates, yields, [PaymentFrequency.ANNUAL, PaymentFrequency.SEMI_ANNUAL]


def generate_unique_bonds(
    evaluation_date: pd.Timestamp,
    notional: float,
    coupon_rates: Sequence[float],
    yields: Sequence[float],
    frequencies: Iterable[PaymentFrequency],
    max_years: int,
    *,
    refine: bool = False,
    timed: bool = False,
    estimators: Optional[Mapping[str, Estimator]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[BondRecord]:
    """
    Sweep maturities evaluation_date + 1..max_years*365 days against the
    coupon/yield/frequency grid.

    Raw maturities are business-day adjusted, so neighbouring offsets can land
    on the same day; each (coupon_rate, yield, frequency, adjusted maturity)
    is evaluated once. Records come back in enumeration order.
    """
    evaluation_date = pd.Timestamp(evaluation_date).normalize()
    frequencies = [PaymentFrequency(f) for f in frequencies]
    if estimators is None:
        estimators = build_estimators(config)

    seen = set()
    records: List[BondRecord] = []

    for d in range(1, max_years * 365 + 1):
        maturity = to_business_day(evaluation_date + pd.Timedelta(days=d))

        for cr in coupon_rates:
            for yld in yields:
                for freq in frequencies:
                    key = (cr, yld, freq, maturity)
                    if key in seen:
                        continue
                    seen.add(key)

                    terms = BondTerms(notional, cr, freq, evaluation_date, maturity)
                    records.append(
                        evaluate_bond(terms, yld, estimators, refine=refine, timed=timed, config=config)
                    )

    logger.info("Generated %d unique bonds (%d maturity offsets).", len(records), max_years * 365)
    return records


def failed_refinements(records: Iterable[BondRecord]) -> int:
    return sum(
        1
        for r in records
        for res in r.estimates.values()
        if res.refine_status is not None and not res.refined
    )


def max_abs_error(records: Sequence[BondRecord], name: str) -> float:
    errs = np.array([r.error_of(name) for r in records], dtype=float)
    if errs.size == 0:
        return math.nan
    return float(np.max(np.abs(errs)))
