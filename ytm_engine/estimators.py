from __future__ import annotations

import math
import time
from collections import OrderedDict
from functools import partial, wraps
from typing import Callable, Dict, Sequence, Tuple

from .bonds import BondTerms, schedule_for, present_value
from .config import (
    DAYS_PER_YEAR,
    DISCRIMINANT_TOL,
    MATCH_TOL,
    REFERENCE_YIELDS,
    ADAPTIVE_THRESHOLD_DAYS,
    EngineConfig,
    DEFAULT_CONFIG,
)

Estimator = Callable[[BondTerms, float], float]


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


# T = years to adjusted maturity, N = notional, c = annual coupon amount, P = price.
# Degenerate input (T <= 0, P <= 0, zero denominator, non-finite value) gives 0.0.
def _terms(terms: BondTerms, days_per_year: float) -> Tuple[float, float, float]:
    T = terms.years_to_maturity(days_per_year)
    return T, terms.notional, terms.coupon_rate * terms.notional


def first_order_yield(terms: BondTerms, price: float, *, days_per_year: float = DAYS_PER_YEAR) -> float:
    """Linear expansion of price in yield around y=0."""
    T, N, c = _terms(terms, days_per_year)
    if T <= 0 or price <= 0:
        return 0.0

    numerator = N + T * c - price
    denominator = 0.5 * T * (T + 1) * c + T * N
    if denominator == 0 or not _finite(numerator, denominator):
        return 0.0

    return max(0.0, numerator / denominator)


def current_yield_estimate(terms: BondTerms, price: float, *, days_per_year: float = DAYS_PER_YEAR) -> float:
    T, N, c = _terms(terms, days_per_year)
    if T <= 0 or price <= 0:
        return 0.0

    numerator = N + T * c - price
    denominator = price + (T - 1) * (N + 0.5 * T * c)
    if denominator == 0 or not _finite(numerator, denominator):
        return 0.0

    return max(0.0, numerator / denominator)


def second_order_yield(terms: BondTerms, price: float, *, days_per_year: float = DAYS_PER_YEAR) -> float:
    """
    Quadratic expansion of price in yield, solved for y.

    A and B are the first/second order coefficients, summed over whole
    coupon years up to round(T). Of the two roots, the one closest to the
    first-order estimate is kept. Falls back to first order whenever the
    quadratic has no usable real root.
    """
    T, N, c = _terms(terms, days_per_year)
    if T <= 0 or price <= 0:
        return 0.0

    y1 = first_order_yield(terms, price, days_per_year=days_per_year)

    P0 = T * c + N
    n_years = int(round(T))
    A = sum(t * c for t in range(1, n_years + 1)) + T * N
    B = sum(t * (t + 1) * c for t in range(1, n_years + 1)) + T * (T + 1) * N

    if B == 0 or not _finite(A, B):
        return y1

    disc = A * A - 2 * B * (P0 - price)
    if not _finite(disc):
        return y1
    if disc < 0:
        if disc > -DISCRIMINANT_TOL:
            disc = 0.0
        else:
            return y1

    sqrt_disc = math.sqrt(disc)
    root1 = (A + sqrt_disc) / B
    root2 = (A - sqrt_disc) / B

    y = root1 if abs(root1 - y1) < abs(root2 - y1) else root2
    if not _finite(y):
        return y1

    return max(0.0, y)


def _linear(x0: float, x1: float, y0: float, y1: float, x: float) -> float:
    if abs(x1 - x0) < MATCH_TOL:
        return y0
    return y0 + (x - x0) * (y1 - y0) / (x1 - x0)


def interpolation_yield(
    terms: BondTerms,
    price: float,
    *,
    days_per_year: float = DAYS_PER_YEAR,
    reference_yields: Sequence[float] = REFERENCE_YIELDS,
) -> float:
    """
    Piecewise-linear inverse of the price/yield curve through three
    reference points. Not a root solve: exact only at the reference yields.
    """
    if terms.days_to_expiry <= 0 or price <= 0:
        return 0.0

    sched = schedule_for(terms, days_per_year)
    if sched.is_empty:
        return 0.0

    yields = list(reference_yields)
    prices = [present_value(sched.cash_flows, sched.times, y) for y in yields]

    for y, px in zip(yields, prices):
        if abs(price - px) < MATCH_TOL:
            return y

    est = None
    for i in range(len(yields) - 1):
        lo, hi = prices[i], prices[i + 1]
        if lo <= price <= hi or hi <= price <= lo:
            est = _linear(lo, hi, yields[i], yields[i + 1], price)
            break

    if est is None:
        # price falls with yield, so prices[0] is the highest reference price
        if price > prices[0]:
            est = _linear(prices[0], prices[1], yields[0], yields[1], price)
        else:
            est = _linear(prices[-2], prices[-1], yields[-2], yields[-1], price)

    if not _finite(est):
        return 0.0
    return max(0.0, est)


def coupon_spread_yield(terms: BondTerms, price: float, *, days_per_year: float = DAYS_PER_YEAR) -> float:
    """Current income plus straight-line pull to par, over the average of par and price."""
    T, N, c = _terms(terms, days_per_year)
    if T <= 0 or price <= 0:
        return 0.0

    numerator = c + (N - price) / T
    denominator = (N + price) / 2
    if denominator == 0 or not _finite(numerator, denominator):
        return 0.0

    return max(0.0, numerator / denominator)


def adaptive_yield(
    terms: BondTerms,
    price: float,
    *,
    threshold_days: int = ADAPTIVE_THRESHOLD_DAYS,
    days_per_year: float = DAYS_PER_YEAR,
    reference_yields: Sequence[float] = REFERENCE_YIELDS,
) -> float:
    """Interpolation up to threshold_days before expiry, coupon spread beyond it."""
    days = terms.days_to_expiry
    if days <= 0 or price <= 0:
        return 0.0

    if days <= threshold_days:
        return interpolation_yield(terms, price, days_per_year=days_per_year, reference_yields=reference_yields)
    return coupon_spread_yield(terms, price, days_per_year=days_per_year)


ESTIMATORS: "OrderedDict[str, Estimator]" = OrderedDict(
    [
        ("first_order", first_order_yield),
        ("current_yield", current_yield_estimate),
        ("second_order", second_order_yield),
        ("interpolation", interpolation_yield),
        ("coupon_spread", coupon_spread_yield),
        ("adaptive", adaptive_yield),
    ]
)


def build_estimators(config: EngineConfig = DEFAULT_CONFIG) -> Dict[str, Estimator]:
    """Registry with the config's year basis, reference yields and threshold bound in."""
    dpy = config.days_per_year
    refs = tuple(config.reference_yields)

    return OrderedDict(
        [
            ("first_order", partial(first_order_yield, days_per_year=dpy)),
            ("current_yield", partial(current_yield_estimate, days_per_year=dpy)),
            ("second_order", partial(second_order_yield, days_per_year=dpy)),
            ("interpolation", partial(interpolation_yield, days_per_year=dpy, reference_yields=refs)),
            ("coupon_spread", partial(coupon_spread_yield, days_per_year=dpy)),
            (
                "adaptive",
                partial(
                    adaptive_yield,
                    threshold_days=config.adaptive_threshold_days,
                    days_per_year=dpy,
                    reference_yields=refs,
                ),
            ),
        ]
    )


def timed(estimator: Estimator) -> Callable[[BondTerms, float], Tuple[float, float]]:
    """Wrap an estimator so it returns (estimate, elapsed_seconds)."""
    @wraps(estimator)
    def wrapper(terms: BondTerms, price: float) -> Tuple[float, float]:
        t0 = time.perf_counter()
        est = estimator(terms, price)
        return est, time.perf_counter() - t0

    return wrapper
