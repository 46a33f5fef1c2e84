from __future__ import annotations

import logging
import math
from typing import NamedTuple

from scipy.optimize import brentq

from .bonds import BondTerms, schedule_for, present_value, present_value_derivative
from .config import DAYS_PER_YEAR, TOL, MAX_ITER, FLAT_DERIVATIVE_EPS

logger = logging.getLogger(__name__)


class RefinementError(RuntimeError):
    """Newton-Raphson refinement failed for one bond/starting guess."""

    status = "failed"


class FlatDerivativeError(RefinementError):
    """dPrice/dYield vanished, so the Newton step is undefined."""

    status = "flat_derivative"


class NonConvergenceError(RefinementError):
    """Iteration budget exhausted (or iterate became non-finite) before the step fell below tolerance."""

    status = "no_convergence"


class RefinementResult(NamedTuple):
    yield_: float
    iterations: int


def refine(
    terms: BondTerms,
    observed_price: float,
    initial_guess: float,
    tolerance: float = TOL,
    max_iterations: int = MAX_ITER,
    days_per_year: float = DAYS_PER_YEAR,
) -> RefinementResult:
    """
    Newton-Raphson on f(y) = PV(y) - observed_price with the analytic dPV/dy.

    Stops once |y_{n+1} - y_n| < tolerance and returns (max(0, y_{n+1}), n).

    Raises
    ------
    FlatDerivativeError
        |f'(y)| < 1e-12 at some iterate (always the case for an empty schedule).
    NonConvergenceError
        max_iterations reached, or an iterate is not finite.
    """
    sched = schedule_for(terms, days_per_year)
    cfs, taus = sched.cash_flows, sched.times

    y = float(initial_guess)
    for iteration in range(1, max_iterations + 1):
        f = present_value(cfs, taus, y) - observed_price
        df = present_value_derivative(cfs, taus, y)
        logger.debug("Newton iter %s: y=%s f=%s df=%s", iteration, y, f, df)

        if abs(df) < FLAT_DERIVATIVE_EPS:
            raise FlatDerivativeError(f"Flat derivative at iteration {iteration} (y={y}, df={df}).")

        y_next = y - f / df
        if not math.isfinite(y_next):
            raise NonConvergenceError(f"Non-finite iterate at iteration {iteration} (y={y}).")

        if abs(y_next - y) < tolerance:
            return RefinementResult(max(0.0, y_next), iteration)
        y = y_next

    raise NonConvergenceError(f"No convergence within {max_iterations} iterations (last y={y}).")


def solve_yield_brent(
    terms: BondTerms,
    observed_price: float,
    lower: float = -0.99,
    upper: float = 1.0,
    days_per_year: float = DAYS_PER_YEAR,
) -> float:
    """
    Bracketed yield solve (Brent). Reference value for checking refined yields.
    """
    sched = schedule_for(terms, days_per_year)
    if sched.is_empty:
        raise ValueError("Empty schedule: bond has no cashflows after evaluation date.")

    def residual(y: float) -> float:
        return present_value(sched.cash_flows, sched.times, y) - observed_price

    fa, fb = residual(lower), residual(upper)
    if fa * fb > 0:
        raise ValueError("Root not bracketed: price outside [PV(upper), PV(lower)].")

    return float(brentq(residual, lower, upper, maxiter=300, xtol=1e-14))
