from __future__ import annotations

from dataclasses import dataclass, replace as _replace
from typing import Tuple

# Year basis for time-to-payment: (date - eval_date).days / DAYS_PER_YEAR
DAYS_PER_YEAR = 365.25

# Newton-Raphson
TOL = 1e-8
MAX_ITER = 100
FLAT_DERIVATIVE_EPS = 1e-12

# Estimators
DISCRIMINANT_TOL = 1e-10
MATCH_TOL = 1e-8
REFERENCE_YIELDS: Tuple[float, ...] = (0.01, 0.04, 0.07)
ADAPTIVE_THRESHOLD_DAYS = 730


@dataclass(frozen=True)
class EngineConfig:
    """
    Numerical settings shared by pricing, estimators and the refiner.

    Pass a modified copy (see `replace`) to change the year basis or solver
    tolerances without touching module constants.
    """
    days_per_year: float = DAYS_PER_YEAR
    tolerance: float = TOL
    max_iterations: int = MAX_ITER
    reference_yields: Tuple[float, ...] = REFERENCE_YIELDS
    adaptive_threshold_days: int = ADAPTIVE_THRESHOLD_DAYS

    def __post_init__(self):
        if self.days_per_year <= 0:
            raise ValueError("days_per_year must be positive")
        if self.tolerance <= 0:
            raise ValueError("tolerance must be positive")
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if len(self.reference_yields) != 3 or list(self.reference_yields) != sorted(self.reference_yields):
            raise ValueError("reference_yields must be three increasing yields")

    def replace(self, **changes) -> "EngineConfig":
        return _replace(self, **changes)


DEFAULT_CONFIG = EngineConfig()
