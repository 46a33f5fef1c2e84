"""
Bond Yield Estimation Engine

Modules:
- config: year basis, solver tolerances, EngineConfig
- utils: business-day adjustment + payment-date walk
- bonds: bond terms, cashflow schedule, flat-yield PV and dPV/dy
- estimators: closed-form yield approximations + named registry
- solver: Newton-Raphson refinement + bracketed reference solve
- sweep: per-bond evaluation records + deduplicated parameter sweep
- reports: column specs, CSV writers, MSE / refinement summaries
- cli: console entry point
"""
