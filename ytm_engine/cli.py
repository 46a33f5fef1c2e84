"""
Console entry point: sweep the bond grid and write estimator error files.

Usage:
    ytm-engine                                  # 30Y sweep, today
    ytm-engine --max-years 5 --refine           # also run Newton from each estimate
    ytm-engine --max-years 5 --timed            # per-bond results with estimator timings
    ytm-engine --evaluation-date 2024-01-01 --output-dir outputs
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

import pandas as pd

from .config import DEFAULT_CONFIG
from .estimators import build_estimators
from .reports import (
    mse_by_diff_columns,
    mse_by_days_columns,
    mse_summary,
    refinement_summary,
    results_columns,
    write_results,
)
from .sweep import default_grid, generate_unique_bonds, failed_refinements, max_abs_error

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(getattr(logging, level.upper(), logging.INFO))
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Bond yield estimator comparison sweep")
    p.add_argument("--evaluation-date", default=None, help="YYYY-MM-DD, default today")
    p.add_argument("--notional", type=float, default=1000.0)
    p.add_argument("--max-years", type=int, default=30)
    p.add_argument("--refine", action="store_true", help="run Newton-Raphson from every estimate")
    p.add_argument("--timed", action="store_true", help="record per-estimator timings")
    p.add_argument("--adaptive-threshold-days", type=int, default=DEFAULT_CONFIG.adaptive_threshold_days)
    p.add_argument("--days-per-year", type=float, default=DEFAULT_CONFIG.days_per_year)
    p.add_argument("--coupons", type=float, nargs="+", default=None, help="coupon rates, default 0.01..0.10")
    p.add_argument("--yields", type=float, nargs="+", default=None, help="sampling yields, default 0.01..0.20")
    p.add_argument("--output-dir", default=".")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _args(argv)
    configure_logging(args.log_level)

    if args.evaluation_date is None:
        evaluation_date = pd.Timestamp.today().normalize()
    else:
        evaluation_date = pd.Timestamp(args.evaluation_date)

    config = DEFAULT_CONFIG.replace(
        adaptive_threshold_days=args.adaptive_threshold_days,
        days_per_year=args.days_per_year,
    )
    estimators = build_estimators(config)
    names = list(estimators)
    coupon_rates, yields, frequencies = default_grid()
    if args.coupons:
        coupon_rates = args.coupons
    if args.yields:
        yields = args.yields

    logger.info("Generating unique bonds (evaluation date %s, %dY)...", evaluation_date.date(), args.max_years)
    bonds = generate_unique_bonds(
        evaluation_date,
        args.notional,
        coupon_rates,
        yields,
        frequencies,
        args.max_years,
        refine=args.refine,
        timed=args.timed,
        estimators=estimators,
        config=config,
    )

    for n in names:
        logger.info("%-14s max |error| = %.6f", n, max_abs_error(bonds, n))

    path = os.path.join(args.output_dir, "mse_diff_unbinned.csv")
    write_results(bonds, mse_by_diff_columns(names), path)
    logger.info("Saved to %s", path)

    path = os.path.join(args.output_dir, "mse_days_to_expiry_unbinned.csv")
    write_results(bonds, mse_by_days_columns(names), path)
    logger.info("Saved to %s", path)

    for by in ("days_to_expiry", "coupon_minus_yield"):
        path = os.path.join(args.output_dir, f"mse_summary_{by}.csv")
        mse_summary(bonds, names, by=by).to_csv(path, index=False)
        logger.info("Saved to %s", path)

    if args.refine or args.timed:
        path = os.path.join(args.output_dir, "bond_results.csv")
        write_results(bonds, results_columns(names, refined=args.refine, timed=args.timed), path)
        logger.info("Saved to %s", path)

    if args.refine:
        n_failed = failed_refinements(bonds)
        if n_failed:
            logger.warning("%d refinements failed (recorded as NaN / -1).", n_failed)

        path = os.path.join(args.output_dir, "refinement_summary.csv")
        refinement_summary(bonds, names).to_csv(path, index=False)
        logger.info("Saved to %s", path)

    return 0


if __name__ == "__main__":
    sys.exit(main())
