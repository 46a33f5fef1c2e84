from __future__ import annotations

import os
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .sweep import BondRecord

ColumnSpec = Tuple[str, Callable[[BondRecord], object]]


# first_order -> FirstOrder
def _label(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


def estimate_columns(names: Sequence[str]) -> List[ColumnSpec]:
    cols: List[ColumnSpec] = []
    for n in names:
        cols.append((f"Yield{_label(n)}", lambda b, n=n: b.estimates[n].estimate))
        cols.append((f"Error{_label(n)}", lambda b, n=n: b.estimates[n].error))
    return cols


def squared_error_columns(names: Sequence[str]) -> List[ColumnSpec]:
    return [(f"Error{_label(n)}", lambda b, n=n: b.estimates[n].error ** 2) for n in names]


def refinement_columns(names: Sequence[str]) -> List[ColumnSpec]:
    cols: List[ColumnSpec] = []
    for n in names:
        cols.append((f"Refined{_label(n)}", lambda b, n=n: b.estimates[n].refined_yield))
        cols.append((f"Iterations{_label(n)}", lambda b, n=n: b.estimates[n].iterations))
    return cols


def timing_columns(names: Sequence[str], refined: bool = True) -> List[ColumnSpec]:
    cols: List[ColumnSpec] = []
    for n in names:
        cols.append((f"Elapsed{_label(n)}", lambda b, n=n: b.estimates[n].elapsed))
        if refined:
            cols.append((f"RefineElapsed{_label(n)}", lambda b, n=n: b.estimates[n].refine_elapsed))
    return cols


def results_columns(names: Sequence[str], refined: bool = False, timed: bool = False) -> List[ColumnSpec]:
    """Per-bond layout: terms and price, estimates/errors, then refinement and timing columns if recorded."""
    cols = bond_columns() + estimate_columns(names)
    if refined:
        cols += refinement_columns(names)
    if timed:
        cols += timing_columns(names, refined=refined)
    return cols


def bond_columns() -> List[ColumnSpec]:
    return [
        ("CouponRate", lambda b: b.terms.coupon_rate),
        ("Yield", lambda b: b.sampling_yield),
        ("PaymentFrequency", lambda b: b.terms.frequency.name),
        ("MaturityDate", lambda b: b.maturity_date.date().isoformat()),
        ("Price", lambda b: b.price),
    ]


def mse_by_diff_columns(names: Sequence[str]) -> List[ColumnSpec]:
    """CouponMinusYield, squared error per estimator, PaymentFrequency."""
    return (
        [("CouponMinusYield", lambda b: b.coupon_minus_yield)]
        + squared_error_columns(names)
        + [("PaymentFrequency", lambda b: b.terms.frequency.name)]
    )


def mse_by_days_columns(names: Sequence[str]) -> List[ColumnSpec]:
    """DaysToExpiry, squared error per estimator, PaymentFrequency."""
    return (
        [("DaysToExpiry", lambda b: b.days_to_expiry)]
        + squared_error_columns(names)
        + [("PaymentFrequency", lambda b: b.terms.frequency.name)]
    )


def records_to_frame(records: Iterable[BondRecord], columns: Sequence[ColumnSpec]) -> pd.DataFrame:
    names = [c for c, _ in columns]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate column names: {names}")

    rows = [[fn(r) for _, fn in columns] for r in records]
    return pd.DataFrame(rows, columns=names)


def write_results(
    records: Iterable[BondRecord],
    columns: Sequence[ColumnSpec],
    path: str,
    float_format: Optional[str] = "%.8f",
) -> pd.DataFrame:
    """One header row, one row per record. Returns the written frame."""
    out = records_to_frame(records, columns)

    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    out.to_csv(path, index=False, float_format=float_format)
    return out


def mse_summary(
    records: Sequence[BondRecord],
    names: Sequence[str],
    by: str = "days_to_expiry",
    bins: Optional[Sequence[float]] = None,
) -> pd.DataFrame:
    """
    Binned mean squared error per estimator.

    by: "days_to_expiry" (default bins: yearly up to 30Y) or
        "coupon_minus_yield" (default bins: 1% wide over [-20%, 10%]).
    """
    if by == "days_to_expiry":
        key = np.array([r.days_to_expiry for r in records], dtype=float)
        if bins is None:
            bins = np.arange(0, 31 * 365, 365)
    elif by == "coupon_minus_yield":
        key = np.array([r.coupon_minus_yield for r in records], dtype=float)
        if bins is None:
            bins = np.round(np.arange(-0.20, 0.1001, 0.01), 4)
    else:
        raise ValueError(f"Unsupported grouping: {by}")

    df = pd.DataFrame({by: key})
    for n in names:
        df[n] = [r.estimates[n].error ** 2 for r in records]

    df["bucket"] = pd.cut(df[by], bins=bins, include_lowest=True)
    out = df.groupby("bucket", observed=True)[list(names)].mean()
    out["count"] = df.groupby("bucket", observed=True)[by].size()
    return out.reset_index()


def refinement_summary(records: Sequence[BondRecord], names: Sequence[str]) -> pd.DataFrame:
    rows = []
    for n in names:
        res = [r.estimates[n] for r in records]
        ok = [x for x in res if x.refined]
        iters = np.array([x.iterations for x in ok], dtype=float)
        errs = np.array(
            [x.refined_yield - r.sampling_yield for x, r in zip(res, records) if x.refined],
            dtype=float,
        )
        rows.append(
            {
                "estimator": n,
                "mean_iterations": float(iters.mean()) if iters.size else np.nan,
                "max_iterations": int(iters.max()) if iters.size else -1,
                "failures": len(res) - len(ok),
                "max_abs_refined_error": float(np.abs(errs).max()) if errs.size else np.nan,
            }
        )
    return pd.DataFrame(rows)
