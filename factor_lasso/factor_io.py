"""
CSV input/output for factor-lasso.

Usage:
    from factor_lasso.factor_io import load_factor_csv, write_fit_csv, write_betas_csv

    frame = load_factor_csv("factor_timeseries.csv", date_col="Date")
    write_fit_csv(fit_frame, out_csv_path="XLB_XLC_XLE.csv")
    write_betas_csv(betas, out_csv_path="XLB_XLC_XLE_betas.csv")
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from factor_lasso.preprocessing import filter_start_date

FIT_COLUMNS = ["Prediction", "Residuals", "actual"]


def load_factor_csv(
    csv_path: str,
    *,
    date_col: str = "Date",
    start_date: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Load a wide, date-indexed CSV of prices or returns.

    Parameters
    ----------
    csv_path : str
        Path to CSV with a date column and one numeric column per ticker.
    date_col : str
        Name of the date column (default "Date").
    start_date : str, optional
        Keep only rows on or after this date (YYYY-MM-DD).
    columns : Sequence[str], optional
        Keep only these columns, in this order. Other columns are ignored
        and may hold anything. None keeps every column.

    Returns
    -------
    pd.DataFrame
        DatetimeIndex sorted ascending, float columns. Missing values are
        kept; the caller decides how to drop them.

    Raises
    ------
    ValueError
        If the date column or a requested column is missing, dates are
        duplicated, or a kept column is not numeric.
    """
    df = pd.read_csv(csv_path)

    if date_col not in df.columns:
        raise ValueError(
            f"CSV missing required date column '{date_col}'. "
            f"Available columns: {list(df.columns)}"
        )

    df[date_col] = pd.to_datetime(df[date_col])
    df = df.set_index(date_col).sort_index()

    if df.index.has_duplicates:
        dupes = df.index[df.index.duplicated()].unique()
        raise ValueError(f"Duplicate dates in {csv_path}: {list(dupes[:5])}")

    if columns is not None:
        columns = list(columns)
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Columns not found in {csv_path}: {missing}")
        df = df[columns]

    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric columns in {csv_path}: {non_numeric}")

    df = df.astype(np.float64)
    return filter_start_date(df, start_date)


def write_fit_csv(
    fit: pd.DataFrame,
    *,
    out_csv_path: str,
    date_col: str = "Date",
) -> None:
    """
    Write a Prediction / Residuals / actual frame with its date index.

    Raises
    ------
    ValueError
        If fit is empty or missing one of the expected columns.
    """
    if not isinstance(fit, pd.DataFrame) or fit.empty:
        raise ValueError("fit must be a non-empty DataFrame")

    missing = [c for c in FIT_COLUMNS if c not in fit.columns]
    if missing:
        raise ValueError(f"fit frame missing columns: {missing}")

    Path(out_csv_path).parent.mkdir(parents=True, exist_ok=True)
    df = fit[FIT_COLUMNS].reset_index()
    df = df.rename(columns={df.columns[0]: date_col})
    df.to_csv(out_csv_path, index=False)


def write_betas_csv(betas: pd.Series, *, out_csv_path: str) -> None:
    """Write betas as two columns: factor, beta."""
    Path(out_csv_path).parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame({"factor": list(betas.index), "beta": betas.to_numpy(dtype=np.float64)})
    df.to_csv(out_csv_path, index=False)
