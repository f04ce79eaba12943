"""
Preprocessing module for factor-lasso.

Provides:
- compute_log_returns: log(p_t / p_{t-1}) per column, first row dropped.
- drop_sparse_rows: drop any row with a missing value.
- filter_start_date: keep rows on or after a date.
- standardize_columns / standardize_series: scale to unit sample std.

The Lasso penalty is not scale-invariant, so every candidate column must be
scaled to unit standard deviation before the lambda search.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from factor_lasso.errors import DegenerateColumnError

logger = logging.getLogger(__name__)


def compute_log_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute log returns from price levels.

    Parameters
    ----------
    prices : pd.DataFrame
        Price levels, DatetimeIndex sorted ascending, one column per ticker.

    Returns
    -------
    pd.DataFrame
        log(price_t / price_{t-1}). The first row and any row with a missing
        or non-finite value are dropped.

    Raises
    ------
    ValueError
        If prices contain non-positive values.
    """
    if not isinstance(prices, pd.DataFrame):
        raise ValueError("prices must be a DataFrame")

    values = prices.to_numpy(dtype=np.float64, na_value=np.nan)
    if np.any(values[np.isfinite(values)] <= 0):
        raise ValueError("prices must be strictly positive to compute log returns")

    shifted = prices.shift(1)
    returns = np.log(prices / shifted)
    returns = returns.replace([np.inf, -np.inf], np.nan)
    return drop_sparse_rows(returns)


def drop_sparse_rows(frame: pd.DataFrame) -> pd.DataFrame:
    """Drop rows containing any missing value."""
    before = len(frame)
    out = frame.dropna(how="any")
    dropped = before - len(out)
    if dropped:
        logger.info(f"PREPROCESS:drop_sparse_rows dropped={dropped} kept={len(out)}")
    return out


def filter_start_date(frame: pd.DataFrame, start_date: Optional[str]) -> pd.DataFrame:
    """Keep rows with index >= start_date (YYYY-MM-DD). None keeps everything."""
    if start_date is None:
        return frame
    start = pd.Timestamp(start_date)
    return frame.loc[frame.index >= start]


def standardize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Divide each column by its sample standard deviation (ddof=1).

    Columns are not centred, matching how returns are fed to the solver.

    Parameters
    ----------
    frame : pd.DataFrame
        Candidate factor returns.

    Returns
    -------
    pd.DataFrame
        Scaled copy with unit sample std per column.

    Raises
    ------
    DegenerateColumnError
        If any column has zero or non-finite std (constant or too short).
    """
    std = frame.std(axis=0, ddof=1)
    bad = [str(c) for c, s in std.items() if not np.isfinite(s) or s == 0.0]
    if bad:
        raise DegenerateColumnError(
            f"Cannot standardize zero-variance columns: {bad}", columns=bad
        )
    return frame / std


def standardize_series(series: pd.Series) -> pd.Series:
    """Divide a series by its sample standard deviation (ddof=1)."""
    std = series.std(ddof=1)
    if not np.isfinite(std) or std == 0.0:
        raise DegenerateColumnError(
            f"Cannot standardize zero-variance series '{series.name}'",
            columns=[str(series.name)],
        )
    return series / std
