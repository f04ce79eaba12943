"""
Factor selection pipeline for factor-lasso.

Provides:
- PipelineParams: search settings shared by every asset-class group.
- prepare_returns: raw CSV frame -> clean return frame.
- run_group_selection: lambda search + OLS refit for one group.
- run_factor_selection: all groups, then a combined OLS refit on the union
  of the selected factors.
- write_report: per-group and final CSV outputs.

Flow per group:
    standardise -> find_best_lambda on (X_group, y) -> selected factors
    -> fit_ols on the selected columns over the full sample
    -> prediction / residuals
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from factor_lasso.asset_classes import group_tickers
from factor_lasso.factor_io import write_betas_csv, write_fit_csv
from factor_lasso.lambda_search import find_best_lambda, subset_columns
from factor_lasso.ols import fit_ols, predict_ols
from factor_lasso.preprocessing import (
    compute_log_returns,
    drop_sparse_rows,
    standardize_columns,
    standardize_series,
)
from factor_lasso.selection import LassoParams
from utils.math_tools import log_space

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineParams:
    """Search settings for the factor pipeline.

    Attributes
    ----------
    lambda_grid : Tuple[float, ...]
        Candidate penalties. Default log_space(-9, 0, 20).
    top_k : int
        Factors kept per asset-class group.
    train_ratio : float
        Fraction of rows used to fit inside the lambda search.
    group_size : int
        Tickers per asset-class group.
    lasso : LassoParams
        Solver configuration.
    n_jobs : Optional[int]
        Thread-pool size for the grid sweep (None = serial).
    """
    lambda_grid: Tuple[float, ...] = field(
        default_factory=lambda: tuple(log_space(-9, 0, 20).tolist())
    )
    top_k: int = 1
    train_ratio: float = 0.8
    group_size: int = 10
    lasso: LassoParams = field(default_factory=LassoParams)
    n_jobs: Optional[int] = None


@dataclass
class GroupSelection:
    """Outcome of one asset-class group."""
    group: List[str]
    best_lambda: float
    best_mse: float
    selected: List[str]
    lasso_coeffs: pd.Series
    refit_betas: pd.Series
    fit: pd.DataFrame


@dataclass
class FactorSelectionReport:
    """Outcome of the whole pipeline."""
    target: str
    groups: List[GroupSelection]
    selected_factors: List[str]
    final_betas: pd.Series
    final_fit: pd.DataFrame


def prepare_returns(raw: pd.DataFrame, input_kind: str = "returns") -> pd.DataFrame:
    """
    Turn a loaded CSV frame into clean returns.

    input_kind="prices" computes log returns; "returns" only drops rows with
    missing values.
    """
    if input_kind == "prices":
        return compute_log_returns(raw)
    if input_kind == "returns":
        return drop_sparse_rows(raw)
    raise ValueError(f"input_kind must be 'prices' or 'returns', got '{input_kind}'")


def _fit_frame(index: pd.Index, prediction: np.ndarray, residuals: np.ndarray, actual: np.ndarray) -> pd.DataFrame:
    return pd.DataFrame(
        {"Prediction": prediction, "Residuals": residuals, "actual": actual},
        index=index,
    )


def run_group_selection(
    X_group: pd.DataFrame,
    y: pd.Series,
    params: PipelineParams,
) -> GroupSelection:
    """
    Run the lambda search on one standardised group and refit OLS.

    Parameters
    ----------
    X_group : pd.DataFrame
        Standardised factor returns of the group, aligned with y.
    y : pd.Series
        Standardised target returns.
    params : PipelineParams
        Search settings. top_k is capped at the group width.

    Returns
    -------
    GroupSelection
    """
    group = [str(c) for c in X_group.columns]
    X = X_group.to_numpy(dtype=np.float64)
    y_arr = y.to_numpy(dtype=np.float64)
    top_k = min(params.top_k, len(group))

    result = find_best_lambda(
        X,
        y_arr,
        params.lambda_grid,
        top_k,
        params.train_ratio,
        params=params.lasso,
        n_jobs=params.n_jobs,
    )
    selected = [group[i] for i in result.selected]

    X_selected = subset_columns(X, result.selected)
    refit = fit_ols(X_selected, y_arr)
    prediction, residuals = predict_ols(X_selected, y_arr, refit)

    logger.info(
        f"FACTOR_PIPELINE:group {','.join(group)} selected={selected} "
        f"lasso_betas={[float(result.coeffs[i]) for i in result.selected]} "
        f"ols_betas={refit.tolist()} best_lambda={result.best_lambda:.3e}"
    )

    return GroupSelection(
        group=group,
        best_lambda=result.best_lambda,
        best_mse=result.best_mse,
        selected=selected,
        lasso_coeffs=pd.Series(result.coeffs, index=group, name="lasso"),
        refit_betas=pd.Series(refit, index=selected, name="beta", dtype=np.float64),
        fit=_fit_frame(X_group.index, prediction, residuals, y_arr),
    )


def run_factor_selection(
    returns: pd.DataFrame,
    target: str,
    factors: Sequence[str],
    params: Optional[PipelineParams] = None,
) -> FactorSelectionReport:
    """
    Select factors per asset-class group and refit the combined model.

    Parameters
    ----------
    returns : pd.DataFrame
        Clean returns, DatetimeIndex ascending, containing target and factors.
    target : str
        Target column.
    factors : Sequence[str]
        Candidate factor columns, grouped in order by params.group_size.
    params : PipelineParams, optional
        Search settings.

    Returns
    -------
    FactorSelectionReport

    Raises
    ------
    ValueError
        If the target or a factor column is missing, no factors remain, or
        any engine precondition fails.
    """
    params = params or PipelineParams()

    if target not in returns.columns:
        raise ValueError(f"Target column '{target}' not found in returns")

    factors = [str(f) for f in factors]
    if target in factors:
        logger.warning(f"FACTOR_PIPELINE:target_in_factors dropping '{target}' from candidates")
        factors = [f for f in factors if f != target]

    missing = [f for f in factors if f not in returns.columns]
    if missing:
        raise ValueError(f"Factor columns not found in returns: {missing}")
    if not factors:
        raise ValueError("No candidate factors to select from")

    frame = drop_sparse_rows(returns[[target] + factors])
    y = standardize_series(frame[target])
    X_all = standardize_columns(frame[factors])

    groups = []
    for group in group_tickers(factors, params.group_size):
        groups.append(run_group_selection(X_all[group], y, params))

    selected_factors = [name for g in groups for name in g.selected]

    X_final = X_all[selected_factors].to_numpy(dtype=np.float64)
    y_arr = y.to_numpy(dtype=np.float64)
    final_betas = fit_ols(X_final, y_arr)
    prediction, residuals = predict_ols(X_final, y_arr, final_betas)

    logger.info(
        f"FACTOR_PIPELINE:final target={target} factors={selected_factors} "
        f"betas={final_betas.tolist()}"
    )

    return FactorSelectionReport(
        target=target,
        groups=groups,
        selected_factors=selected_factors,
        final_betas=pd.Series(final_betas, index=selected_factors, name="beta", dtype=np.float64),
        final_fit=_fit_frame(X_all.index, prediction, residuals, y_arr),
    )


def write_report(report: FactorSelectionReport, out_dir: str) -> List[str]:
    """
    Write the pipeline outputs as CSV files.

    Per group: <T1_T2_...>.csv (Prediction, Residuals, actual) and
    <T1_T2_...>_betas.csv (OLS betas of the selected factors).
    Final: <S1_S2_...>_final.csv and <S1_S2_...>_final_betas.csv over the selected
    factors of all groups.

    Returns
    -------
    List[str]
        Written file paths, in write order.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []

    for g in report.groups:
        stem = "_".join(g.group)
        fit_path = out / f"{stem}.csv"
        betas_path = out / f"{stem}_betas.csv"
        write_fit_csv(g.fit, out_csv_path=str(fit_path))
        write_betas_csv(g.refit_betas, out_csv_path=str(betas_path))
        written.extend([str(fit_path), str(betas_path)])

    stem = "_".join(report.selected_factors) or "no_factors"
    final_fit_path = out / f"{stem}_final.csv"
    final_betas_path = out / f"{stem}_final_betas.csv"
    write_fit_csv(report.final_fit, out_csv_path=str(final_fit_path))
    write_betas_csv(report.final_betas, out_csv_path=str(final_betas_path))
    written.extend([str(final_fit_path), str(final_betas_path)])

    return written
