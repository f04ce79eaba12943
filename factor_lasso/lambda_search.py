"""
Lambda search for factor-lasso.

Provides:
- split_train_validation: chronological row split at int(T * train_ratio)
- subset_columns: reduced copy of a design matrix with the given columns
- LambdaEvaluation / LambdaSearchResult: per-grid-point and winning outcomes
- find_best_lambda: sweep a penalty grid, score each point on validation MSE

Design Principles:
- No shuffling: rows [0, split) train, rows [split, T) validate.
- Validation uses the raw Lasso-shrunk coefficients of the selected columns,
  not an OLS refit, so the score includes shrinkage bias.
- First minimum wins: ties on MSE keep the earlier grid value.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from factor_lasso.errors import (
    DimensionMismatchError,
    FactorLassoError,
    InvalidParameterError,
)
from factor_lasso.ols import predict_ols
from factor_lasso.selection import LassoParams, select_lasso
from utils.math_tools import log_space, mean_squared_error

logger = logging.getLogger(__name__)

__all__ = [
    "LambdaEvaluation",
    "LambdaSearchResult",
    "find_best_lambda",
    "log_space",
    "split_train_validation",
    "subset_columns",
]


@dataclass(frozen=True)
class LambdaEvaluation:
    """Outcome of one grid point.

    Attributes
    ----------
    lam : float
        Penalty strength.
    mse : float
        Validation mean squared error.
    selected : np.ndarray
        Selected column indices, largest |coefficient| first.
    coeffs : np.ndarray
        Full coefficient vector fitted on the training rows.
    """
    lam: float
    mse: float
    selected: np.ndarray
    coeffs: np.ndarray


@dataclass(frozen=True)
class LambdaSearchResult:
    """Winning grid point plus the full validation path.

    Attributes
    ----------
    best_lambda : float
        Grid value with the lowest validation MSE.
    selected : np.ndarray
        Selection at best_lambda.
    coeffs : np.ndarray
        Full (unreduced) coefficients at best_lambda.
    best_mse : float
        Validation MSE at best_lambda.
    evaluations : Tuple[LambdaEvaluation, ...]
        Every grid point in grid order.
    split : int
        Row index where validation starts.
    """
    best_lambda: float
    selected: np.ndarray
    coeffs: np.ndarray
    best_mse: float
    evaluations: Tuple[LambdaEvaluation, ...]
    split: int

    def as_tuple(self) -> Tuple[float, np.ndarray, np.ndarray]:
        """Return (best_lambda, selected, coeffs)."""
        return self.best_lambda, self.selected, self.coeffs


def split_train_validation(
    X,
    y,
    train_ratio: float = 0.8,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, int]:
    """
    Split X and y by rows at int(T * train_ratio).

    Returns
    -------
    tuple
        (X_train, y_train, X_val, y_val, split). The arrays are copies.

    Raises
    ------
    DimensionMismatchError
        If X is not 2-D, y is not 1-D, or row counts differ.
    InvalidParameterError
        If train_ratio is not in (0, 1) or the split leaves either side empty.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    if X.ndim != 2 or y.ndim != 1 or X.shape[0] != y.shape[0]:
        raise DimensionMismatchError(
            f"X and y must have the same number of rows: X{X.shape}, y{y.shape}"
        )

    if not (0.0 < train_ratio < 1.0):
        raise InvalidParameterError(f"train_ratio must be in (0, 1), got {train_ratio}")

    T = X.shape[0]
    split = int(T * train_ratio)
    if split <= 0 or split >= T:
        raise InvalidParameterError(
            f"train_ratio={train_ratio} with T={T} gives split={split}; "
            f"both train and validation sets must be non-empty"
        )

    return X[:split].copy(), y[:split].copy(), X[split:].copy(), y[split:].copy(), split


def subset_columns(X, columns: Sequence[int]) -> np.ndarray:
    """Copy of X restricted to `columns`, in the given order. Shape (T, len(columns))."""
    X = np.asarray(X, dtype=np.float64)
    idx = np.asarray(columns, dtype=np.intp)
    return X[:, idx]


def _evaluate_lambda(
    lam: float,
    X_train: np.ndarray,
    y_train: np.ndarray,
    X_val: np.ndarray,
    y_val: np.ndarray,
    top_k: int,
    params: LassoParams,
) -> LambdaEvaluation:
    """Solve on train, score the selected raw coefficients on validation."""
    selected, coeffs = select_lasso(X_train, y_train, lam, top_k, params)

    X_val_reduced = subset_columns(X_val, selected)
    betas = coeffs[selected]
    _, residuals = predict_ols(X_val_reduced, y_val, betas)
    mse = mean_squared_error(residuals)

    logger.debug(
        f"LAMBDA_SEARCH:eval lam={lam:.3e} mse={mse:.6g} "
        f"selected={selected.tolist()} nnz={int(np.count_nonzero(coeffs))}"
    )
    return LambdaEvaluation(lam=float(lam), mse=mse, selected=selected, coeffs=coeffs)


def find_best_lambda(
    X,
    y,
    lambda_grid: Sequence[float],
    top_k: int,
    train_ratio: float = 0.8,
    *,
    params: Optional[LassoParams] = None,
    n_jobs: Optional[int] = None,
) -> LambdaSearchResult:
    """
    Choose the Lasso penalty with the lowest validation MSE.

    Parameters
    ----------
    X : array-like
        Standardised design matrix, shape (T, N), rows in time order.
    y : array-like
        Target vector, shape (T,).
    lambda_grid : Sequence[float]
        Candidate penalties (>= 0), evaluated in the given order.
    top_k : int
        Number of factors kept per grid point, 0 <= top_k <= N.
    train_ratio : float
        Fraction of rows used for fitting, in (0, 1). Default 0.8.
    params : LassoParams, optional
        Solver configuration. Defaults to LassoParams().
    n_jobs : int, optional
        If > 1, evaluate grid points on a thread pool of this size. The
        result is identical to the serial run.

    Returns
    -------
    LambdaSearchResult
        Winning lambda, its selection and full coefficients, plus the path.

    Raises
    ------
    DimensionMismatchError
        If X and y row counts differ.
    InvalidParameterError
        If the grid is empty or has negative values, top_k is outside [0, N],
        X or y holds NaN/inf in any row, train_ratio is outside (0, 1), or
        the split is degenerate.
    DegenerateColumnError
        If a training column has zero norm under the "raise" policy.
    """
    params = params or LassoParams()

    grid = np.asarray(lambda_grid, dtype=np.float64).ravel()
    if grid.size == 0:
        raise InvalidParameterError("lambda_grid must be non-empty")
    if not np.all(np.isfinite(grid)) or np.any(grid < 0):
        raise InvalidParameterError("lambda_grid values must be finite and non-negative")

    X_arr = np.asarray(X, dtype=np.float64)
    if X_arr.ndim != 2:
        raise DimensionMismatchError(f"X must be 2-D, got shape {X_arr.shape}")
    N = X_arr.shape[1]
    if top_k < 0 or top_k > N:
        raise InvalidParameterError(f"top_k must be in [0, {N}], got {top_k}")

    # Validation rows never reach the solver's own check
    y_arr = np.asarray(y, dtype=np.float64)
    if not np.all(np.isfinite(X_arr)) or not np.all(np.isfinite(y_arr)):
        raise InvalidParameterError("X and y must not contain NaN or inf")

    X_train, y_train, X_val, y_val, split = split_train_validation(X_arr, y_arr, train_ratio)

    def evaluate(lam: float) -> LambdaEvaluation:
        return _evaluate_lambda(lam, X_train, y_train, X_val, y_val, top_k, params)

    if n_jobs is not None and n_jobs > 1 and grid.size > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            evaluations = tuple(pool.map(evaluate, grid))
    else:
        evaluations = tuple(evaluate(lam) for lam in grid)

    best: Optional[LambdaEvaluation] = None
    best_mse = np.inf
    for ev in evaluations:
        if ev.mse < best_mse:
            best_mse = ev.mse
            best = ev

    if best is None:
        raise FactorLassoError("No grid point produced a finite validation MSE")

    logger.info(
        f"LAMBDA_SEARCH:best lambda={best.lam:.3e} mse={best.mse:.6g} "
        f"selected={best.selected.tolist()} grid_size={grid.size} split={split}"
    )

    return LambdaSearchResult(
        best_lambda=best.lam,
        selected=best.selected,
        coeffs=best.coeffs,
        best_mse=best.mse,
        evaluations=evaluations,
        split=split,
    )
