"""
Selection module for factor-lasso.

Provides:
- LassoParams: Solver configuration (iterations, tolerance, zero-column policy).
- solve_lasso: Coordinate-descent Lasso on a fixed design matrix.
- select_top_k: Indices of the K largest |coefficients|, stable on ties.
- select_lasso: solve_lasso + select_top_k in one call.
- LassoSelector: Name-aware wrapper returning selected factor names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

import numpy as np

from factor_lasso.errors import (
    DegenerateColumnError,
    DimensionMismatchError,
    InvalidParameterError,
)
from utils.math_tools import soft_threshold

logger = logging.getLogger(__name__)

DegeneratePolicy = Literal["raise", "zero"]


@dataclass(frozen=True)
class LassoParams:
    """Parameters for the coordinate-descent Lasso solver.

    Attributes
    ----------
    max_iter : int
        Maximum number of full sweeps over the columns.
    tol : float
        Stop once the largest coefficient change within a sweep is below tol.
    on_degenerate : DegeneratePolicy
        "raise": zero-norm columns raise DegenerateColumnError (default).
        "zero": zero-norm columns keep a coefficient of exactly 0.
    """
    max_iter: int = 1000
    tol: float = 1e-5
    on_degenerate: DegeneratePolicy = "raise"


def _as_design(X, y) -> Tuple[np.ndarray, np.ndarray]:
    """Convert X, y to float64 arrays and check their shapes agree."""
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    if X.ndim != 2:
        raise DimensionMismatchError(f"X must be 2-D, got shape {X.shape}")
    if y.ndim != 1:
        raise DimensionMismatchError(f"y must be 1-D, got shape {y.shape}")
    if X.shape[0] != y.shape[0]:
        raise DimensionMismatchError(
            f"X and y must have the same number of rows: "
            f"X has {X.shape[0]}, y has {y.shape[0]}"
        )
    return X, y


def solve_lasso(
    X,
    y,
    lam: float,
    max_iter: int = 1000,
    tol: float = 1e-5,
    *,
    on_degenerate: DegeneratePolicy = "raise",
) -> np.ndarray:
    """
    Fit Lasso coefficients by cyclic coordinate descent.

    Minimises ``0.5 * ||y - X beta||^2 + lam * ||beta||_1`` with no intercept.
    Columns are visited in order 0..N-1 on every sweep; each coordinate is set
    to ``S(rho_j, lam) / ||X_j||^2`` where ``rho_j`` is the correlation of
    column j with the residual of all other columns.

    Parameters
    ----------
    X : array-like
        Design matrix, shape (T, N). Columns should be standardised by the
        caller since the penalty is not scale-invariant.
    y : array-like
        Target vector, shape (T,).
    lam : float
        Penalty strength, >= 0.
    max_iter : int
        Maximum number of sweeps, > 0.
    tol : float
        Convergence tolerance on the max per-sweep coefficient change, > 0.
    on_degenerate : {"raise", "zero"}
        Policy for columns with zero squared norm.

    Returns
    -------
    np.ndarray
        Coefficient vector, shape (N,). A new array on every call.

    Raises
    ------
    DimensionMismatchError
        If X is not 2-D, y is not 1-D, or row counts differ.
    InvalidParameterError
        If lam < 0, max_iter <= 0, tol <= 0, or inputs contain NaN/inf.
    DegenerateColumnError
        If a column has zero norm and on_degenerate="raise".

    Notes
    -----
    - Running out of sweeps is not an error; the last iterate is returned.
    - X and y are never modified. The partial residual lives in a buffer
      owned by this call, so concurrent calls on shared inputs are safe.
    """
    X, y = _as_design(X, y)

    if lam < 0 or not np.isfinite(lam):
        raise InvalidParameterError(f"lambda must be non-negative, got {lam}")
    if max_iter <= 0:
        raise InvalidParameterError(f"max_iter must be positive, got {max_iter}")
    if tol <= 0:
        raise InvalidParameterError(f"tol must be positive, got {tol}")
    if on_degenerate not in ("raise", "zero"):
        raise InvalidParameterError(
            f"on_degenerate must be 'raise' or 'zero', got '{on_degenerate}'"
        )
    if not np.all(np.isfinite(X)) or not np.all(np.isfinite(y)):
        raise InvalidParameterError("X and y must not contain NaN or inf")

    T, N = X.shape
    col_norm2 = np.einsum("ij,ij->j", X, X)
    degenerate = np.flatnonzero(col_norm2 == 0.0)

    if degenerate.size > 0:
        if on_degenerate == "raise":
            raise DegenerateColumnError(
                f"Zero-norm design columns: {degenerate.tolist()}",
                columns=degenerate.tolist(),
            )
        logger.warning(f"LASSO_CD:degenerate_columns_pinned_to_zero {degenerate.tolist()}")

    active = np.flatnonzero(col_norm2 > 0.0)
    beta = np.zeros(N, dtype=np.float64)
    # y - X @ beta with beta = 0
    residual = y.copy()

    for iteration in range(max_iter):
        max_change = 0.0
        for j in active:
            x_j = X[:, j]
            old = beta[j]
            rho = x_j @ residual + old * col_norm2[j]
            new = soft_threshold(rho, lam) / col_norm2[j]
            delta = new - old
            if delta != 0.0:
                residual -= delta * x_j
                beta[j] = new
            max_change = max(max_change, abs(delta))

        if max_change < tol:
            logger.debug(f"LASSO_CD:converged iter={iteration + 1} lam={lam:.3e}")
            break
    else:
        logger.debug(
            f"LASSO_CD:max_iter_reached max_iter={max_iter} lam={lam:.3e} "
            f"last_change={max_change:.3e}"
        )

    return beta


def select_top_k(coeffs, top_k: int) -> np.ndarray:
    """
    Rank coefficients by descending absolute value and keep the first top_k.

    Parameters
    ----------
    coeffs : array-like
        Coefficient vector, shape (N,).
    top_k : int
        Number of indices to keep, 0 <= top_k <= N.

    Returns
    -------
    np.ndarray
        Column indices (dtype intp), length top_k. Equal magnitudes keep
        ascending index order.

    Raises
    ------
    InvalidParameterError
        If top_k is outside [0, N].
    """
    coeffs = np.asarray(coeffs, dtype=np.float64).ravel()
    N = coeffs.shape[0]

    if top_k < 0:
        raise InvalidParameterError(f"topK must be greater than or equal to 0, got {top_k}")
    if top_k > N:
        raise InvalidParameterError(
            f"topK must be less than or equal to the number of features ({N}), got {top_k}"
        )

    order = np.argsort(-np.abs(coeffs), kind="stable")
    return order[:top_k].astype(np.intp)


def select_lasso(
    X,
    y,
    lam: float,
    top_k: int,
    params: Optional[LassoParams] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fit Lasso at a single penalty and return (selected indices, coefficients).

    top_k is validated before the solver runs.
    """
    params = params or LassoParams()
    X_arr = np.asarray(X, dtype=np.float64)
    n_features = X_arr.shape[1] if X_arr.ndim == 2 else 0
    if top_k < 0 or top_k > n_features:
        raise InvalidParameterError(
            f"topK must be in [0, {n_features}], got {top_k}"
        )

    coeffs = solve_lasso(
        X_arr,
        y,
        lam,
        max_iter=params.max_iter,
        tol=params.tol,
        on_degenerate=params.on_degenerate,
    )
    return select_top_k(coeffs, top_k), coeffs


class LassoSelector:
    """
    Factor selection at a fixed penalty with named features.

    Parameters
    ----------
    params : LassoParams
        Solver configuration.

    Attributes
    ----------
    coef_ : np.ndarray | None
        Coefficients from the last call to select_features_lasso.
    """

    def __init__(self, params: LassoParams):
        self.params = params
        self.coef_: np.ndarray | None = None

    def select_features_lasso(
        self,
        X: np.ndarray,
        y: np.ndarray,
        feature_names: List[str],
        lam: float,
        top_k: int,
    ) -> List[str]:
        """
        Select the top_k features by |Lasso coefficient| at penalty lam.

        Parameters
        ----------
        X : np.ndarray
            Standardised feature matrix, shape (n_samples, n_features).
        y : np.ndarray
            Target vector, shape (n_samples,).
        feature_names : List[str]
            Names of features. Length must equal n_features.
        lam : float
            Penalty strength.
        top_k : int
            Number of features to keep.

        Returns
        -------
        List[str]
            Selected feature names, largest |coefficient| first.

        Raises
        ------
        ValueError
            If len(feature_names) != X.shape[1], or any solver precondition fails.
        """
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2 or len(feature_names) != X.shape[1]:
            raise DimensionMismatchError(
                f"feature_names length ({len(feature_names)}) must equal "
                f"number of features in X ({X.shape[1] if X.ndim == 2 else 'n/a'})"
            )

        selected, coeffs = select_lasso(X, y, lam, top_k, self.params)
        self.coef_ = coeffs
        return [feature_names[i] for i in selected]
