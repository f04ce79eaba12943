"""
OLS refit and prediction for factor-lasso.

Provides:
- fit_ols: closed-form normal-equations coefficients on a (reduced) design.
- predict_ols: predictions and residuals for a given coefficient vector.
"""

from __future__ import annotations

import numpy as np

from factor_lasso.errors import DimensionMismatchError, SingularMatrixError


def fit_ols(X, y) -> np.ndarray:
    """
    Ordinary least squares without intercept: beta = (X'X)^-1 X'y.

    Parameters
    ----------
    X : array-like
        Design matrix, shape (T, K). Usually the selected columns only.
    y : array-like
        Target vector, shape (T,).

    Returns
    -------
    np.ndarray
        Coefficients, shape (K,). Empty when K == 0.

    Raises
    ------
    DimensionMismatchError
        If X is not 2-D, y is not 1-D, or row counts differ.
    SingularMatrixError
        If X'X is rank deficient (collinear columns, or T < K).
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    if X.ndim != 2:
        raise DimensionMismatchError(f"X must be 2-D, got shape {X.shape}")
    if y.ndim != 1 or y.shape[0] != X.shape[0]:
        raise DimensionMismatchError(
            f"y must be 1-D with {X.shape[0]} rows, got shape {y.shape}"
        )

    T, K = X.shape
    if K == 0:
        return np.zeros(0, dtype=np.float64)

    if T < K:
        raise SingularMatrixError(
            f"X'X is singular: {T} observations for {K} columns"
        )

    XtX = X.T @ X
    Xty = X.T @ y

    rank = np.linalg.matrix_rank(XtX)
    if rank < K:
        raise SingularMatrixError(f"X'X is singular: rank {rank} < {K} columns")

    try:
        beta = np.linalg.solve(XtX, Xty)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"X'X is singular: {e}") from e

    return beta


def predict_ols(X, y, betas) -> tuple[np.ndarray, np.ndarray]:
    """
    Apply a coefficient vector and return (prediction, residuals).

    Parameters
    ----------
    X : array-like
        Design matrix, shape (T, K).
    y : array-like
        Target vector, shape (T,).
    betas : array-like
        Coefficients, shape (K,) or (K, 1).

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        prediction = X @ betas and residuals = y - prediction, both shape (T,).

    Raises
    ------
    DimensionMismatchError
        If betas length != K, len(y) != T, or the product would have more
        than one column.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    betas = np.asarray(betas, dtype=np.float64)

    if X.ndim != 2:
        raise DimensionMismatchError(f"X must be 2-D, got shape {X.shape}")
    if y.ndim != 1 or y.shape[0] != X.shape[0]:
        raise DimensionMismatchError(
            f"y must be 1-D with {X.shape[0]} rows, got shape {y.shape}"
        )
    if betas.ndim not in (1, 2) or betas.shape[0] != X.shape[1]:
        raise DimensionMismatchError(
            f"betas must have {X.shape[1]} rows, got shape {betas.shape}"
        )

    pred = X @ (betas if betas.ndim == 2 else betas[:, None])
    if pred.shape[1] > 1:
        raise DimensionMismatchError("Prediction matrix has more than one column.")

    prediction = pred[:, 0]
    residuals = y - prediction
    return prediction, residuals
