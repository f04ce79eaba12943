"""
Math tools module for factor-lasso.

Provides scalar and vector helpers shared by the Lasso solver and the
lambda search:
- soft_threshold: closed-form L1 proximal step for a single coordinate
- log_space: log-spaced penalty grid (10**start_exp .. 10**end_exp)
- mean_squared_error: mean of squared residuals
"""

import numpy as np


def soft_threshold(rho: float, lam: float) -> float:
    """
    Soft-thresholding operator S(rho, lam).

    Parameters
    ----------
    rho : float
        Correlation of a column with its partial residual.
    lam : float
        Penalty strength. Must be non-negative.

    Returns
    -------
    float
        ``rho - lam`` if ``rho > lam``, ``rho + lam`` if ``rho < -lam``,
        otherwise ``0.0``.

    Raises
    ------
    ValueError
        If lam is negative.

    Examples
    --------
    >>> soft_threshold(3.0, 1.0)
    2.0
    >>> soft_threshold(-0.5, 1.0)
    0.0
    """
    if lam < 0:
        raise ValueError(f"lam must be non-negative, got {lam}")

    if rho > lam:
        return float(rho - lam)
    if rho < -lam:
        return float(rho + lam)
    return 0.0


def log_space(start_exp: float, end_exp: float, num: int) -> np.ndarray:
    """
    Build ``num`` values spaced evenly in exponent from 10**start_exp to 10**end_exp.

    Parameters
    ----------
    start_exp : float
        Base-10 exponent of the first value.
    end_exp : float
        Base-10 exponent of the last value.
    num : int
        Number of values. Must be >= 1.

    Returns
    -------
    np.ndarray
        Float64 array of shape (num,). For num == 1 the single value is
        10**start_exp.

    Raises
    ------
    ValueError
        If num < 1.
    """
    if not isinstance(num, (int, np.integer)) or num < 1:
        raise ValueError(f"num must be a positive int, got {num}")

    if num == 1:
        return np.array([10.0 ** start_exp], dtype=np.float64)

    step = (end_exp - start_exp) / (num - 1)
    exponents = start_exp + step * np.arange(num, dtype=np.float64)
    return np.power(10.0, exponents)


def mean_squared_error(residuals: np.ndarray) -> float:
    """Mean of squared residuals. Empty input has no defined MSE and returns NaN."""
    residuals = np.asarray(residuals, dtype=np.float64)
    if residuals.size == 0:
        return float("nan")
    return float(np.mean(residuals * residuals))
