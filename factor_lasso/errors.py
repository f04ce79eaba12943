"""
Error kinds raised by the factor-lasso engine.

All errors derive from ValueError so callers that catch ValueError keep
working. They are raised at entry checks, before any iteration starts.
"""

import numpy as np


class FactorLassoError(ValueError):
    """Base class for engine errors."""


class DimensionMismatchError(FactorLassoError):
    """Row or length mismatch between X, y or a coefficient vector."""


class InvalidParameterError(FactorLassoError):
    """Out-of-range argument (negative lambda, bad top_k, empty grid, bad split)."""


class DegenerateColumnError(FactorLassoError):
    """A design column has zero norm (or zero variance) and cannot be scaled or divided by."""

    def __init__(self, message: str, columns=()):
        super().__init__(message)
        self.columns = tuple(columns)


class SingularMatrixError(FactorLassoError, np.linalg.LinAlgError):
    """The normal-equations matrix X'X is not invertible."""
