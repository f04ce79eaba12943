"""
Tests for factor_lasso/lambda_search.py

Covers:
- Chronological split at int(T * train_ratio) and its boundary errors
- Validation MSE uses the raw Lasso coefficients of the selected columns
- top_k = 0 scores the all-zero prediction; ties keep the first grid value
- End-to-end: the signal column is selected and beats the zero baseline
- Determinism and thread-pool parity
- Precondition errors
"""

import numpy as np
import pytest

from factor_lasso.errors import (
    DegenerateColumnError,
    DimensionMismatchError,
    InvalidParameterError,
)
from factor_lasso.lambda_search import (
    LambdaSearchResult,
    find_best_lambda,
    log_space,
    split_train_validation,
    subset_columns,
)
from factor_lasso.selection import LassoParams, select_top_k, solve_lasso


def _signal_design(T=100, seed=0):
    """Column 0 tracks y closely, columns 1-2 are independent noise."""
    rng = np.random.RandomState(seed)
    y = rng.randn(T)
    X = np.column_stack([
        2.0 * y + 0.1 * rng.randn(T),
        rng.randn(T),
        rng.randn(T),
    ])
    X = X / X.std(axis=0, ddof=1)
    return X, y


class TestSplitTrainValidation:
    """Test the chronological split."""

    def test_split_index_and_order(self):
        """Rows [0, split) train, [split, T) validate, no shuffling."""
        X = np.arange(20, dtype=float).reshape(10, 2)
        y = np.arange(10, dtype=float)

        X_tr, y_tr, X_val, y_val, split = split_train_validation(X, y, 0.8)

        assert split == 8
        assert y_tr.tolist() == list(range(8))
        assert y_val.tolist() == [8.0, 9.0]
        assert np.array_equal(X_val, X[8:])

    def test_split_truncates(self):
        """split = int(T * ratio), truncated toward zero."""
        X = np.ones((7, 1))
        y = np.ones(7)
        *_, split = split_train_validation(X, y, 0.5)
        assert split == 3

    def test_returns_copies(self):
        """Mutating the returned arrays does not touch the inputs."""
        X = np.ones((10, 2))
        y = np.ones(10)

        X_tr, y_tr, _, _, _ = split_train_validation(X, y, 0.5)
        X_tr[:] = 0.0
        y_tr[:] = 0.0

        assert np.all(X == 1.0)
        assert np.all(y == 1.0)

    def test_empty_train_side_raises(self):
        """int(T * ratio) == 0 raises InvalidParameterError."""
        with pytest.raises(InvalidParameterError, match="non-empty"):
            split_train_validation(np.ones((3, 1)), np.ones(3), 0.2)

    @pytest.mark.parametrize("ratio", [0.0, 1.0, -0.5, 1.5])
    def test_ratio_out_of_range_raises(self, ratio):
        """train_ratio must be strictly inside (0, 1)."""
        with pytest.raises(InvalidParameterError, match="train_ratio"):
            split_train_validation(np.ones((10, 1)), np.ones(10), ratio)

    def test_row_mismatch_raises(self):
        """X and y with different row counts raise DimensionMismatchError."""
        with pytest.raises(DimensionMismatchError):
            split_train_validation(np.ones((10, 1)), np.ones(9), 0.5)


class TestSubsetColumns:
    """Test subset_columns."""

    def test_keeps_given_order(self):
        """Columns come back in the requested order."""
        X = np.arange(12, dtype=float).reshape(3, 4)
        out = subset_columns(X, [3, 1])
        assert np.array_equal(out, X[:, [3, 1]])

    def test_empty_selection(self):
        """No columns gives shape (T, 0)."""
        out = subset_columns(np.ones((5, 3)), [])
        assert out.shape == (5, 0)


class TestFindBestLambda:
    """Test the grid search."""

    def test_selects_signal_column_and_beats_baseline(self):
        """The tracking column wins and validation MSE is below mean(y_val^2)."""
        X, y = _signal_design()

        result = find_best_lambda(X, y, log_space(-6, 0, 10), top_k=1, train_ratio=0.8)

        assert isinstance(result, LambdaSearchResult)
        assert result.selected.tolist() == [0]
        assert result.split == 80
        baseline = np.mean(y[80:] ** 2)
        assert result.best_mse <= baseline

    def test_best_lambda_is_a_grid_value(self):
        """best_lambda is one of the supplied grid points."""
        X, y = _signal_design(seed=1)
        grid = [1e-3, 0.1, 1.0, 10.0]

        result = find_best_lambda(X, y, grid, top_k=2)

        assert result.best_lambda in grid
        assert len(result.evaluations) == len(grid)
        assert [ev.lam for ev in result.evaluations] == grid

    def test_mse_uses_raw_lasso_coefficients(self):
        """Validation MSE is computed from the shrunk coefficients, not a refit."""
        X, y = _signal_design(seed=2)
        lam = 20.0

        result = find_best_lambda(X, y, [lam], top_k=2, train_ratio=0.8)

        split = result.split
        coeffs = solve_lasso(X[:split], y[:split], lam)
        selected = select_top_k(coeffs, 2)
        resid = y[split:] - X[split:][:, selected] @ coeffs[selected]

        assert np.isclose(result.best_mse, np.mean(resid ** 2), rtol=1e-12)
        assert np.array_equal(result.coeffs, coeffs)

    def test_returns_full_coefficient_vector(self):
        """coeffs covers every column, not only the selected ones."""
        X, y = _signal_design()
        result = find_best_lambda(X, y, [0.01], top_k=1)
        assert result.coeffs.shape == (3,)

    def test_top_k_zero_scores_zero_prediction(self):
        """top_k = 0: empty selection, MSE = mean(y_val^2), first grid value wins."""
        X, y = _signal_design()
        grid = [0.5, 1e-3, 2.0]

        result = find_best_lambda(X, y, grid, top_k=0)

        assert result.selected.size == 0
        assert np.isclose(result.best_mse, np.mean(y[result.split:] ** 2))
        assert result.best_lambda == 0.5

    def test_tie_keeps_first_grid_value(self):
        """Repeated grid values give equal MSE; the earliest index wins."""
        X, y = _signal_design()

        result = find_best_lambda(X, y, [0.1, 0.1, 0.1], top_k=1)

        assert result.best_lambda == 0.1
        assert result.best_mse == result.evaluations[0].mse

    def test_deterministic(self):
        """Identical inputs give bit-identical results."""
        X, y = _signal_design(seed=3)
        grid = log_space(-4, 1, 8)

        a = find_best_lambda(X, y, grid, top_k=2)
        b = find_best_lambda(X, y, grid, top_k=2)

        assert a.best_lambda == b.best_lambda
        assert a.best_mse == b.best_mse
        assert np.array_equal(a.selected, b.selected)
        assert np.array_equal(a.coeffs, b.coeffs)

    def test_thread_pool_matches_serial(self):
        """n_jobs > 1 returns the same answer and path as the serial sweep."""
        X, y = _signal_design(seed=4)
        grid = log_space(-4, 1, 8)

        serial = find_best_lambda(X, y, grid, top_k=2)
        parallel = find_best_lambda(X, y, grid, top_k=2, n_jobs=4)

        assert serial.best_lambda == parallel.best_lambda
        assert serial.best_mse == parallel.best_mse
        assert [ev.mse for ev in serial.evaluations] == [ev.mse for ev in parallel.evaluations]

    def test_as_tuple(self):
        """as_tuple returns (best_lambda, selected, coeffs)."""
        X, y = _signal_design()
        result = find_best_lambda(X, y, [0.01], top_k=1)

        lam, selected, coeffs = result.as_tuple()

        assert lam == result.best_lambda
        assert selected is result.selected
        assert coeffs is result.coeffs

    def test_inputs_not_mutated(self):
        """X and y are unchanged after the search."""
        X, y = _signal_design()
        X_before, y_before = X.copy(), y.copy()

        find_best_lambda(X, y, [0.01, 0.1], top_k=1)

        assert np.array_equal(X, X_before)
        assert np.array_equal(y, y_before)

    def test_empty_grid_raises(self):
        """An empty grid raises InvalidParameterError."""
        X, y = _signal_design()
        with pytest.raises(InvalidParameterError, match="non-empty"):
            find_best_lambda(X, y, [], top_k=1)

    def test_negative_grid_value_raises(self):
        """Negative penalties raise InvalidParameterError."""
        X, y = _signal_design()
        with pytest.raises(InvalidParameterError, match="non-negative"):
            find_best_lambda(X, y, [0.1, -1.0], top_k=1)

    def test_nan_in_validation_rows_raises(self):
        """NaN after the split raises instead of silently skipping a grid point."""
        X, y = _signal_design()
        X = X.copy()
        X[90, 2] = np.nan

        with pytest.raises(InvalidParameterError, match="NaN"):
            find_best_lambda(X, y, [1e-3, 1e3], top_k=2)

    def test_inf_in_validation_target_raises(self):
        """inf in a validation row of y raises InvalidParameterError."""
        X, y = _signal_design()
        y = y.copy()
        y[95] = np.inf

        with pytest.raises(InvalidParameterError, match="inf"):
            find_best_lambda(X, y, [0.1], top_k=1)

    def test_top_k_out_of_range_raises(self):
        """top_k > N raises InvalidParameterError."""
        X, y = _signal_design()
        with pytest.raises(InvalidParameterError, match="top_k"):
            find_best_lambda(X, y, [0.1], top_k=4)

    def test_degenerate_training_column_raises(self):
        """A column that is zero on the training rows raises by default."""
        X, y = _signal_design()
        X = X.copy()
        X[:80, 2] = 0.0

        with pytest.raises(DegenerateColumnError):
            find_best_lambda(X, y, [0.1], top_k=1)

    def test_degenerate_training_column_zero_policy(self):
        """on_degenerate='zero' lets the search finish."""
        X, y = _signal_design()
        X = X.copy()
        X[:80, 2] = 0.0

        result = find_best_lambda(
            X, y, [0.1], top_k=1, params=LassoParams(on_degenerate="zero")
        )

        assert result.coeffs[2] == 0.0
        assert result.selected.tolist() == [0]
