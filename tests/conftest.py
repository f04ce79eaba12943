# tests/conftest.py
"""
Pytest configuration for the factor-lasso test suite.

Centralizes sys.path setup so all test files can import project modules
(e.g., `from factor_lasso.selection import ...`, `from utils.math_tools import ...`)
without per-file sys.path hacks.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure project root is on sys.path so imports work.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
root_str = str(PROJECT_ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


def pytest_configure(config):
    """
    Configure pytest warning filters for third-party noise.

    scikit-learn is only used as a reference solver in tests; its
    ConvergenceWarning on tiny alphas says nothing about our code.
    """
    config.addinivalue_line(
        "filterwarnings",
        "ignore::sklearn.exceptions.ConvergenceWarning"
    )
