"""
Main executor for the factor-lasso pipeline.

Provides:
- set_global_seed: Reproducible seeding for random/numpy.
- run_synthetic_smoke: End-to-end smoke test with synthetic data.
- load_yaml_config: Load YAML config file.
- validate_config_or_raise: Strict config validation.
- build_run_id: Deterministic run ID from config.
- save_artifacts: Save run artifacts (manifest, selected factors).
- run_from_config: Config-driven factor selection.

Entry point for running the full pipeline.
"""

from __future__ import annotations

import argparse
import json
import logging
import random
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

# Project modules
from factor_lasso.factor_pipeline import PipelineParams, run_factor_selection
from factor_lasso.lambda_search import find_best_lambda, log_space
from factor_lasso.ols import fit_ols, predict_ols
from factor_lasso.pipeline_config import (
    compute_run_id,
    load_pipeline_config,
    run_factor_selection_from_config,
    validate_pipeline_config,
)
from utils.math_tools import mean_squared_error


def set_global_seed(seed: int) -> None:
    """
    Set global random seeds for reproducibility.

    Parameters
    ----------
    seed : int
        Random seed value.
    """
    random.seed(seed)
    np.random.seed(seed)


def run_synthetic_smoke(
    seed: int = 42,
    return_objects: bool = False
) -> dict | Tuple[dict, dict]:
    """
    Run end-to-end synthetic smoke test.

    Exercises all core modules:
    - find_best_lambda (lambda_search, selection)
    - fit_ols / predict_ols (ols)
    - run_factor_selection (factor_pipeline, preprocessing, asset_classes)

    Parameters
    ----------
    seed : int
        Random seed for reproducibility.
    return_objects : bool
        If True, also return internal objects for artifact saving.

    Returns
    -------
    dict or Tuple[dict, dict]
        Results dict. If return_objects=True, returns (out, objects_dict).
    """
    set_global_seed(seed)

    # =========================================================================
    # 1) Single search: column 0 tracks y, columns 1-2 are noise
    # =========================================================================
    T = 100
    y = np.random.randn(T)
    X = np.column_stack([
        2.0 * y + 0.1 * np.random.randn(T),
        np.random.randn(T),
        np.random.randn(T),
    ])
    X = X / X.std(axis=0, ddof=1)

    grid = log_space(-6, 0, 10)
    result = find_best_lambda(X, y, grid, top_k=1, train_ratio=0.8)

    y_val = y[result.split:]
    baseline_mse = mean_squared_error(y_val)

    X_sel = X[:, result.selected]
    refit = fit_ols(X_sel, y)
    _, residuals = predict_ols(X_sel, y, refit)

    # =========================================================================
    # 2) Grouped pipeline: 6 factors in 2 groups, target loads on F1 and F4
    # =========================================================================
    dates = pd.bdate_range("2024-01-01", periods=250)
    factor_names = [f"F{i}" for i in range(6)]
    factors = pd.DataFrame(
        np.random.randn(len(dates), len(factor_names)) * 0.01,
        index=dates,
        columns=factor_names,
    )
    returns = factors.copy()
    returns["TARGET"] = (
        0.8 * factors["F1"] + 0.5 * factors["F4"] + 0.002 * np.random.randn(len(dates))
    )

    report = run_factor_selection(
        returns,
        "TARGET",
        factor_names,
        PipelineParams(lambda_grid=tuple(log_space(-6, 0, 10).tolist()), top_k=1, group_size=3),
    )

    # =========================================================================
    # 3) Return results
    # =========================================================================
    out = {
        "best_lambda": result.best_lambda,
        "selected": result.selected.tolist(),
        "best_mse": result.best_mse,
        "baseline_mse": baseline_mse,
        "refit_betas": refit.tolist(),
        "refit_residual_mse": mean_squared_error(residuals),
        "factor_names": factor_names,
        "selected_factors": report.selected_factors,
        "final_betas": report.final_betas.to_dict(),
    }

    if return_objects:
        objects = {
            "report": report,
            "selected_factors": report.selected_factors,
        }
        return out, objects

    return out


def load_yaml_config(path: str) -> dict:
    """
    Load YAML config file.

    Parameters
    ----------
    path : str
        Path to YAML config file.

    Returns
    -------
    dict
        Parsed configuration.

    Raises
    ------
    ValueError
        If config does not parse to a dict.
    """
    return load_pipeline_config(path)


def validate_config_or_raise(cfg: dict) -> dict:
    """
    Validate config, fail-fast for missing, unknown or out-of-range keys.

    Returns
    -------
    dict
        Normalized config.
    """
    return validate_pipeline_config(cfg)


def build_run_id(cfg: dict) -> str:
    """
    Build deterministic run ID from a validated config.

    Returns
    -------
    str
        SHA256 hex digest of the canonical config, the same id
        run_factor_selection_from_config reports.
    """
    return compute_run_id(cfg)


def save_artifacts(
    *,
    artifacts_dir: str,
    run_id: str,
    out: dict,
    selected_factors: list,
) -> str:
    """
    Save run artifacts to disk.

    Parameters
    ----------
    artifacts_dir : str
        Base directory for artifacts.
    run_id : str
        Deterministic run identifier.
    out : dict
        Output dict from run_from_config.
    selected_factors : list
        Selected factor names across all groups.

    Returns
    -------
    str
        Path to the run directory.
    """
    run_dir = Path(artifacts_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)

    manifest = {
        "run_id": run_id,
        "config_target": out.get("config_target"),
        "groups": out.get("groups", []),
        "final_betas": out.get("final_betas", {}),
        "written": out.get("written", []),
    }
    manifest_path = run_dir / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    features_path = run_dir / "selected_factors.json"
    with open(features_path, "w", encoding="utf-8") as f:
        json.dump(selected_factors, f, indent=2)

    return str(run_dir)


def run_from_config(config_path: str, artifacts_dir: Optional[str] = None) -> dict:
    """
    Run factor selection using a YAML config file.

    Parameters
    ----------
    config_path : str
        Path to YAML config file.
    artifacts_dir : Optional[str]
        If provided, save artifacts to this directory.

    Returns
    -------
    dict
        Per-group summary, final betas, written CSV paths and config echoes.
    """
    cfg = load_yaml_config(config_path)
    cfg = validate_config_or_raise(cfg)

    result = run_factor_selection_from_config(cfg)
    report = result["report"]

    out = {
        "run_id": result["run_id"],
        "config_target": cfg["target"],
        "groups": [
            {
                "group": g.group,
                "selected": g.selected,
                "best_lambda": g.best_lambda,
                "best_mse": g.best_mse,
                "refit_betas": g.refit_betas.to_dict(),
            }
            for g in report.groups
        ],
        "selected_factors": report.selected_factors,
        "final_betas": report.final_betas.to_dict(),
        "written": result["written"],
    }

    if artifacts_dir:
        run_dir = save_artifacts(
            artifacts_dir=artifacts_dir,
            run_id=out["run_id"],
            out=out,
            selected_factors=report.selected_factors,
        )
        out["artifacts_run_dir"] = run_dir

    return out


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="factor-lasso pipeline executor"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config file (e.g., configs/factor_selection.yaml)"
    )
    parser.add_argument(
        "--artifacts-dir",
        type=str,
        default=None,
        help="Directory to save run artifacts (manifest, selected factors)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config:
        out = run_from_config(args.config, artifacts_dir=args.artifacts_dir)
        title = "factor-lasso Results"
    else:
        out = run_synthetic_smoke(seed=42)
        title = "factor-lasso Synthetic Smoke Test Results"

    print("=" * 60)
    print(title)
    print("=" * 60)
    for k, v in out.items():
        print(f"{k}: {v}")
