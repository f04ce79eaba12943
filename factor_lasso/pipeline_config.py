"""
Config-driven factor selection for factor-lasso.

Provides:
- load_pipeline_config: Load YAML config from file
- validate_pipeline_config: Strict schema validation with defaults filled
- build_pipeline_params: Normalised config -> PipelineParams
- compute_run_id: SHA256 of the canonical JSON dump
- run_factor_selection_from_config: Load data, run the pipeline, write CSVs

Config Schema (SSOT):
- data: csv_path (required), date_col, start_date, input_kind
- target: target column (required)
- factors: tickers (list or comma string, required), group_size
- search: lambda_grid {start_exp, end_exp, num}, top_k, train_ratio,
  max_iter, tol, on_degenerate, n_jobs
- output: out_dir (optional)
"""

from __future__ import annotations

import copy
import hashlib
import json

import pandas as pd
import yaml

from factor_lasso.asset_classes import parse_tickers
from factor_lasso.factor_io import load_factor_csv
from factor_lasso.factor_pipeline import (
    PipelineParams,
    prepare_returns,
    run_factor_selection,
    write_report,
)
from factor_lasso.selection import LassoParams
from utils.math_tools import log_space

_DEFAULT_DATA = {"date_col": "Date", "start_date": None, "input_kind": "returns"}
_DEFAULT_FACTORS = {"group_size": 10}
_DEFAULT_GRID = {"start_exp": -9, "end_exp": 0, "num": 20}
_DEFAULT_SEARCH = {
    "top_k": 1,
    "train_ratio": 0.8,
    "max_iter": 1000,
    "tol": 1e-5,
    "on_degenerate": "raise",
    "n_jobs": None,
}
_DEFAULT_OUTPUT = {"out_dir": None}


def load_pipeline_config(path: str) -> dict:
    """
    Load pipeline config from YAML file.

    Parameters
    ----------
    path : str
        Path to YAML config file.

    Returns
    -------
    dict
        Parsed config dictionary.

    Raises
    ------
    ValueError
        If the file cannot be read, the YAML is invalid, or it does not
        parse to a dict.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValueError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(cfg, dict):
        raise ValueError("Config must parse to a dict.")
    return cfg


def _section(cfg: dict, name: str, defaults: dict, required: tuple = ()) -> dict:
    """Fetch a dict section, reject unknown keys, fill defaults."""
    if name not in cfg:
        if required:
            raise ValueError(f"Missing required key: {name}")
        cfg[name] = {}

    section = cfg[name]
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a dict")

    allowed = set(defaults) | set(required)
    for key in section:
        if key not in allowed:
            raise ValueError(f"Unknown key in {name}: {key}")

    for key in required:
        if key not in section:
            raise ValueError(f"Missing required key: {name}.{key}")

    for key, value in defaults.items():
        section.setdefault(key, value)
    return section


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_pipeline_config(cfg: dict) -> dict:
    """
    Validate pipeline config strictly.

    Parameters
    ----------
    cfg : dict
        Config dictionary to validate.

    Returns
    -------
    dict
        Normalized config (deep copy) with defaults filled and tickers as a list.

    Raises
    ------
    ValueError
        If any validation rule is violated.
    """
    cfg = copy.deepcopy(cfg)

    allowed_top = {"data", "target", "factors", "search", "output"}
    for key in cfg:
        if key not in allowed_top:
            raise ValueError(f"Unknown top-level key: {key}")

    # =========================================================================
    # data
    # =========================================================================
    data = _section(cfg, "data", _DEFAULT_DATA, required=("csv_path",))

    if not isinstance(data["csv_path"], str) or not data["csv_path"]:
        raise ValueError("data.csv_path must be a non-empty str")
    if not isinstance(data["date_col"], str):
        raise ValueError("data.date_col must be str")
    if data["input_kind"] not in ("returns", "prices"):
        raise ValueError(
            f"data.input_kind must be 'returns' or 'prices', got '{data['input_kind']}'"
        )
    if data["start_date"] is not None:
        if not isinstance(data["start_date"], str):
            # YAML parses unquoted dates into datetime.date
            data["start_date"] = str(data["start_date"])
        try:
            pd.to_datetime(data["start_date"], format="%Y-%m-%d")
        except ValueError as e:
            raise ValueError(f"data.start_date must be YYYY-MM-DD format: {e}") from e

    # =========================================================================
    # target
    # =========================================================================
    if "target" not in cfg:
        raise ValueError("Missing required key: target")
    if not isinstance(cfg["target"], str) or not cfg["target"].strip():
        raise ValueError("target must be a non-empty str")
    cfg["target"] = cfg["target"].strip()

    # =========================================================================
    # factors
    # =========================================================================
    factors = _section(cfg, "factors", _DEFAULT_FACTORS, required=("tickers",))

    if not isinstance(factors["tickers"], (str, list)):
        raise ValueError("factors.tickers must be a list or comma-separated str")
    factors["tickers"] = parse_tickers(factors["tickers"])
    if len(factors["tickers"]) == 0:
        raise ValueError("factors.tickers must be non-empty")
    if cfg["target"] in factors["tickers"]:
        raise ValueError(f"target '{cfg['target']}' must not appear in factors.tickers")

    gs = factors["group_size"]
    if not isinstance(gs, int) or isinstance(gs, bool) or gs < 1:
        raise ValueError("factors.group_size must be positive int")

    # =========================================================================
    # search
    # =========================================================================
    search = _section(cfg, "search", {**_DEFAULT_SEARCH, "lambda_grid": None})

    grid = search["lambda_grid"]
    if grid is None:
        grid = dict(_DEFAULT_GRID)
    if isinstance(grid, dict):
        for key in grid:
            if key not in _DEFAULT_GRID:
                raise ValueError(f"Unknown key in search.lambda_grid: {key}")
        grid = {**_DEFAULT_GRID, **grid}
        if not _is_number(grid["start_exp"]) or not _is_number(grid["end_exp"]):
            raise ValueError("search.lambda_grid.start_exp and end_exp must be numbers")
        if not isinstance(grid["num"], int) or isinstance(grid["num"], bool) or grid["num"] < 1:
            raise ValueError("search.lambda_grid.num must be positive int")
    elif isinstance(grid, list):
        if len(grid) == 0:
            raise ValueError("search.lambda_grid must be non-empty")
        for i, v in enumerate(grid):
            if not _is_number(v) or v < 0:
                raise ValueError(f"search.lambda_grid[{i}] must be a non-negative number")
        grid = [float(v) for v in grid]
    else:
        raise ValueError("search.lambda_grid must be a dict or list")
    search["lambda_grid"] = grid

    top_k = search["top_k"]
    if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k < 0:
        raise ValueError("search.top_k must be non-negative int")

    tr = search["train_ratio"]
    if not _is_number(tr) or not (0.0 < tr < 1.0):
        raise ValueError("search.train_ratio must be in (0, 1)")

    mi = search["max_iter"]
    if not isinstance(mi, int) or isinstance(mi, bool) or mi <= 0:
        raise ValueError("search.max_iter must be positive int")

    if isinstance(search["tol"], str):
        # PyYAML reads "1e-5" (no decimal point) as a string
        try:
            search["tol"] = float(search["tol"])
        except ValueError as e:
            raise ValueError(f"search.tol must be positive number: {e}") from e
    if not _is_number(search["tol"]) or search["tol"] <= 0:
        raise ValueError("search.tol must be positive number")
    search["tol"] = float(search["tol"])

    if search["on_degenerate"] not in ("raise", "zero"):
        raise ValueError("search.on_degenerate must be 'raise' or 'zero'")

    nj = search["n_jobs"]
    if nj is not None and (not isinstance(nj, int) or isinstance(nj, bool) or nj < 1):
        raise ValueError("search.n_jobs must be null or positive int")

    # =========================================================================
    # output
    # =========================================================================
    output = _section(cfg, "output", _DEFAULT_OUTPUT)
    if output["out_dir"] is not None and not isinstance(output["out_dir"], str):
        raise ValueError("output.out_dir must be str or null")

    return cfg


def build_pipeline_params(cfg: dict) -> PipelineParams:
    """Build PipelineParams from a validated config."""
    search = cfg["search"]
    grid = search["lambda_grid"]
    if isinstance(grid, dict):
        lambda_grid = tuple(log_space(grid["start_exp"], grid["end_exp"], grid["num"]).tolist())
    else:
        lambda_grid = tuple(grid)

    return PipelineParams(
        lambda_grid=lambda_grid,
        top_k=search["top_k"],
        train_ratio=float(search["train_ratio"]),
        group_size=cfg["factors"]["group_size"],
        lasso=LassoParams(
            max_iter=search["max_iter"],
            tol=search["tol"],
            on_degenerate=search["on_degenerate"],
        ),
        n_jobs=search["n_jobs"],
    )


def compute_run_id(cfg: dict) -> str:
    """Compute deterministic run_id from config."""
    canonical = json.dumps(cfg, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def run_factor_selection_from_config(cfg: dict, out_dir: str | None = None) -> dict:
    """
    Run the factor pipeline from a config dict.

    Parameters
    ----------
    cfg : dict
        Raw or validated config; validated again here.
    out_dir : str, optional
        Overrides output.out_dir. CSVs are written only when one is set.

    Returns
    -------
    dict
        Results with keys:
        - "config": normalized config dict
        - "run_id": SHA256 hex string of canonical config
        - "report": FactorSelectionReport
        - "written": list of CSV paths (empty if nothing was written)

    Raises
    ------
    ValueError
        If config is invalid or the pipeline fails.
    """
    cfg = validate_pipeline_config(cfg)
    run_id = compute_run_id(cfg)
    params = build_pipeline_params(cfg)

    data = cfg["data"]
    raw = load_factor_csv(
        data["csv_path"],
        date_col=data["date_col"],
        start_date=data["start_date"],
        columns=[cfg["target"]] + cfg["factors"]["tickers"],
    )

    returns = prepare_returns(raw, data["input_kind"])
    report = run_factor_selection(returns, cfg["target"], cfg["factors"]["tickers"], params)

    target_dir = out_dir or cfg["output"]["out_dir"]
    written = write_report(report, target_dir) if target_dir else []

    return {
        "config": cfg,
        "run_id": run_id,
        "report": report,
        "written": written,
    }
