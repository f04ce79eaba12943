"""
Tests for main_executor.py

Covers:
- run_synthetic_smoke output structure and expected selections
- Baseline comparison for the single-search scenario
- Config loading, run_id and artifact saving
- Fail-fast on invalid configs
"""

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def _write_returns_csv(tmp_path):
    np.random.seed(0)
    n_days = 200
    dates = pd.bdate_range("2024-01-01", periods=n_days)
    df = pd.DataFrame(np.random.randn(n_days, 4) * 0.01, columns=["A", "B", "C", "D"])
    df["Y"] = 0.9 * df["C"] + 0.001 * np.random.randn(n_days)
    df.insert(0, "Date", dates.strftime("%Y-%m-%d"))
    path = tmp_path / "returns.csv"
    df.to_csv(path, index=False)
    return str(path)


def _write_config(tmp_path, csv_path, extra=""):
    config_content = f"""
data:
  csv_path: "{csv_path}"
target: Y
factors:
  tickers: [A, B, C, D]
  group_size: 2
search:
  lambda_grid: {{start_exp: -6, end_exp: 0, num: 10}}
  top_k: 1
{extra}"""
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return str(config_file)


class TestRunSyntheticSmoke:
    """Test run_synthetic_smoke function."""

    @pytest.fixture
    def smoke_result(self):
        """Run smoke test and return results."""
        from main_executor import run_synthetic_smoke
        return run_synthetic_smoke(seed=42)

    def test_selects_tracking_column(self, smoke_result):
        """Column 0 tracks y and is the single selection."""
        assert smoke_result["selected"] == [0]

    def test_beats_zero_baseline(self, smoke_result):
        """Validation MSE is below mean(y_val^2)."""
        assert smoke_result["best_mse"] <= smoke_result["baseline_mse"]

    def test_refit_betas_length(self, smoke_result):
        """One refit beta per selected column."""
        assert len(smoke_result["refit_betas"]) == 1
        assert np.isfinite(smoke_result["refit_residual_mse"])

    def test_pipeline_selects_drivers(self, smoke_result):
        """Grouped pipeline recovers F1 and F4."""
        assert smoke_result["selected_factors"] == ["F1", "F4"]
        assert set(smoke_result["final_betas"]) == {"F1", "F4"}

    def test_selected_factors_valid(self, smoke_result):
        """Selected factors are among the candidate names."""
        valid = smoke_result["factor_names"]
        assert all(f in valid for f in smoke_result["selected_factors"])

    def test_deterministic(self):
        """Same seed, same output."""
        from main_executor import run_synthetic_smoke
        a = run_synthetic_smoke(seed=7)
        b = run_synthetic_smoke(seed=7)
        assert a == b

    def test_return_objects(self):
        """return_objects=True also returns the report."""
        from main_executor import run_synthetic_smoke
        out, objects = run_synthetic_smoke(seed=42, return_objects=True)
        assert objects["selected_factors"] == out["selected_factors"]
        assert objects["report"].target == "TARGET"


class TestConfigLoading:
    """Test config loading and validation."""

    def test_run_from_config_happy_path(self, tmp_path):
        """Valid config loads and runs successfully."""
        from main_executor import run_from_config

        csv_path = _write_returns_csv(tmp_path)
        out = run_from_config(_write_config(tmp_path, csv_path))

        assert out["config_target"] == "Y"
        assert [g["group"] for g in out["groups"]] == [["A", "B"], ["C", "D"]]
        assert out["groups"][1]["selected"] == ["C"]
        assert "C" in out["selected_factors"]
        assert out["written"] == []
        assert "artifacts_run_dir" not in out

    def test_artifacts_saved(self, tmp_path):
        """artifacts_dir gets manifest.json and selected_factors.json under the run id."""
        from main_executor import build_run_id, load_yaml_config, run_from_config, validate_config_or_raise

        csv_path = _write_returns_csv(tmp_path)
        config_path = _write_config(tmp_path, csv_path)
        artifacts = tmp_path / "artifacts"

        out = run_from_config(config_path, artifacts_dir=str(artifacts))

        run_id = build_run_id(validate_config_or_raise(load_yaml_config(config_path)))
        run_dir = Path(out["artifacts_run_dir"])
        assert run_dir == artifacts / run_id
        assert out["run_id"] == run_id
        assert len(run_id) == 64

        manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["run_id"] == run_id
        assert manifest["config_target"] == "Y"

        selected = json.loads((run_dir / "selected_factors.json").read_text(encoding="utf-8"))
        assert selected == out["selected_factors"]

    def test_output_dir_writes_csvs(self, tmp_path):
        """output.out_dir in the config writes the CSV reports."""
        from main_executor import run_from_config

        csv_path = _write_returns_csv(tmp_path)
        extra = f'output:\n  out_dir: "{tmp_path / "out"}"\n'
        out = run_from_config(_write_config(tmp_path, csv_path, extra))

        assert len(out["written"]) == 6
        assert all(Path(p).exists() for p in out["written"])

    def test_unknown_key_raises(self, tmp_path):
        """Unknown top-level key fails fast."""
        from main_executor import run_from_config

        csv_path = _write_returns_csv(tmp_path)
        config_path = _write_config(tmp_path, csv_path, "extra_section: {}\n")

        with pytest.raises(ValueError, match="Unknown top-level key"):
            run_from_config(config_path)

    def test_missing_config_file_raises(self, tmp_path):
        """Missing config file raises ValueError."""
        from main_executor import run_from_config
        with pytest.raises(ValueError, match="not found"):
            run_from_config(str(tmp_path / "missing.yaml"))
