"""
CLI for Lasso factor selection.

Selects the top factors per asset-class group for a target series and
writes prediction / residual / beta CSVs.

Usage:
    python -m factor_lasso.run_factor_selection_cli \\
        --csv_path data/factor_timeseries.csv \\
        --target XLY \\
        --tickers AGG,ARKF,ARKG,ARKK,ARKQ,ARKW,BIL,BND,BOTZ,CEW \\
        --out_dir out/ \\
        --start_date 2024-01-01
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

# Allow running via `python factor_lasso/run_factor_selection_cli.py` from repo root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from factor_lasso.pipeline_config import run_factor_selection_from_config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Select factors for a target series with a Lasso lambda search."
    )

    # Required arguments
    parser.add_argument(
        "--csv_path",
        type=str,
        required=True,
        help="Path to wide CSV (date column + one column per ticker)"
    )
    parser.add_argument(
        "--target",
        type=str,
        required=True,
        help="Target column (e.g. XLY)"
    )
    parser.add_argument(
        "--tickers",
        type=str,
        required=True,
        help="Comma-separated candidate factor tickers"
    )

    # Optional arguments
    parser.add_argument(
        "--out_dir",
        type=str,
        default=None,
        help="Directory for output CSVs (default: no files written)"
    )
    parser.add_argument(
        "--date_col",
        type=str,
        default="Date",
        help="Date column name (default: Date)"
    )
    parser.add_argument(
        "--start_date",
        type=str,
        default=None,
        help="Keep rows on or after this date (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--input_kind",
        type=str,
        default="returns",
        choices=["returns", "prices"],
        help="Whether the CSV holds returns or price levels (default: returns)"
    )
    parser.add_argument(
        "--group_size",
        type=int,
        default=10,
        help="Tickers per asset-class group (default: 10)"
    )
    parser.add_argument(
        "--top_k",
        type=int,
        default=1,
        help="Factors kept per group (default: 1)"
    )
    parser.add_argument(
        "--train_ratio",
        type=float,
        default=0.8,
        help="Fraction of rows used to fit during the lambda search (default: 0.8)"
    )
    parser.add_argument(
        "--start_exp",
        type=float,
        default=-9.0,
        help="log10 of the smallest lambda (default: -9)"
    )
    parser.add_argument(
        "--end_exp",
        type=float,
        default=0.0,
        help="log10 of the largest lambda (default: 0)"
    )
    parser.add_argument(
        "--num_lambdas",
        type=int,
        default=20,
        help="Number of grid points (default: 20)"
    )
    parser.add_argument(
        "--n_jobs",
        type=int,
        default=None,
        help="Threads for the grid sweep (default: serial)"
    )
    parser.add_argument(
        "--log_level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)"
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Parameters
    ----------
    argv : list, optional
        Command line arguments. If None, uses sys.argv[1:].

    Returns
    -------
    int
        Exit code (0 for success, 1 for error).
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = {
        "data": {
            "csv_path": args.csv_path,
            "date_col": args.date_col,
            "start_date": args.start_date,
            "input_kind": args.input_kind,
        },
        "target": args.target,
        "factors": {"tickers": args.tickers, "group_size": args.group_size},
        "search": {
            "lambda_grid": {
                "start_exp": args.start_exp,
                "end_exp": args.end_exp,
                "num": args.num_lambdas,
            },
            "top_k": args.top_k,
            "train_ratio": args.train_ratio,
            "n_jobs": args.n_jobs,
        },
        "output": {"out_dir": args.out_dir},
    }

    print(f"Loading data from: {args.csv_path}")
    try:
        out = run_factor_selection_from_config(cfg)
    except (ValueError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    report = out["report"]
    for g in report.groups:
        betas = ", ".join(f"{name}={beta:.4f}" for name, beta in g.refit_betas.items())
        print(f"Group: {','.join(g.group)}")
        print(f"  Betas: {betas or '-'} --> Best Lambda: {g.best_lambda:.3e}")

    final = ", ".join(f"{name}={beta:.4f}" for name, beta in report.final_betas.items())
    print(f"Final factors for {report.target}: {final or '-'}")

    for path in out["written"]:
        print(f"Written: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
