"""Utility script to inspect the particle table written by `femtoworld produce`."""

from __future__ import annotations

import argparse
from pathlib import Path


def _require_pandas():
    """Import pandas with an actionable error if not installed."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required. Install with: pip install pandas pyarrow"
        ) from exc
    return pd


def load_table(path: str):
    """Load table data from parquet/csv/pickle into a pandas DataFrame."""
    pd = _require_pandas()
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(p)
    if suffix == ".csv":
        return pd.read_csv(p)
    if suffix in (".pkl", ".pickle"):
        return pd.read_pickle(p)
    raise ValueError("Supported input formats: .parquet, .csv, .pkl")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect a femtoworld particle table.")
    parser.add_argument("--input", required=True, help="Path to .parquet/.csv/.pkl output.")
    parser.add_argument("--head", type=int, default=10, help="Rows to print.")
    parser.add_argument(
        "--type",
        default=None,
        choices=["TRACK", "V0", "V0_CHILD", "PHI", "PHI_CHILD"],
        help="Only show rows of this particle type.",
    )
    args = parser.parse_args(argv)

    df = load_table(args.input)
    if args.type is not None:
        df = df[df["particle_type"] == args.type]
    print(df.head(args.head).to_string(index=False))
    print(f"\nRows={len(df)}  Columns={len(df.columns)}")
    summary = df.groupby("particle_type")[["pt", "mass"]].agg(["count", "mean"])
    print(summary.to_string())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
