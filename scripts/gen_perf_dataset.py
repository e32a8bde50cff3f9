#!/usr/bin/env python3
"""Dataset generation script for performance testing.

Generates a synthetic OLAP grid sheet:
- POV rows (one member per row, e.g. "FY24", "Actual")
- One column header row (months, left cells blank)
- Data rows: row members in the left columns, data cells blank

With --responses, the grid is also planned into chunks and a recorded
responses file is written (one response body per chunk, random values) so
the CLI can be run offline:

    gridchunker grid.xlsx --responses responses.json --output refreshed.xlsx
"""
from __future__ import annotations

import argparse
import itertools
import json
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from gridchunker.models.config_models import ChunkingStrategy
from gridchunker.services.orchestrator import preprocess

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def generate_grid(entities: int, accounts: int, months: int, pov: list[str]) -> list[list[str]]:
    """Build the grid as a list of string rows.

    Args:
        entities: Number of members of the first row dimension
        accounts: Number of accounts listed under each entity
        months: Number of month columns (1-12)
        pov: POV members, one per leading row

    Returns:
        Grid (POV rows + header row + entities * accounts data rows)
    """
    columns = MONTHS[:months]
    left = 2
    width = left + len(columns)

    grid: list[list[str]] = []
    for member in pov:
        grid.append([member] + [""] * (width - 1))
    grid.append([""] * left + columns)
    for e in range(entities):
        for a in range(accounts):
            grid.append([f"Entity_{e + 1:04d}", f"Account_{a + 1:03d}"] + [""] * len(columns))
    return grid


def generate_responses(grid: list[list[str]], max_cells: int, seed: int = 42) -> list[dict[str, Any]]:
    """Plan the grid and build one random response body per chunk."""
    rng = np.random.default_rng(seed)
    pre = preprocess(grid, ChunkingStrategy(max_cells_per_chunk=max_cells))
    columns = pre.structure.column_headers
    bodies: list[dict[str, Any]] = []
    for chunk in pre.chunks:
        # backend answers the cross product of the row dimensions, first dimension outermost
        row_dims = [m for m in chunk.grid_definition.row_members() if m]
        rows = []
        for members in itertools.product(*row_dims):
            values = np.round(rng.uniform(0, 100_000, len(columns)), 2)
            rows.append({"data": [f"{v:.2f}" for v in values], "members": list(members)})
        bodies.append(
            {
                "rows": rows,
                "columns": [{"name": c, "type": "number"} for c in columns],
                "metadata": {"totalRows": len(rows), "totalColumns": len(columns), "dataSource": "synthetic"},
            }
        )
    return bodies


def write_grid(path: Path, grid: list[list[str]]) -> None:
    df = pd.DataFrame(grid)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, header=False, index=False)
    else:
        df.to_excel(path, header=False, index=False, engine="openpyxl")


def main() -> int:
    """Main CLI interface for dataset generation."""
    parser = argparse.ArgumentParser(
        description="Generate synthetic OLAP grid sheets for performance testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 500 entities x 20 accounts x 12 months
  %(prog)s grid.xlsx

  # Smaller grid plus recorded responses for an offline run
  %(prog)s grid.csv --entities 50 --accounts 10 --responses responses.json
        """,
    )
    parser.add_argument("output", type=Path, help="Output grid file (.xlsx or .csv)")
    parser.add_argument("--entities", type=int, default=500, help="Entity members (default: 500)")
    parser.add_argument("--accounts", type=int, default=20, help="Accounts per entity (default: 20)")
    parser.add_argument("--months", type=int, default=12, help="Month columns, 1-12 (default: 12)")
    parser.add_argument("--pov", nargs="*", default=["FY24", "Actual"], help="POV members (default: FY24 Actual)")
    parser.add_argument("--responses", type=Path, help="Also write recorded responses for every chunk")
    parser.add_argument(
        "--max-cells", type=int, default=10_000, help="max_cells_per_chunk used for --responses (default: 10,000)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be generated without creating files")

    args = parser.parse_args()

    if args.entities <= 0 or args.accounts <= 0:
        print("Error: --entities and --accounts must be positive", file=sys.stderr)
        return 1
    if not 1 <= args.months <= 12:
        print("Error: --months must be between 1 and 12", file=sys.stderr)
        return 1

    data_rows = args.entities * args.accounts
    print("Dataset generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  POV rows: {len(args.pov)} ({', '.join(args.pov) or '-'})")
    print(f"  Data rows: {data_rows:,} (+ 1 header row)")
    print(f"  Data cells: {data_rows * args.months:,}")
    print(f"  Random seed: {args.seed}")

    if args.dry_run:
        print("\n[DRY RUN] Would generate files but not creating them.")
        return 0

    try:
        grid = generate_grid(args.entities, args.accounts, args.months, args.pov)
        write_grid(args.output, grid)
        print(f"\nWrote grid: {args.output}")
        if args.responses is not None:
            bodies = generate_responses(grid, args.max_cells, args.seed)
            args.responses.write_text(json.dumps(bodies), encoding="utf-8")
            print(f"Wrote {len(bodies)} recorded responses: {args.responses}")
        return 0
    except (OSError, ValueError) as e:
        print(f"\nError generating dataset: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
