#!/usr/bin/env python3
"""Export the collected reader questions to CSV."""

from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path
from typing import Sequence

# Ensure the repository root is importable when executing from the scripts/ directory.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from question_crawler.checkpoint import CheckpointStore
from question_crawler.models import QuestionRecord

COLUMNS = ("year", "issue", "title", "url", "question", "answer", "subtitle")


def export_records(records: Sequence[QuestionRecord], output_path: Path) -> int:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8-sig", newline="") as file:
        writer = csv.DictWriter(file, fieldnames=COLUMNS)
        writer.writeheader()
        for record in records:
            row = record.to_payload()
            row.setdefault("subtitle", "")
            writer.writerow(row)
    return len(records)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export all-questions.json to a CSV file.")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory holding all-questions.json (default: data)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("exports") / "questions.csv",
        help="CSV file to write (default: exports/questions.csv)",
    )
    parser.add_argument("--year", help="Only export questions from this year.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    records = CheckpointStore(args.data_dir).load_dataset()
    if args.year:
        records = [record for record in records if record.year == args.year]
    if not records:
        raise SystemExit(f"No questions found in {args.data_dir}")

    count = export_records(records, args.output)
    print(f"Wrote {count} rows to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
