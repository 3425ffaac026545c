#!/usr/bin/env python3
"""Generate the inquiry template and synthetic sample files.

Generated files follow the single-sheet inquiry layout:
- Row 1: Header row (캠페인 키, 캠페인 명, ADID / IDFA, 이름, 연락처, 비고)
- Row 2+: Data rows (none for the template)

The template is the file users download before filling in an inquiry. Sample
files are useful for manual checks of preview / large-file behavior.
"""
from __future__ import annotations

import argparse
import sys
import uuid
from pathlib import Path

import numpy as np
import pandas as pd

from inquiry_ingest.models.schema import EXPECTED_HEADERS, LARGE_FILE_THRESHOLD_BYTES

CAMPAIGN_NAMES = ["봄 프로모션", "신규 가입 이벤트", "리워드 캠페인", "앱 설치 광고", "재방문 유도"]
USER_NAMES = ["김민수", "이서연", "박지훈", "최수아", "정우진", "강하은"]
REMARKS = ["", "", "", "재확인 필요", "중복 의심", "포인트 미지급"]


def generate_inquiry_rows(rows: int, seed: int = 42, blank_ratio: float = 0.0) -> pd.DataFrame:
    """Generate synthetic inquiry rows.

    Args:
        rows: Number of data rows to generate
        seed: Random seed for reproducible data
        blank_ratio: Fraction of rows written completely blank (skipped by the reader)

    Returns:
        DataFrame with the six inquiry columns, all values as strings
    """
    rng = np.random.default_rng(seed)

    campaign_ids = rng.integers(1000, 9999, rows)
    data = {
        EXPECTED_HEADERS[0]: [f"CMP-{c}" for c in campaign_ids],
        EXPECTED_HEADERS[1]: rng.choice(CAMPAIGN_NAMES, rows).tolist(),
        EXPECTED_HEADERS[2]: [str(uuid.UUID(bytes=rng.bytes(16))).upper() for _ in range(rows)],
        EXPECTED_HEADERS[3]: rng.choice(USER_NAMES, rows).tolist(),
        EXPECTED_HEADERS[4]: [f"010-{rng.integers(1000, 9999)}-{rng.integers(1000, 9999)}" for _ in range(rows)],
        EXPECTED_HEADERS[5]: rng.choice(REMARKS, rows).tolist(),
    }
    df = pd.DataFrame(data, dtype=str)

    if blank_ratio > 0:
        blank_mask = rng.random(rows) < blank_ratio
        df.loc[blank_mask, :] = ""
    return df


def create_inquiry_file(output_path: Path, rows: int, seed: int = 42, blank_ratio: float = 0.0) -> None:
    """Write an inquiry workbook (header row + ``rows`` data rows) to ``output_path``.

    ``rows=0`` produces the blank template.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if rows > 0:
        df = generate_inquiry_rows(rows, seed, blank_ratio)
    else:
        df = pd.DataFrame(columns=list(EXPECTED_HEADERS))

    if output_path.suffix.lower() == ".csv":
        df.to_csv(output_path, index=False, encoding="utf-8-sig")
    else:
        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Inquiry", index=False)

    size = output_path.stat().st_size
    print(f"Created inquiry file: {output_path}")
    print(f"  Data rows: {rows:,}")
    print(f"  Size: {size:,} bytes{' (large)' if size > LARGE_FILE_THRESHOLD_BYTES else ''}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate the inquiry template or synthetic inquiry files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Blank template for distribution
  %(prog)s public/inquiry_template.xlsx

  # 50 rows, for preview-limit checks
  %(prog)s sample_50.xlsx --rows 50

  # CSV with 10%% blank rows
  %(prog)s sample.csv --rows 200 --blank-ratio 0.1
        """,
    )
    parser.add_argument("output", type=Path, help="Output file path (.xlsx or .csv)")
    parser.add_argument("--rows", type=int, default=0, help="Number of data rows (default: 0 = template)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--blank-ratio",
        type=float,
        default=0.0,
        help="Fraction of blank rows between data rows (default: 0)",
    )
    args = parser.parse_args()

    if args.rows < 0:
        print("Error: --rows must not be negative", file=sys.stderr)
        return 1
    if not 0.0 <= args.blank_ratio < 1.0:
        print("Error: --blank-ratio must be in [0, 1)", file=sys.stderr)
        return 1
    if args.output.suffix.lower() not in (".xlsx", ".csv"):
        print("Error: output must be .xlsx or .csv", file=sys.stderr)
        return 1

    try:
        create_inquiry_file(args.output, args.rows, args.seed, args.blank_ratio)
    except OSError as e:
        print(f"Error generating file: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
