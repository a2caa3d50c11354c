#!/usr/bin/env python3
"""Generate a synthetic risk register for demos and query performance checks.

The output has the 28 standard register headers on row 1 and one record per
row after it, with ratings drawn from the 1-4 scales and the derived columns
(Max CIA Value, Threat Value, Risk Value) computed consistently.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from risk_register.services.risk_calc import apply_risk_score
from risk_register.services.sanitizer import CSV_TO_DB_COLUMNS

PROCESSES = ["Finance", "HR", "IT Operations", "Procurement", "Legal", "Customer Service"]
OWNERS = ["CFO", "CISO", "HR Manager", "IT Manager", "Legal Counsel"]
THREATS = ["Malware", "Phishing", "Insider misuse", "Power outage", "Vendor failure", "Data leakage"]
TREATMENTS = ["Accept", "Avoid", "Monitor", "Transfer", "Treat"]


def generate_register(rows: int, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2023-01-01", "2024-12-31", periods=100)

    records: list[dict[str, Any]] = []
    for i in range(rows):
        record: dict[str, Any] = {header: "" for header in CSV_TO_DB_COLUMNS}
        threat = str(rng.choice(THREATS))
        record.update({
            "Sr#": i + 1,
            "Business Process": str(rng.choice(PROCESSES)),
            "Date Risk Identified": pd.Timestamp(rng.choice(dates)).date().isoformat(),
            "Risk Description": f"Operational risk event: {threat.lower()} affecting service {i + 1}",
            "Threats": threat,
            "Vulnerabilities": "Insufficient controls",
            "Existing Controls": "Policy and monitoring",
            "Risk Owner": str(rng.choice(OWNERS)),
            "Controls / Clause No": f"A.{rng.integers(5, 9)}.{rng.integers(1, 30)}",
            "ISO 27001: 2022 Controls Reference": "Annex A",
            "Confidentiality": int(rng.integers(1, 5)),
            "Integrity": int(rng.integers(1, 5)),
            "Availability": int(rng.integers(1, 5)),
            "Vulnerability Rating": int(rng.integers(1, 5)),
            "Threat Frequency": int(rng.integers(1, 5)),
            "Threat Impact": int(rng.integers(1, 5)),
            "Planned Mitigation Completion Date": pd.Timestamp(rng.choice(dates)).date().isoformat(),
            "Risk Treatment Action": "Review quarterly",
            "Actual Mitigation Completion Date": "N/A",
            "Risk Treatment Option": str(rng.choice(TREATMENTS)),
        })
        records.append(apply_risk_score(record))
    return pd.DataFrame(records, columns=list(CSV_TO_DB_COLUMNS))


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic risk register (.xlsx or .csv)")
    parser.add_argument("output", type=Path, help="Output file (.xlsx or .csv)")
    parser.add_argument("--rows", type=int, default=1000, help="Number of records (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    suffix = args.output.suffix.lower()
    if suffix not in (".xlsx", ".csv"):
        print("Error: output must end in .xlsx or .csv", file=sys.stderr)
        return 1

    df = generate_register(args.rows, args.seed)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        df.to_csv(args.output, index=False)
    else:
        df.to_excel(args.output, index=False, engine="openpyxl")
    print(f"Created register: {args.output} ({args.rows} records)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
