from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from risk_register.cli import main as cli_main

"""End-to-end CLI run: upload a register, query, search, dashboard, clear."""


def _store(workdir: Path) -> list[dict]:
    return json.loads((workdir / "data" / "risk_data.json").read_text(encoding="utf-8"))


def test_upload_then_query_and_export(temp_workdir: Path, write_config, register_csv: Path, capsys):
    assert cli_main(["upload", str(register_csv)]) == 0
    out = capsys.readouterr().out
    assert "SUMMARY command=upload file=register.csv mode=replace added=3 duplicates=0 total=3" in out
    stored = _store(temp_workdir)
    assert [r["Sr#"] for r in stored] == ["1", "2", "3"]
    assert stored[2]["Risk Value"] == "N/A"

    export_path = temp_workdir / "out" / "high.xlsx"
    code = cli_main([
        "query",
        "--where", "Risk Value|greater than|100|Number",
        "--export", str(export_path),
    ])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO Query Results (1 rows)" in out
    assert "Ransomware outage" in out
    assert "SUMMARY command=query status=ok rows=3 conditions=1 matched=1" in out

    exported = pd.read_excel(export_path, sheet_name="Results", dtype=str)
    assert exported["Risk Description"].tolist() == ["Ransomware outage"]


def test_append_skips_duplicates_and_renumbers(temp_workdir: Path, write_config, register_csv: Path, capsys):
    assert cli_main(["upload", str(register_csv)]) == 0
    extra = temp_workdir / "extra.csv"
    pd.DataFrame([
        {"Sr#": "1", "Business Process": "Finance", "Risk Description": "Operational risk event in payments",
         "Risk Value": "12", "Risk Treatment Option": "Accept"},
        {"Sr#": "9", "Business Process": "Legal", "Risk Description": "Contract breach",
         "Risk Value": "70", "Risk Treatment Option": "Transfer"},
    ]).to_csv(extra, index=False)
    capsys.readouterr()

    assert cli_main(["upload", str(extra), "--mode", "append"]) == 0
    out = capsys.readouterr().out
    assert "WARN 1 duplicate rows skipped, 1 added" in out
    stored = _store(temp_workdir)
    assert len(stored) == 4
    assert stored[-1]["Sr#"] == "4"
    assert stored[-1]["Risk Description"] == "Contract breach"


def test_query_from_filters_file(temp_workdir: Path, write_config, register_csv: Path, capsys):
    cli_main(["upload", str(register_csv)])
    filters = temp_workdir / "filters.yml"
    filters.write_text(
        "filters:\n"
        "  - {column: Business Process, operator: contains, value: oper, connector: OR}\n"
        "  - {column: Risk Treatment Option, operator: '=', value: Monitor}\n",
        encoding="utf-8",
    )
    capsys.readouterr()
    assert cli_main(["query", "--filters", str(filters), "--export", str(temp_workdir / "r.csv")]) == 0
    out = capsys.readouterr().out
    assert "matched=2" in out
    exported = pd.read_csv(temp_workdir / "r.csv", dtype=str)
    assert exported["Sr#"].tolist() == ["2", "3"]


def test_search_dashboard_and_clear(temp_workdir: Path, write_config, register_csv: Path, capsys):
    cli_main(["upload", str(register_csv)])
    capsys.readouterr()

    assert cli_main(["search", "e", "--page", "2"]) == 0
    out = capsys.readouterr().out
    assert "INFO Total Records: 3 (page 2/2)" in out
    assert "SUMMARY command=search matched=3 page=2 pages=2" in out

    assert cli_main(["dashboard"]) == 0
    out = capsys.readouterr().out
    assert "INFO Total Risks: 3" in out
    assert "INFO level High: 1" in out

    assert cli_main(["clear"]) == 0
    assert "SUMMARY command=clear removed=3" in capsys.readouterr().out
    assert _store(temp_workdir) == []

    assert cli_main(["query", "--where", "Risk Value|=|12|Number"]) == 2
