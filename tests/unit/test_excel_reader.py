from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from risk_register.excel.reader import (
    MissingColumnsError,
    UnsupportedFileError,
    UploadReadError,
    find_missing_headers,
    fuzzy_match,
    merge_upload,
    read_upload,
)


def _make_excel(path: Path, rows: list[dict]) -> Path:
    pd.DataFrame(rows).to_excel(path, index=False)
    return path


def test_read_csv_keeps_text(register_csv: Path):
    sheet = read_upload(register_csv)
    assert sheet.source == "register.csv"
    assert sheet.columns[0] == "Sr#"
    assert len(sheet.rows) == 3
    assert sheet.rows[0]["Risk Value"] == "12"
    assert sheet.rows[2]["Risk Value"] == "N/A"


def test_read_csv_skips_empty_rows(temp_workdir: Path):
    path = temp_workdir / "gaps.csv"
    path.write_text("A,B\n1,x\n,\n\n2,y\n", encoding="utf-8")
    sheet = read_upload(path)
    assert [r["A"] for r in sheet.rows] == ["1", "2"]


def test_read_excel_first_sheet(temp_workdir: Path):
    path = temp_workdir / "register.xlsx"
    with pd.ExcelWriter(path) as writer:
        pd.DataFrame([{"Sr#": 1, "Risk Value": 12, "Owner": None}]).to_excel(writer, sheet_name="Risks", index=False)
        pd.DataFrame([{"other": 1}]).to_excel(writer, sheet_name="Ignored", index=False)
    sheet = read_upload(path)
    assert sheet.columns == ["Sr#", "Risk Value", "Owner"]
    row = sheet.rows[0]
    assert row["Sr#"] == 1 and type(row["Sr#"]) is int
    assert row["Owner"] is None


def test_read_excel_converts_dates_and_keeps_na_text(temp_workdir: Path):
    path = _make_excel(
        temp_workdir / "dates.xlsx",
        [{"Date": pd.Timestamp("2024-01-05"), "Note": "N/A"}, {"Date": pd.Timestamp("2024-01-05 10:30"), "Note": "x"}],
    )
    sheet = read_upload(path)
    assert sheet.rows[0]["Date"] == "2024-01-05"
    assert sheet.rows[1]["Date"] == "2024-01-05T10:30:00"
    assert sheet.rows[0]["Note"] == "N/A"


def test_unsupported_extension(temp_workdir: Path):
    path = temp_workdir / "register.txt"
    path.write_text("a,b", encoding="utf-8")
    with pytest.raises(UnsupportedFileError):
        read_upload(path)


def test_unreadable_excel(temp_workdir: Path):
    path = temp_workdir / "broken.xlsx"
    path.write_bytes(b"not really a workbook")
    with pytest.raises(UploadReadError):
        read_upload(path)


def test_fuzzy_match_ignores_punctuation_and_case():
    headers = ["SR", "iso 27001 2022 controls reference (annex)", "Risk value"]
    assert fuzzy_match("ISO 27001: 2022 Controls Reference", headers) == headers[1]
    assert fuzzy_match("Sr#", headers) == "SR"
    assert fuzzy_match("Risk Value", headers) == "Risk value"
    assert fuzzy_match("Risk Owner", headers) is None


def test_find_missing_headers():
    missing = find_missing_headers(["Sr#", "Risk Owner", "Threats"], ["Sr#", "threats"])
    assert missing == ["Risk Owner"]


def test_missing_columns_error_message():
    err = MissingColumnsError(["Risk Owner", "Threats"])
    assert str(err) == 'Cannot upload file. Missing columns: ["Risk Owner", "Threats"]'
    assert err.missing == ["Risk Owner", "Threats"]


def test_replace_assigns_serials_when_missing():
    incoming = [{"Sr#": "", "A": "x"}, {"Sr#": "", "A": "y"}]
    result = merge_upload([{"Sr#": "1", "A": "old"}], incoming, "replace")
    assert [r["Sr#"] for r in result.rows] == ["1", "2"]
    assert result.added == 2
    assert result.duplicates == []


def test_replace_keeps_existing_serials():
    incoming = [{"Sr#": "7", "A": "x"}]
    assert merge_upload([], incoming, "replace").rows == incoming


def test_append_renumbers_and_skips_duplicates():
    existing = [{"Sr#": "1", "A": "x"}, {"Sr#": "2", "A": "y"}]
    incoming = [{"Sr#": "1", "A": "y"}, {"Sr#": "2", "A": "z"}, {"Sr#": "3", "A": "w"}]
    result = merge_upload(existing, incoming, "append")
    assert result.added == 2
    assert [d["A"] for d in result.duplicates] == ["y"]
    assert [(r["Sr#"], r["A"]) for r in result.rows] == [("1", "x"), ("2", "y"), ("3", "z"), ("4", "w")]


def test_append_does_not_mutate_inputs():
    existing = [{"Sr#": "1", "A": "x"}]
    incoming = [{"A": "y"}]
    merge_upload(existing, incoming, "append")
    assert existing == [{"Sr#": "1", "A": "x"}]
    assert incoming == [{"A": "y"}]


def test_unknown_mode():
    with pytest.raises(ValueError):
        merge_upload([], [], "merge")
