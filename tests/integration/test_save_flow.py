from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

from risk_register.cli import main as cli_main
from risk_register.db.risk_store import RiskStoreError

"""fetch / save against a mocked RiskStore: no database is needed."""

SNAPSHOT = [
    {"id": 1, "sr_no": 1, "risk_description": "a", "risk_value": 12, "company_id": "c1"},
    {"id": 2, "sr_no": 2, "risk_description": "b", "risk_value": 150, "company_id": "c1"},
]


@contextmanager
def _fake_cursor(_db_cfg):
    yield MagicMock()


def _store_path(workdir: Path) -> Path:
    return workdir / "data" / "risk_data.json"


def test_fetch_replaces_working_dataset(temp_workdir: Path, write_config, capsys):
    with patch("risk_register.cli.commands.db_cursor", _fake_cursor), \
            patch("risk_register.cli.commands.RiskStore") as store_cls:
        store_cls.return_value.fetch_risks.return_value = SNAPSHOT
        code = cli_main(["fetch", "--company", "c1"])

    assert code == 0
    store_cls.return_value.fetch_risks.assert_called_once_with("c1")
    stored = json.loads(_store_path(temp_workdir).read_text(encoding="utf-8"))
    assert stored[0] == {"id": 1, "Sr#": 1, "Risk Description": "a", "Risk Value": 12, "company_id": "c1"}
    assert "SUMMARY command=fetch company=c1 rows=2" in capsys.readouterr().out


def test_save_applies_diff_and_refreshes(temp_workdir: Path, write_config, capsys):
    working = [
        {"id": 1, "Sr#": 1, "Risk Description": "A", "Risk Value": 12, "company_id": "c1"},
        {"Sr#": 3, "Risk Description": "c", "Risk Value": "N/A"},
    ]
    _store_path(temp_workdir).write_text(json.dumps(working), encoding="utf-8")
    refreshed = [
        {"id": 1, "sr_no": 1, "risk_description": "A", "risk_value": 12, "company_id": "c1"},
        {"id": 3, "sr_no": 2, "risk_description": "c", "risk_value": None, "company_id": "c1"},
    ]

    with patch("risk_register.cli.commands.db_cursor", _fake_cursor), \
            patch("risk_register.cli.commands.RiskStore") as store_cls:
        store = store_cls.return_value
        store.fetch_risks.side_effect = [SNAPSHOT, refreshed]
        store.renumber.return_value = 2
        code = cli_main(["save", "--company", "c1"])

    out = capsys.readouterr().out
    assert code == 0
    store.delete_risk.assert_called_once_with(2)
    inserted = store.insert_risks.call_args.args[0]
    assert inserted == [{"sr_no": 3, "risk_description": "c", "risk_value": None, "company_id": "c1"}]
    store.update_risk.assert_called_once()
    assert store.update_risk.call_args.args[0] == 1
    assert store.update_risk.call_args.args[1]["risk_description"] == "A"
    assert "SUMMARY command=save inserted=1 updated=1 deleted=1 renumbered=2" in out

    stored = json.loads(_store_path(temp_workdir).read_text(encoding="utf-8"))
    assert [r["Sr#"] for r in stored] == [1, 2]


def test_save_failure_is_fatal_and_logged(temp_workdir: Path, write_config, capsys):
    _store_path(temp_workdir).write_text(json.dumps([{"Sr#": 1, "Risk Description": "x"}]), encoding="utf-8")
    with patch("risk_register.cli.commands.db_cursor", _fake_cursor), \
            patch("risk_register.cli.commands.RiskStore") as store_cls:
        store_cls.return_value.fetch_risks.return_value = []
        store_cls.return_value.insert_risks.side_effect = RiskStoreError("null value in column")
        code = cli_main(["save", "--company", "c1"])

    assert code == 1
    assert "ERROR save: null value in column" in capsys.readouterr().out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    assert json.loads(logs[0].read_text(encoding="utf-8"))["error_type"] == "SAVE_FAILED"
    # working dataset untouched
    assert json.loads(_store_path(temp_workdir).read_text(encoding="utf-8")) == [{"Sr#": 1, "Risk Description": "x"}]


def test_save_after_fetch_without_edits_changes_nothing(temp_workdir: Path, write_config, capsys):
    snapshot = [
        {"id": 1, "sr_no": 1, "risk_description": "a", "date_risk_identified": date(2024, 1, 5),
         "risk_value": Decimal("12"), "company_id": "c1"},
        {"id": 2, "sr_no": 2, "risk_description": "b", "date_risk_identified": None,
         "risk_value": 150, "company_id": "c1"},
    ]
    with patch("risk_register.cli.commands.db_cursor", _fake_cursor), \
            patch("risk_register.cli.commands.RiskStore") as store_cls:
        store = store_cls.return_value
        store.fetch_risks.return_value = snapshot
        store.renumber.return_value = 2
        assert cli_main(["fetch", "--company", "c1"]) == 0
        stored = json.loads(_store_path(temp_workdir).read_text(encoding="utf-8"))
        assert stored[0]["Date Risk Identified"] == "2024-01-05"
        capsys.readouterr()

        assert cli_main(["save", "--company", "c1"]) == 0

    out = capsys.readouterr().out
    assert "SUMMARY command=save inserted=0 updated=0 deleted=0 renumbered=2" in out
    store.update_risk.assert_not_called()
    store.insert_risks.assert_not_called()
    store.delete_risk.assert_not_called()


def test_only_edited_record_is_updated_when_dates_present(temp_workdir: Path, write_config, capsys):
    snapshot = [
        {"id": 1, "sr_no": 1, "risk_description": "a", "date_risk_identified": date(2024, 1, 5), "company_id": "c1"},
        {"id": 2, "sr_no": 2, "risk_description": "b", "date_risk_identified": date(2024, 2, 1), "company_id": "c1"},
    ]
    with patch("risk_register.cli.commands.db_cursor", _fake_cursor), \
            patch("risk_register.cli.commands.RiskStore") as store_cls:
        store = store_cls.return_value
        store.fetch_risks.return_value = snapshot
        assert cli_main(["fetch", "--company", "c1"]) == 0
        assert cli_main(["edit", "2", "--set", "Risk Description=B"]) == 0
        assert cli_main(["save", "--company", "c1"]) == 0

    store.update_risk.assert_called_once()
    assert store.update_risk.call_args.args[0] == 2
    assert "updated=1" in capsys.readouterr().out
