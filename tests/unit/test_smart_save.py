from __future__ import annotations

from unittest.mock import MagicMock, call

from risk_register.models.change_set import ChangeSet, UpdatedRecord
from risk_register.services.smart_save import apply_changes, diff_records, record_id


def _original():
    return [
        {"id": 10, "Sr#": 1, "Risk Description": "a", "created_at": "t0"},
        {"id": 11, "Sr#": 2, "Risk Description": "b", "created_at": "t0"},
        {"id": 12, "Sr#": 3, "Risk Description": "c", "created_at": "t0"},
    ]


def test_record_id_accepts_any_spelling():
    assert record_id({"id": 1}) == 1
    assert record_id({"Id": 2}) == 2
    assert record_id({"ID": 3}) == 3
    assert record_id({}) is None


def test_diff_detects_new_updated_deleted():
    current = [
        {"id": 10, "Sr#": 5, "Risk Description": "a", "created_at": "t1"},  # only ignored fields differ
        {"id": 11, "Sr#": 2, "Risk Description": "B"},
        {"Sr#": 4, "Risk Description": "d"},
        {"id": 99, "Risk Description": "e"},
    ]
    changes = diff_records(current, _original())
    assert [r["Risk Description"] for r in changes.new] == ["d", "e"]
    assert changes.updated == [UpdatedRecord(current=current[1], original=_original()[1])]
    assert [r["id"] for r in changes.deleted] == [12]
    assert not changes.is_empty


def test_diff_of_identical_sets_is_empty():
    assert diff_records(_original(), _original()).is_empty


def test_apply_changes_order_and_payloads():
    store = MagicMock()
    store.renumber.return_value = 3
    changes = ChangeSet(
        new=[{"Sr#": "4", "Risk Description": "d", "Risk Value": "12", "id": None}],
        updated=[UpdatedRecord(current={"id": 11, "Risk Description": "B"}, original={"id": 11})],
        deleted=[{"id": 12}],
    )
    result = apply_changes(store, changes, company_id="c1")

    names = [c[0] for c in store.method_calls]
    assert names == ["delete_risk", "insert_risks", "update_risk", "renumber"]
    store.delete_risk.assert_called_once_with(12)
    inserted = store.insert_risks.call_args.args[0]
    assert inserted == [{"sr_no": "4", "risk_description": "d", "risk_value": 12, "company_id": "c1"}]
    assert store.update_risk.call_args == call(11, {"id": 11, "risk_description": "B", "company_id": "c1"})
    store.renumber.assert_called_once_with("c1")
    assert (result.inserted, result.updated, result.deleted, result.renumbered) == (1, 1, 1, 3)
    assert result.elapsed_seconds >= 0


def test_apply_changes_fills_missing_serial():
    store = MagicMock()
    changes = ChangeSet(new=[{"Sr": "7", "Risk Description": "x"}])
    apply_changes(store, changes, company_id="c1")
    inserted = store.insert_risks.call_args.args[0][0]
    assert inserted["sr_no"] == 7


def test_apply_empty_changes_only_renumbers():
    store = MagicMock()
    store.renumber.return_value = 0
    result = apply_changes(store, ChangeSet(), company_id="c1")
    assert [c[0] for c in store.method_calls] == ["renumber"]
    assert result.inserted == 0
