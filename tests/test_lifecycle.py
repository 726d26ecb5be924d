from datetime import datetime, timezone

import pytest

from apps.costing.services.lifecycle import (
    InvalidStatusTransition,
    append_audit_entry,
    collect_removed_items,
    transition_status,
)


@pytest.mark.parametrize(
    "current, target",
    [("Draft", "Ready"), ("Ready", "Approved"), ("Ready", "Rejected"), (None, "Ready")],
)
def test_allowed_transitions(current, target):
    assert transition_status(current, target) == target


@pytest.mark.parametrize("status", ["Draft", "Ready", "Approved", "Rejected"])
def test_same_status_is_a_no_op(status):
    assert transition_status(status, status) == status


@pytest.mark.parametrize(
    "current, target",
    [("Draft", "Approved"), ("Approved", "Draft"), ("Rejected", "Ready"), ("Approved", "Rejected"), ("Draft", "Paid")],
)
def test_disallowed_transitions(current, target):
    with pytest.raises(InvalidStatusTransition):
        transition_status(current, target)


def test_invalid_transition_is_a_value_error():
    with pytest.raises(ValueError):
        transition_status("Approved", "Ready")


def test_append_audit_entry_returns_new_list():
    log = [{"timestamp": "2024-01-01T00:00:00Z", "user": "a", "action": "created", "description": ""}]
    when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    updated = append_audit_entry(log, "sam", "status:Ready", "sent for review", timestamp=when)

    assert len(log) == 1
    assert len(updated) == 2
    assert updated[0] == log[0]
    assert updated[1]["user"] == "sam"
    assert updated[1]["action"] == "status:Ready"
    assert updated[1]["timestamp"].startswith("2024-05-01T12:00:00")


def test_append_audit_entry_on_missing_log():
    updated = append_audit_entry(None, None, "updated")
    assert len(updated) == 1
    assert updated[0]["user"] is None
    assert updated[0]["description"] == ""


def test_collect_removed_items():
    previous = [{"uuid": "a", "item_name": "A"}, {"uuid": "b"}, {"uuid": "c"}, {"item_name": "unsaved"}]
    current = [{"uuid": "b"}, {"uuid": None}]
    removed = collect_removed_items(previous, current, [{"uuid": "old"}])

    assert [item["uuid"] for item in removed] == ["old", "a", "c"]
    assert removed[1]["item_name"] == "A"


def test_collect_removed_items_records_each_uuid_once():
    already = [{"uuid": "a"}]
    removed = collect_removed_items([{"uuid": "a"}], [], already)
    assert removed == [{"uuid": "a"}]
    assert removed is not already
    assert collect_removed_items(None, None, None) == []
