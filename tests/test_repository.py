from datetime import date

import pytest

from timesheet_submit.db.repository import (
    DuplicateEntryError,
    ReconciliationError,
    get_entries_by_ids,
    get_pending_entries,
    insert_entry,
    mark_entries_submitted,
    remove_failed_entries,
)


def test_pending_entries_are_ordered_by_date_then_start(database, add_entry):
    late = add_entry(date(2025, 10, 2), time_in=600, time_out=660)
    early_afternoon = add_entry(date(2025, 10, 1), time_in=780, time_out=840)
    early_morning = add_entry(date(2025, 10, 1), time_in=480, time_out=540)

    with database.session_scope() as db:
        ids = [entry.id for entry in get_pending_entries(db)]

    assert ids == [early_morning, early_afternoon, late]


def test_submitted_entries_are_not_pending(database, add_entry):
    first = add_entry(date(2025, 10, 1))
    second = add_entry(date(2025, 10, 2))

    with database.session_scope() as db:
        mark_entries_submitted(db, [first])

    with database.session_scope() as db:
        assert [entry.id for entry in get_pending_entries(db)] == [second]
        (entry,) = get_entries_by_ids(db, [first])
        assert entry.status == "Complete"
        assert entry.submitted_at is not None


def test_duplicate_entries_are_rejected(database, add_entry):
    add_entry(date(2025, 10, 1), task_description="Calibration")
    with pytest.raises(DuplicateEntryError):
        add_entry(date(2025, 10, 1), time_out=660, task_description="Calibration")


def test_duplicate_does_not_discard_earlier_inserts_in_the_transaction(database, add_entry):
    add_entry(date(2025, 10, 1), task_description="A")

    with database.session_scope() as db:
        insert_entry(db, date(2025, 10, 2), 540, 600, "FL-Carver Techs", "B")
        with pytest.raises(DuplicateEntryError):
            insert_entry(db, date(2025, 10, 1), 540, 600, "FL-Carver Techs", "A")

    with database.session_scope() as db:
        assert [entry.task_description for entry in get_pending_entries(db)] == ["A", "B"]


@pytest.mark.parametrize("time_in,time_out", [(600, 600), (600, 540), (-15, 60), (485, 540), (480, 1455)])
def test_invalid_times_are_rejected(database, time_in, time_out):
    with pytest.raises(ValueError):
        with database.session_scope() as db:
            insert_entry(db, date(2025, 10, 1), time_in, time_out, "OSC-BBB", "Task")


def test_mark_submitted_refuses_entries_that_are_not_pending(database, add_entry):
    entry_id = add_entry(date(2025, 10, 1))
    with database.session_scope() as db:
        mark_entries_submitted(db, [entry_id])

    with pytest.raises(ReconciliationError):
        with database.session_scope() as db:
            mark_entries_submitted(db, [entry_id])


def test_remove_failed_entries_only_deletes_pending(database, add_entry):
    submitted = add_entry(date(2025, 10, 1))
    failed = add_entry(date(2025, 10, 2))
    with database.session_scope() as db:
        mark_entries_submitted(db, [submitted])

    with database.session_scope() as db:
        assert remove_failed_entries(db, [submitted, failed]) == 1

    with database.session_scope() as db:
        assert [entry.id for entry in get_entries_by_ids(db, [submitted, failed])] == [submitted]


def test_empty_id_lists_are_no_ops(database):
    with database.session_scope() as db:
        assert mark_entries_submitted(db, []) == 0
        assert remove_failed_entries(db, []) == 0
        assert get_entries_by_ids(db, []) == []
