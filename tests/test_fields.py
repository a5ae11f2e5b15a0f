from datetime import date
from types import SimpleNamespace

import pytest

from timesheet_submit.fields import (
    FIELD_DEFINITIONS,
    build_fields_from_row,
    entry_to_row,
    is_absent_value,
    parse_row_date_to_iso,
    resolve_field_locator,
    validate_required_fields,
)


@pytest.mark.parametrize("value", [None, float("nan"), "nan", "NaN", "None", "none", "", "   "])
def test_absent_values(value):
    assert is_absent_value(value)


@pytest.mark.parametrize("value", ["0", 0, "OSC-BBB", 1.5, "n/a"])
def test_present_values(value):
    assert not is_absent_value(value)


def test_build_fields_omits_missing_columns(make_row):
    row = make_row()
    del row["Detail Charge Code"]
    fields = build_fields_from_row(row)
    assert "detail_code" not in fields
    assert fields["project_code"] == "FL-Carver Techs"
    assert fields["date"] == "10/15/2025"
    assert fields["hours"] == "1.5"
    assert fields["tool"] == ""


def test_validate_required_fields_flags_sentinels(make_row):
    assert validate_required_fields(build_fields_from_row(make_row())) == []

    fields = build_fields_from_row(make_row(Hours="nan", Project="None"))
    assert validate_required_fields(fields) == ["hours", "project_code"]

    row = make_row()
    del row["Date"]
    assert validate_required_fields(build_fields_from_row(row)) == ["date"]


def test_tool_locator_override_by_project():
    tool = FIELD_DEFINITIONS["tool"]
    assert resolve_field_locator(tool, "OSC-BBB") == "input[aria-label='BBB Tool']"
    assert resolve_field_locator(tool, "FL-Carver Tools") == "input[aria-label='Carver Tool']"
    assert resolve_field_locator(tool, "Other") == "input[aria-label*='Tool']"
    assert resolve_field_locator(tool, None) == "input[aria-label*='Tool']"


def test_override_only_applies_to_tool_field():
    hours = FIELD_DEFINITIONS["hours"]
    assert resolve_field_locator(hours, "OSC-BBB") == "input[aria-label='Hours']"


@pytest.mark.parametrize("value,expected", [
    ("10/15/2025", "2025-10-15"),
    ("1/5/2026", "2026-01-05"),
    ("10-15-2025", "2025-10-15"),
    ("2025-10-15", "2025-10-15"),
    (date(2025, 12, 1), "2025-12-01"),
    ("02/30/2025", None),
    ("15/10/2025", None),
    ("yesterday", None),
    ("", None),
    (None, None),
])
def test_parse_row_date_to_iso(value, expected):
    assert parse_row_date_to_iso(value) == expected


def test_entry_to_row_derives_hours_and_formats_date():
    entry = SimpleNamespace(
        date=date(2025, 10, 3),
        time_in=540,
        time_out=630,
        project="OSC-BBB",
        tool=None,
        detail_charge_code="EPR1",
        task_description="Install",
    )
    assert entry_to_row(entry) == {
        "Project": "OSC-BBB",
        "Date": "10/03/2025",
        "Hours": "1.5",
        "Tool": "",
        "Task Description": "Install",
        "Detail Charge Code": "EPR1",
        "Status": "",
    }


def test_entry_to_row_whole_hours_have_no_decimal():
    entry = SimpleNamespace(
        date="2026-01-02", time_in=480, time_out=600, project="P", tool="T",
        detail_charge_code=None, task_description="D",
    )
    row = entry_to_row(entry)
    assert row["Hours"] == "2"
    assert row["Date"] == "01/02/2026"
