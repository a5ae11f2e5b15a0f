import pytest

from timesheet_submit.processor import RowProcessor, row_progress
from timesheet_submit.quarters import QuarterDefinition
from timesheet_submit.submit_models import SubmitCredentials

CREDENTIALS = SubmitCredentials(email="tech@example.com", password="hunter2")


def _quarter(quarter_id, name, start, end, form_id):
    return QuarterDefinition(
        id=quarter_id,
        name=name,
        start_date=start,
        end_date=end,
        form_url=f"https://app.smartsheet.com/b/form/{form_id}",
        form_id=form_id,
    )


def test_empty_input_never_touches_the_session(fake_session_cls):
    session = fake_session_cls()
    result = RowProcessor(session).run([], CREDENTIALS)

    assert result.ok
    assert result.total_rows == 0
    assert session.calls == []


def test_submit_retried_once_then_succeeds(fake_session_cls, make_row):
    session = fake_session_cls(submit_results=[False, True])
    result = RowProcessor(session, max_submit_attempts=2).run([make_row()], CREDENTIALS)

    assert result.submitted_indices == [0]
    assert result.errors == []
    assert session.submit_calls == 2
    # Fields are re-injected before the retry
    assert [key for key, _, _ in session.injected].count("project_code") == 2
    assert session.calls.count("wait_for_form_ready") == 2


@pytest.mark.parametrize("attempts", [1, 2, 3])
def test_exhausted_retries_report_attempt_count(fake_session_cls, make_row, attempts):
    session = fake_session_cls(submit_results=[False] * attempts)
    result = RowProcessor(session, max_submit_attempts=attempts).run([make_row()], CREDENTIALS)

    assert result.submitted_indices == []
    assert len(result.errors) == 1
    assert f"after {attempts} attempts" in result.errors[0].message
    assert not result.errors[0].fatal
    assert session.submit_calls == attempts
    assert not result.ok


def test_wrong_quarter_is_rejected_before_any_injection(fake_session_cls, make_row):
    session = fake_session_cls()  # configured for the Q4 2025 form
    result = RowProcessor(session).run([make_row("01/15/2026")], CREDENTIALS)

    assert result.errors[0].message == (
        "Date 01/15/2026 belongs to Q1 2026 but form configured for different quarter"
    )
    assert session.injected == []
    assert "inject_field" not in session.calls
    assert session.submit_calls == 0


def test_mixed_quarters_only_matching_row_is_filled(fake_session_cls, make_row):
    quarters = [
        _quarter("Q3-2025", "Q3 2025", "2025-07-01", "2025-09-30", "q3form"),
        _quarter("Q4-2025", "Q4 2025", "2025-10-01", "2025-12-31", "q4form"),
    ]
    session = fake_session_cls(form_id="q3form")
    rows = [make_row("07/15/2025"), make_row("10/15/2025")]

    result = RowProcessor(session, quarters=quarters).run(rows, CREDENTIALS)

    assert result.submitted_indices == [0]
    assert [f.index for f in result.errors] == [1]
    assert "belongs to Q4 2025" in result.errors[0].message
    assert {value for key, value, _ in session.injected if key == "date"} == {"07/15/2025"}
    assert session.submit_calls == 1


def test_missing_required_fields_skip_automation(fake_session_cls, make_row):
    session = fake_session_cls()
    result = RowProcessor(session).run([make_row(Hours="nan")], CREDENTIALS)

    assert result.errors[0].message == "Missing required fields"
    assert session.injected == []


def test_unparseable_date_is_a_row_failure(fake_session_cls, make_row):
    session = fake_session_cls()
    result = RowProcessor(session).run([make_row("13/45/2025")], CREDENTIALS)

    assert result.errors[0].message == "Invalid date format: 13/45/2025"
    assert session.injected == []


def test_completed_rows_are_skipped_silently(fake_session_cls, make_row):
    session = fake_session_cls()
    rows = [make_row(Status="Complete"), make_row()]
    result = RowProcessor(session).run(rows, CREDENTIALS)

    assert result.submitted_indices == [1]
    assert result.errors == []
    assert session.submit_calls == 1


def test_login_failure_fails_every_row(fake_session_cls, make_row):
    session = fake_session_cls(auth_error=RuntimeError("Login step 'Wait for Password' failed"))
    rows = [make_row(), make_row(), make_row()]
    result = RowProcessor(session).run(rows, CREDENTIALS)

    assert not result.ok
    assert [f.index for f in result.errors] == [0, 1, 2]
    assert all(f.fatal for f in result.errors)
    assert len({f.message for f in result.errors}) == 1
    assert result.errors[0].message.startswith("Automation failed: ")
    assert session.submit_calls == 0


def test_exception_in_row_recovers_and_continues(fake_session_cls, make_row):
    session = fake_session_cls(fail_inject_once=True)
    result = RowProcessor(session).run([make_row(), make_row()], CREDENTIALS)

    assert result.submitted_indices == [1]
    assert "did not become visible" in result.errors[0].message
    assert session.recover_calls == 1


def test_empty_optional_fields_are_not_injected(fake_session_cls, make_row):
    session = fake_session_cls()
    RowProcessor(session).run([make_row(Tool="", **{"Detail Charge Code": "nan"})], CREDENTIALS)

    keys = [key for key, _, _ in session.injected]
    assert keys == ["project_code", "date", "hours", "task_description"]


def test_tool_injection_carries_project(fake_session_cls, make_row):
    session = fake_session_cls()
    RowProcessor(session).run([make_row(Project="OSC-BBB", Tool="Lift")], CREDENTIALS)

    assert ("tool", "Lift", "OSC-BBB") in session.injected


def test_progress_notifications(fake_session_cls, make_row):
    events = []
    session = fake_session_cls()
    RowProcessor(session, progress_callback=lambda p, m: events.append((p, m))).run(
        [make_row(), make_row()], CREDENTIALS
    )

    assert events == [
        (10, "Logging in"),
        (20, "Login complete"),
        (50, "Completed row 1"),
        (80, "Completed row 2"),
    ]


def test_progress_callback_errors_are_ignored(fake_session_cls, make_row):
    def broken(percent, message):
        raise ValueError("observer went away")

    session = fake_session_cls()
    result = RowProcessor(session, progress_callback=broken).run([make_row()], CREDENTIALS)
    assert result.submitted_indices == [0]


def test_row_progress_formula():
    assert row_progress(0, 3) == 40
    assert row_progress(2, 3) == 80
    assert row_progress(0, 7) == 28


def test_attempt_bound_must_be_positive(fake_session_cls):
    with pytest.raises(ValueError):
        RowProcessor(fake_session_cls(), max_submit_attempts=0)
