"""
Shared fixtures: a throwaway SQLite database, fast app config, and a fake
browser session that records what the processor asked it to do.
"""
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path so tests run without an editable install
sys.path.insert(0, str(Path(__file__).parent.parent))

from timesheet_submit.config import get_app_config
from timesheet_submit.db.config import StorageConfig
from timesheet_submit.db.database import Database
from timesheet_submit.db.repository import insert_entry
from timesheet_submit.quarters import QUARTER_DEFINITIONS

Q4_FORM_ID = QUARTER_DEFINITIONS[0].form_id
Q1_FORM_ID = QUARTER_DEFINITIONS[1].form_id


class FakeSession:
    """
    Stands in for SessionController.

    ``submit_results`` is consumed one value per submit() call; once it runs
    out every submit succeeds. ``fail_inject_once`` makes the first
    inject_field call raise.
    """

    def __init__(
            self,
            form_id: str = Q4_FORM_ID,
            submit_results: Optional[List[bool]] = None,
            auth_error: Optional[Exception] = None,
            fail_inject_once: bool = False,
        ) -> None:
        self.form_id = form_id
        self.submit_results = list(submit_results or [])
        self.auth_error = auth_error
        self.fail_inject_once = fail_inject_once

        self.calls: List[str] = []
        self.injected: List[tuple] = []
        self.submit_calls = 0
        self.recover_calls = 0
        self.closed = False

    def __enter__(self) -> "FakeSession":
        self.calls.append("start")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def authenticate(self, email: str, password: str) -> None:
        self.calls.append("authenticate")
        if self.auth_error is not None:
            raise self.auth_error

    def wait_for_form_ready(self) -> None:
        self.calls.append("wait_for_form_ready")

    def inject_field(self, spec, value, project=None) -> None:
        self.calls.append("inject_field")
        if self.fail_inject_once:
            self.fail_inject_once = False
            raise RuntimeError("Field input[aria-label='Project Task'] did not become visible")
        self.injected.append((spec.key, value, project))

    def submit(self) -> bool:
        self.calls.append("submit")
        self.submit_calls += 1
        if self.submit_results:
            return self.submit_results.pop(0)
        return True

    def recover(self) -> bool:
        self.calls.append("recover")
        self.recover_calls += 1
        return True

    def capture_screenshot(self, label: str) -> None:
        return None


@pytest.fixture
def fake_session_cls():
    return FakeSession


@pytest.fixture
def app_config() -> Dict[str, Any]:
    config = get_app_config()
    config.update(
        headless=True,
        global_timeout=0.05,
        dynamic_wait_base=0.001,
        dom_stability_sample_ms=1,
        submit_verify_timeout=0.05,
        max_submit_attempts=2,
        screenshots_enabled=False,
        quarters_file=None,
        login_url=None,
    )
    return config


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(StorageConfig(database_url=f"sqlite:///{tmp_path / 'timesheet.db'}"))
    yield db
    db.dispose()


@pytest.fixture
def add_entry(database):
    """Insert a pending entry and return its id."""
    def _add(
            entry_date: date,
            time_in: int = 540,
            time_out: int = 600,
            project: str = "FL-Carver Techs",
            task_description: str = "Calibration",
            **kwargs,
        ) -> int:
        with database.session_scope() as db:
            entry = insert_entry(
                db,
                date=entry_date,
                time_in=time_in,
                time_out=time_out,
                project=project,
                task_description=task_description,
                **kwargs,
            )
            return entry.id
    return _add


@pytest.fixture
def make_row():
    """Build a label-keyed row as produced by entry_to_row."""
    def _make(date_str: str = "10/15/2025", **overrides) -> Dict[str, Any]:
        row = {
            "Project": "FL-Carver Techs",
            "Date": date_str,
            "Hours": "1.5",
            "Tool": "",
            "Task Description": "Calibration",
            "Detail Charge Code": "",
            "Status": "",
        }
        row.update(overrides)
        return row
    return _make
