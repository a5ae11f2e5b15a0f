"""
Form field table and row helpers.

A "row" is the flat, label-keyed mapping the processor works on (``Project``,
``Date``, ``Hours``...). Stored entries are converted to rows with
:func:`entry_to_row`, and rows are turned into ``{field_key: value}`` maps
with :func:`build_fields_from_row` before injection.
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class FieldSpec:
    """How one logical field is located and filled on the form."""
    key: str
    label: str
    locator: str
    field_type: str = "text"
    optional: bool = False

    @property
    def is_dropdown(self) -> bool:
        return self.field_type == "dropdown"


FIELD_DEFINITIONS: Dict[str, FieldSpec] = {
    "project_code": FieldSpec(
        key="project_code",
        label="Project",
        locator="input[aria-label='Project Task']",
    ),
    "date": FieldSpec(
        key="date",
        label="Date",
        locator="input[placeholder='mm/dd/yyyy']",
    ),
    "hours": FieldSpec(
        key="hours",
        label="Hours",
        locator="input[aria-label='Hours']",
    ),
    "task_description": FieldSpec(
        key="task_description",
        label="Task Description",
        locator="role=textbox[name='Task Description']",
    ),
    "tool": FieldSpec(
        key="tool",
        label="Tool",
        locator="input[aria-label*='Tool']",
        optional=True,
    ),
    "detail_code": FieldSpec(
        key="detail_code",
        label="Detail Charge Code",
        locator="input[aria-label='Detail Charge Code']",
        field_type="dropdown",
        optional=True,
    ),
}

# Injection order; the form reveals the tool field only after a project is set
FIELD_ORDER: List[str] = [
    "project_code",
    "date",
    "hours",
    "tool",
    "task_description",
    "detail_code",
]

REQUIRED_FIELDS: List[str] = ["hours", "project_code", "date"]

# Projects whose tool picker is a dedicated field with its own label
PROJECT_TO_TOOL_LABEL: Dict[str, str] = {
    "OSC-BBB": "BBB Tool",
    "FL-Carver Techs": "Carver Tool",
    "FL-Carver Tools": "Carver Tool",
    "SWFL-EQUIP": "SWFL Tool",
}

ABSENT_SENTINELS = {"", "nan", "none"}

STATUS_COLUMN = "Status"
COMPLETE_STATUS = "Complete"

_ROW_DATE_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")


def is_absent_value(value: Any) -> bool:
    """True for None, NaN and the ``""`` / ``"nan"`` / ``"none"`` sentinels."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip().lower() in ABSENT_SENTINELS


def build_fields_from_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map a label-keyed row onto logical field keys.

    Columns absent from the row are omitted entirely; present columns are
    carried over as-is, sentinels included.
    """
    fields = {}
    for key in FIELD_ORDER:
        label = FIELD_DEFINITIONS[key].label
        if label in row:
            fields[key] = row[label]
    return fields


def validate_required_fields(fields: Mapping[str, Any]) -> List[str]:
    """Return the required field keys that are missing or hold a sentinel."""
    return [key for key in REQUIRED_FIELDS if is_absent_value(fields.get(key))]


def resolve_field_locator(spec: FieldSpec, project: Optional[str] = None) -> str:
    """Locator for ``spec``, honouring the project-specific tool label override."""
    if spec.key == "tool" and project:
        label = PROJECT_TO_TOOL_LABEL.get(str(project).strip())
        if label:
            return f"input[aria-label='{label}']"
    return spec.locator


def parse_row_date_to_iso(value: Any) -> Optional[str]:
    """
    Convert a row date to ``YYYY-MM-DD``.

    Accepts ``mm/dd/yyyy`` (single-digit month/day and ``-`` separators too),
    an ISO string, or a ``date``. Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if is_absent_value(value):
        return None

    text = str(value).strip()
    match = _ROW_DATE_PATTERN.match(text)
    try:
        if match:
            month, day, year = (int(part) for part in match.groups())
            return date(year, month, day).isoformat()
        return datetime.strptime(text, "%Y-%m-%d").date().isoformat()
    except ValueError:
        return None


def format_hours(hours: float) -> str:
    """Render hours without a trailing ``.0`` (``1.5`` stays ``1.5``, ``2.0`` becomes ``2``)."""
    return f"{hours:g}"


def entry_to_row(entry: Any) -> Dict[str, Any]:
    """
    Convert a stored timesheet entry into a label-keyed row.

    ``time_in`` / ``time_out`` are minutes since midnight; hours are derived
    from their difference.
    """
    entry_date = entry.date
    if isinstance(entry_date, str):
        entry_date = datetime.strptime(entry_date, "%Y-%m-%d").date()

    hours = (entry.time_out - entry.time_in) / 60
    return {
        "Project": entry.project,
        "Date": entry_date.strftime("%m/%d/%Y"),
        "Hours": format_hours(hours),
        "Tool": entry.tool or "",
        "Task Description": entry.task_description,
        "Detail Charge Code": entry.detail_charge_code or "",
        STATUS_COLUMN: "",
    }
