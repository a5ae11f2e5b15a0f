"""
Quarter routing for timesheet submission.

Each calendar quarter is served by its own Smartsheet form. This module maps a
``YYYY-MM-DD`` date onto the quarter whose window contains it, and from there
onto the form destination the browser session should be pointed at.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SUBMISSION_ENDPOINT_TEMPLATE = "https://forms.smartsheet.com/api/submit/{form_id}"


@dataclass(frozen=True)
class FormDestination:
    """Where a quarter's rows get submitted and how success is recognised."""
    base_url: str
    form_id: str
    submission_endpoint: str
    success_url_patterns: List[str] = field(default_factory=list)


def create_form_destination(form_url: str, form_id: str) -> FormDestination:
    """
    Build the destination for a Smartsheet form.

    Args:
        form_url: Public URL of the form
        form_id: Smartsheet form identifier

    Returns:
        FormDestination with the submission endpoint and success URL globs
    """
    return FormDestination(
        base_url=form_url,
        form_id=form_id,
        submission_endpoint=SUBMISSION_ENDPOINT_TEMPLATE.format(form_id=form_id),
        success_url_patterns=[
            f"**forms.smartsheet.com/api/submit/{form_id}",
            f"**forms.smartsheet.com/api/submit/{form_id}?*",
            f"**app.smartsheet.com/b/form/{form_id}/*",
        ],
    )


@dataclass(frozen=True)
class QuarterDefinition:
    """
    A calendar window served by one form.

    ``start_date`` and ``end_date`` are inclusive ``YYYY-MM-DD`` strings, so
    lexicographic comparison matches calendar order.
    """
    id: str
    name: str
    start_date: str
    end_date: str
    form_url: str
    form_id: str

    @property
    def destination(self) -> FormDestination:
        return create_form_destination(self.form_url, self.form_id)

    def contains(self, iso_date: str) -> bool:
        return self.start_date <= iso_date <= self.end_date

    def describe_window(self) -> str:
        """Human readable window, e.g. ``Q4 2025 (10/01-12/31)``."""
        start = datetime.strptime(self.start_date, "%Y-%m-%d")
        end = datetime.strptime(self.end_date, "%Y-%m-%d")
        return f"{self.name} ({start:%m/%d}-{end:%m/%d})"


QUARTER_DEFINITIONS: List[QuarterDefinition] = [
    QuarterDefinition(
        id="Q4-2025",
        name="Q4 2025",
        start_date="2025-10-01",
        end_date="2025-12-31",
        form_url="https://app.smartsheet.com/b/form/0199fabee6497e60abb6030c48d84585",
        form_id="0199fabee6497e60abb6030c48d84585",
    ),
    QuarterDefinition(
        id="Q1-2026",
        name="Q1 2026",
        start_date="2026-01-01",
        end_date="2026-03-31",
        form_url="https://app.smartsheet.com/b/form/019b5b17a03a79ac9437e45996f49f4f",
        form_id="019b5b17a03a79ac9437e45996f49f4f",
    ),
]

_REQUIRED_QUARTER_KEYS = ("id", "name", "start_date", "end_date", "form_url", "form_id")


def _parse_iso_date(date_str: Any) -> Optional[str]:
    """Return the string unchanged if it is a real ``YYYY-MM-DD`` date, else None."""
    if not isinstance(date_str, str) or not ISO_DATE_PATTERN.match(date_str):
        return None
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError:
        return None
    return date_str


def load_quarter_definitions(path: str) -> List[QuarterDefinition]:
    """
    Load quarter definitions from a JSON file.

    The file holds either a list of quarter objects or ``{"quarters": [...]}``.

    Args:
        path: Path to the JSON file

    Returns:
        List of QuarterDefinition objects, in file order

    Raises:
        ValueError: If a record is missing keys or has invalid dates
    """
    config_file = Path(path)
    with open(config_file, "r") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("quarters", [])

    quarters = []
    for record in data:
        missing = [key for key in _REQUIRED_QUARTER_KEYS if not record.get(key)]
        if missing:
            raise ValueError(f"Quarter definition missing keys {missing}: {record}")
        if _parse_iso_date(record["start_date"]) is None or _parse_iso_date(record["end_date"]) is None:
            raise ValueError(f"Quarter {record['id']} has invalid start/end date")
        if record["start_date"] > record["end_date"]:
            raise ValueError(f"Quarter {record['id']} starts after it ends")
        quarters.append(QuarterDefinition(**{key: record[key] for key in _REQUIRED_QUARTER_KEYS}))

    logger.info(f"Loaded {len(quarters)} quarter definitions from {config_file}")
    return quarters


def get_quarter_definitions(quarters_file: Optional[str] = None) -> List[QuarterDefinition]:
    """Quarter definitions from ``quarters_file`` if given, else the built-in list."""
    if quarters_file:
        return load_quarter_definitions(quarters_file)
    return list(QUARTER_DEFINITIONS)


def get_quarter_for_date(
    date_str: str,
    quarters: Optional[Sequence[QuarterDefinition]] = None,
) -> Optional[QuarterDefinition]:
    """
    Find the quarter whose window contains ``date_str``.

    Malformed or impossible dates (``2025-02-29``, ``2025-11-31``) never raise;
    they simply match nothing. When windows overlap the first declared quarter
    wins.

    Args:
        date_str: Date in ``YYYY-MM-DD`` format
        quarters: Quarter list to search (defaults to the built-in definitions)

    Returns:
        The matching QuarterDefinition, or None
    """
    iso_date = _parse_iso_date(date_str)
    if iso_date is None:
        return None

    for quarter in (QUARTER_DEFINITIONS if quarters is None else quarters):
        if quarter.contains(iso_date):
            return quarter
    return None


def validate_quarter_availability(
    date_str: Optional[str],
    quarters: Optional[Sequence[QuarterDefinition]] = None,
) -> Optional[str]:
    """
    Check that a date falls inside a configured quarter.

    Returns:
        None when the date is routable, otherwise a user-facing error message
    """
    if not date_str:
        return "Please enter a date"

    quarters = QUARTER_DEFINITIONS if quarters is None else quarters
    if get_quarter_for_date(date_str, quarters) is not None:
        return None

    windows = " or ".join(quarter.describe_window() for quarter in quarters)
    return f"Date must be in {windows}"


def group_entries_by_quarter(
    entries: Iterable[Any],
    quarters: Optional[Sequence[QuarterDefinition]] = None,
) -> Dict[str, List[Any]]:
    """
    Group entries by quarter id, preserving input order within each group.

    Entries may be mappings with a ``date`` key or objects with a ``date``
    attribute (``date`` objects are formatted as ISO). Entries whose date
    matches no quarter are left out and logged.
    """
    groups: Dict[str, List[Any]] = {}
    for entry in entries:
        entry_date = entry.get("date") if isinstance(entry, dict) else getattr(entry, "date", None)
        if isinstance(entry_date, date):
            entry_date = entry_date.isoformat()

        quarter = get_quarter_for_date(entry_date, quarters)
        if quarter is None:
            logger.warning(f"No quarter configured for date {entry_date}; entry left pending")
            continue
        groups.setdefault(quarter.id, []).append(entry)
    return groups


def get_available_quarter_ids(quarters: Optional[Sequence[QuarterDefinition]] = None) -> List[str]:
    return [quarter.id for quarter in (QUARTER_DEFINITIONS if quarters is None else quarters)]


def get_quarter_by_id(
    quarter_id: str,
    quarters: Optional[Sequence[QuarterDefinition]] = None,
) -> Optional[QuarterDefinition]:
    for quarter in (QUARTER_DEFINITIONS if quarters is None else quarters):
        if quarter.id == quarter_id:
            return quarter
    return None


def get_current_quarter(
    today: Optional[date] = None,
    quarters: Optional[Sequence[QuarterDefinition]] = None,
) -> Optional[QuarterDefinition]:
    """Quarter containing ``today`` (defaults to the local date)."""
    today = today or date.today()
    return get_quarter_for_date(today.isoformat(), quarters)
