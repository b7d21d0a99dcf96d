"""Temporal validation of progress entries.

Within a session, progress must never go backwards in time: an entry may
not be lower than anything logged on an earlier day, nor higher than
anything logged on a later day. Entries on the same day as the candidate
are ignored so a day's figure can be corrected freely.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from ..dates import format_display_date
from ..db.sqlite import Database, get_db
from ..errors import ConflictingEntry


class ProgressEntry(Protocol):
    """The fields of a progress entry the validator looks at."""

    id: int
    progress_date: str
    current_page: int
    current_percentage: float


@dataclass
class ProgressValidationResult:
    """Outcome of a timeline check."""

    valid: bool
    error: Optional[str] = None
    conflicting_entry: Optional[ConflictingEntry] = None


def _value_of(entry: ProgressEntry, use_percentage: bool) -> float:
    return entry.current_percentage if use_percentage else entry.current_page


def _describe(value: float, use_percentage: bool) -> str:
    if use_percentage:
        return f"{value:.1f}%"
    return f"page {int(value)}"


def check_timeline(
    entries: Iterable[ProgressEntry],
    progress_date: str,
    value: float,
    use_percentage: bool = False,
    exclude_entry_id: Optional[int] = None,
) -> ProgressValidationResult:
    """Check a candidate (date, value) pair against a session's entries.

    Args:
        entries: Existing progress entries of the session
        progress_date: Candidate day (YYYY-MM-DD)
        value: Candidate page number, or percentage if use_percentage
        use_percentage: Compare percentages instead of pages
        exclude_entry_id: Entry being edited, left out of the comparison

    Returns:
        A result that is valid, or carries the error message and the
        entry the candidate conflicts with
    """
    before: Optional[ProgressEntry] = None
    after: Optional[ProgressEntry] = None

    for entry in entries:
        if exclude_entry_id is not None and entry.id == exclude_entry_id:
            continue
        if entry.progress_date < progress_date:
            if before is None or _value_of(entry, use_percentage) > _value_of(before, use_percentage):
                before = entry
        elif entry.progress_date > progress_date:
            if after is None or _value_of(entry, use_percentage) < _value_of(after, use_percentage):
                after = entry

    if before is not None and value < _value_of(before, use_percentage):
        floor = _value_of(before, use_percentage)
        return ProgressValidationResult(
            valid=False,
            error=(
                f"Progress must be at least {_describe(floor, use_percentage)} "
                f"(your progress on {format_display_date(before.progress_date)})"
            ),
            conflicting_entry=ConflictingEntry(
                id=before.id, date=before.progress_date, progress=floor, type="before"
            ),
        )

    if after is not None and value > _value_of(after, use_percentage):
        ceiling = _value_of(after, use_percentage)
        return ProgressValidationResult(
            valid=False,
            error=(
                f"Progress cannot exceed {_describe(ceiling, use_percentage)} "
                f"(your progress on {format_display_date(after.progress_date)})"
            ),
            conflicting_entry=ConflictingEntry(
                id=after.id, date=after.progress_date, progress=ceiling, type="after"
            ),
        )

    return ProgressValidationResult(valid=True)


class TimelineValidator:
    """Validates candidate progress against a stored session timeline."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def validate(
        self,
        session_id: int,
        progress_date: str,
        value: float,
        use_percentage: bool = False,
        exclude_entry_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> ProgressValidationResult:
        """Load the session's entries and check the candidate against them."""
        entries = self.db.get_progress_for_session(session_id, session=session)
        return check_timeline(entries, progress_date, value, use_percentage, exclude_entry_id)
