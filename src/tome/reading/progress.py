"""Progress logging for the active reading session.

Progress entries record a dated reading position. Every write is checked
against the session's timeline first, so a rejected entry leaves no trace,
and every successful write asks the streak engine to recompute.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

import pydantic

from ..dates import is_future_date, today_in_timezone
from ..db.models import Book, ProgressLog
from ..db.schemas import (
    PagePosition,
    PercentagePosition,
    ProgressLogCreate,
    ProgressLogUpdate,
    SessionStatus,
)
from ..db.sqlite import Database, get_db
from ..errors import (
    NotFoundError,
    StateConflictError,
    TimelineConflictError,
    ValidationError,
    first_error_message,
)
from ..streaks.manager import StreakManager
from .validation import TimelineValidator

logger = logging.getLogger(__name__)


def calculate_percentage(page: int, total_pages: Optional[int]) -> int:
    """Whole-number percentage for a page, rounded down and capped at 100.

    Only the last page reaches 100%. Without a page count the percentage is 0.
    """
    if not total_pages:
        return 0
    return min(100, (page * 100) // total_pages)


def calculate_page_from_percentage(percentage: float, total_pages: int) -> int:
    """Page number for a percentage, rounded half up."""
    return int(percentage / 100 * total_pages + 0.5)


def resolve_position(
    position: Union[PagePosition, PercentagePosition], total_pages: Optional[int]
) -> tuple[int, float]:
    """Derive the (page, percentage) pair from whichever one was given."""
    if isinstance(position, PagePosition):
        return position.page, float(calculate_percentage(position.page, total_pages))
    if total_pages:
        return calculate_page_from_percentage(position.percentage, total_pages), position.percentage
    return 0, position.percentage


def uses_percentage_units(
    position: Union[PagePosition, PercentagePosition], book: Book
) -> bool:
    """Whether a position is checked against the timeline in percentages.

    Stored percentages of page entries are rounded down, so whenever the
    book has a page count the resolved page is compared instead.
    """
    return isinstance(position, PercentagePosition) and not book.total_pages


@dataclass
class ProgressLogResult:
    """Result of logging progress."""

    progress_log: ProgressLog
    should_show_completion_modal: bool = False
    # Day of the entry that reached 100%, only set with the modal
    completion_date: Optional[str] = None


class ProgressTracker:
    """Logs, edits and deletes progress entries."""

    def __init__(
        self,
        db: Optional[Database] = None,
        streaks: Optional[StreakManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize progress tracker.

        Args:
            db: Database instance
            streaks: Streak manager notified after every write
            clock: Returns the current instant; defaults to the system UTC clock
        """
        self.db = db or get_db()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.streaks = streaks or StreakManager(self.db, clock=self.clock)
        self.validator = TimelineValidator(self.db)

    def _check_date(self, progress_date: Optional[str]) -> str:
        tz = self.streaks.get_timezone()
        now = self.clock()
        if progress_date is None:
            return today_in_timezone(tz, now)
        if is_future_date(progress_date, tz, now):
            raise ValidationError("Progress date cannot be in the future")
        return progress_date

    def _notify_streaks(self) -> None:
        try:
            self.streaks.notify_progress_changed()
        except Exception:
            logger.exception("Failed to rebuild streak after progress change")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_progress_for_session(self, session_id: int) -> list[ProgressLog]:
        """All progress entries of a session, oldest first."""
        return self.db.get_progress_for_session(session_id)

    def get_progress_for_active_session(self, book_id: int) -> list[ProgressLog]:
        """Progress entries of a book's active session, or [] if it has none."""
        active = self.db.get_active_session(book_id)
        if active is None:
            return []
        return self.db.get_progress_for_session(active.id)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def log_progress(
        self,
        book_id: int,
        current_page: Optional[int] = None,
        current_percentage: Optional[float] = None,
        notes: Optional[str] = None,
        progress_date: Optional[str] = None,
    ) -> ProgressLogResult:
        """Log a new progress entry on the book's active session.

        Args:
            book_id: Book being read
            current_page: Page reached
            current_percentage: Percentage reached, used when no page is given
            notes: Optional notes
            progress_date: Day of the reading (default: today in the user's timezone)

        Returns:
            The created entry and whether the book just reached 100%

        Raises:
            ValidationError: Missing position, malformed or future date
            NotFoundError: Unknown book
            StateConflictError: No active session, or it is not being read
            TimelineConflictError: The value breaks the session's timeline
        """
        try:
            data = ProgressLogCreate(
                current_page=current_page,
                current_percentage=current_percentage,
                notes=notes,
                progress_date=progress_date,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(first_error_message(e)) from None

        if self.db.get_book(book_id) is None:
            raise NotFoundError("Book not found")
        day = self._check_date(data.progress_date)

        with self.db.get_session() as session:
            book = self.db.get_book(book_id, session=session)
            if book is None:
                raise NotFoundError("Book not found")

            active = self.db.get_active_session(book_id, session=session)
            if active is None:
                raise StateConflictError(
                    "No active reading session found. Please set a reading status first."
                )
            if active.status != SessionStatus.READING.value:
                raise StateConflictError("Can only log progress for books with 'reading' status")

            position = data.position()
            page, percentage = resolve_position(position, book.total_pages)
            use_percentage = uses_percentage_units(position, book)

            result = self.validator.validate(
                active.id,
                day,
                percentage if use_percentage else page,
                use_percentage=use_percentage,
                session=session,
            )
            if not result.valid:
                raise TimelineConflictError(result.error, result.conflicting_entry)

            latest = self.db.get_latest_progress(active.id, session=session)
            pages_read = max(0, page - latest.current_page) if latest else page

            log = self.db.create_progress_log(
                book_id=book_id,
                session_id=active.id,
                progress_date=day,
                current_page=page,
                current_percentage=percentage,
                pages_read=pages_read,
                notes=data.notes,
                session=session,
            )
            self.db.touch_reading_session(active.id, session=session)

            should_show_completion_modal = (
                percentage >= 100 and active.status == SessionStatus.READING.value
            )
            session.expunge(log)

        logger.info(
            "Logged progress for book %s: page %s (%.1f%%) on %s",
            book_id,
            page,
            percentage,
            day,
        )
        self._notify_streaks()
        return ProgressLogResult(
            progress_log=log,
            should_show_completion_modal=should_show_completion_modal,
            completion_date=day if should_show_completion_modal else None,
        )

    def update_progress(
        self,
        progress_id: int,
        current_page: Optional[int] = None,
        current_percentage: Optional[float] = None,
        notes: Optional[str] = None,
        progress_date: Optional[str] = None,
    ) -> ProgressLog:
        """Edit an existing progress entry.

        Fields left as None keep their stored value. The entry is validated
        against the other entries of its session.

        Raises:
            ValidationError: Malformed or future date
            NotFoundError: Unknown entry, book or session
            TimelineConflictError: The new value breaks the session's timeline
        """
        try:
            data = ProgressLogUpdate(
                current_page=current_page,
                current_percentage=current_percentage,
                notes=notes,
                progress_date=progress_date,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(first_error_message(e)) from None

        if self.db.get_progress_log(progress_id) is None:
            raise NotFoundError("Progress entry not found")
        if data.progress_date is not None:
            self._check_date(data.progress_date)

        with self.db.get_session() as session:
            log = self.db.get_progress_log(progress_id, session=session)
            if log is None:
                raise NotFoundError("Progress entry not found")

            book: Optional[Book] = self.db.get_book(log.book_id, session=session)
            if book is None:
                raise NotFoundError("Book not found")

            reading_session = self.db.get_reading_session(log.session_id, session=session)
            if reading_session is None:
                raise NotFoundError("Session not found")

            day = data.progress_date or log.progress_date
            position = data.position()
            if position is None:
                page, percentage = log.current_page, log.current_percentage
                use_percentage = False
            else:
                page, percentage = resolve_position(position, book.total_pages)
                use_percentage = uses_percentage_units(position, book)

            result = self.validator.validate(
                reading_session.id,
                day,
                percentage if use_percentage else page,
                use_percentage=use_percentage,
                exclude_entry_id=progress_id,
                session=session,
            )
            if not result.valid:
                raise TimelineConflictError(result.error, result.conflicting_entry)

            previous = self.db.get_previous_progress(
                reading_session.id, day, exclude_id=progress_id, session=session
            )
            pages_read = max(0, page - previous.current_page) if previous else page

            log.current_page = page
            log.current_percentage = percentage
            log.progress_date = day
            log.pages_read = pages_read
            if data.notes is not None:
                log.notes = data.notes
            session.flush()
            session.expunge(log)

        logger.info("Updated progress entry %s: page %s on %s", progress_id, page, day)
        self._notify_streaks()
        return log

    def delete_progress(self, progress_id: int) -> bool:
        """Delete a progress entry.

        Returns:
            False if the entry did not exist
        """
        deleted = self.db.delete_progress_log(progress_id)
        if deleted:
            logger.info("Deleted progress entry %s", progress_id)
            self._notify_streaks()
        return deleted
