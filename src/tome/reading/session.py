"""Reading session lifecycle.

A book has at most one active session. Status changes normally mutate the
active session in place; a new session is opened only when the reader
starts over: a re-read, giving a DNF book another chance, or moving a
book that already has progress back to the shelf.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

import pydantic
from sqlalchemy.orm import Session

from ..dates import parse_date_string, today_in_timezone
from ..db.models import Book, ReadingSession
from ..db.schemas import PRE_READING_STATUSES, SessionStatus, StatusUpdate
from ..db.sqlite import Database, get_db
from ..errors import (
    NotFoundError,
    StateConflictError,
    TimelineConflictError,
    ValidationError,
    first_error_message,
)
from ..streaks.manager import StreakManager
from .validation import check_timeline

logger = logging.getLogger(__name__)

NO_ACTIVE_SESSION = "No active reading session found. Please set a reading status first."


@dataclass
class StatusUpdateResult:
    """Result of a status transition."""

    session: ReadingSession
    session_archived: bool = False
    archived_session_number: Optional[int] = None
    progress_created: bool = False
    rating_updated: bool = False
    review_updated: bool = False


class SessionManager:
    """Applies status transitions to a book's reading sessions."""

    def __init__(
        self,
        db: Optional[Database] = None,
        streaks: Optional[StreakManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize session manager.

        Args:
            db: Database instance
            streaks: Streak manager notified when progress history changes
            clock: Returns the current instant; defaults to the system UTC clock
        """
        self.db = db or get_db()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.streaks = streaks or StreakManager(self.db, clock=self.clock)

    def _today(self) -> str:
        return today_in_timezone(self.streaks.get_timezone(), self.clock())

    def _notify_streaks(self) -> None:
        try:
            self.streaks.notify_progress_changed()
        except Exception:
            logger.exception("Failed to rebuild streak after session change")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_active_session(self, book_id: int) -> Optional[ReadingSession]:
        """Get the active session of a book."""
        return self.db.get_active_session(book_id)

    def get_sessions_for_book(self, book_id: int) -> list[ReadingSession]:
        """Get all sessions of a book, newest first."""
        return self.db.get_sessions_for_book(book_id)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def update_status(
        self,
        book_id: int,
        status: Union[SessionStatus, str],
        rating: Optional[int] = None,
        review: Optional[str] = None,
        started_date: Optional[str] = None,
        completed_date: Optional[str] = None,
    ) -> StatusUpdateResult:
        """Move a book to a new reading status.

        Args:
            book_id: Book to update
            status: Target status
            rating: 1-5 rating, stored on the book (and on the session when read)
            review: Review text for the session
            started_date: Explicit start day (YYYY-MM-DD)
            completed_date: Explicit completion day (YYYY-MM-DD), used for read/dnf

        Returns:
            The resulting session and what changed along the way

        Raises:
            ValidationError: Bad status, rating or date
            NotFoundError: Unknown book
            StateConflictError: DNF to read, or no session to act on
            TimelineConflictError: The completion entry conflicts with logged progress
        """
        try:
            data = StatusUpdate(
                status=status,
                rating=rating,
                review=review,
                started_date=started_date,
                completed_date=completed_date,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(first_error_message(e)) from None

        today = self._today()

        with self.db.get_session() as session:
            book = self.db.get_book(book_id, session=session)
            if book is None:
                raise NotFoundError("Book not found")

            active = self.db.get_active_session(book_id, session=session)
            latest = active or self.db.get_latest_session(book_id, session=session)

            if latest is not None and latest.status == SessionStatus.DNF.value:
                result = self._leave_dnf(session, book, latest, data, today)
            elif data.status == SessionStatus.DNF:
                result = self._archive_as_dnf(
                    session, active, data.completed_date or today
                )
            elif (
                active is None
                and latest is not None
                and latest.status == SessionStatus.READ.value
                and data.status == SessionStatus.READ
            ):
                result = self._update_completed(session, latest, data)
            elif (
                active is not None
                and active.status == SessionStatus.READING.value
                and data.status in PRE_READING_STATUSES
                and self.db.get_latest_progress(active.id, session=session) is not None
            ):
                result = self._restart(session, book, active, data.status, today)
            else:
                result = self._apply(session, book, active, data, today)

            if data.rating is not None:
                book.rating = data.rating
                result.rating_updated = True

            session.flush()
            session.expunge(result.session)

        logger.info(
            "Book %s moved to %s (session #%s, archived=%s)",
            book_id,
            data.status.value,
            result.session.session_number,
            result.session_archived,
        )
        if result.progress_created or result.session_archived:
            self._notify_streaks()
        return result

    def _new_session(
        self,
        s: Session,
        book: Book,
        status: SessionStatus,
        started_date: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> ReadingSession:
        return self.db.create_reading_session(
            book_id=book.id,
            session_number=self.db.get_next_session_number(book.id, session=s),
            status=status,
            started_date=started_date,
            user_id=user_id,
            session=s,
        )

    def _leave_dnf(
        self,
        s: Session,
        book: Book,
        dnf_session: ReadingSession,
        data: StatusUpdate,
        today: str,
    ) -> StatusUpdateResult:
        """Open a fresh attempt after a DNF, leaving the DNF session untouched."""
        if data.status == SessionStatus.READ:
            raise StateConflictError("Cannot mark DNF book as read directly")
        if data.status == SessionStatus.DNF:
            raise StateConflictError("Book is already marked as DNF")

        if dnf_session.is_active:
            dnf_session.is_active = False
            s.flush()

        started = None
        if data.status == SessionStatus.READING:
            started = data.started_date or today
        new_session = self._new_session(s, book, data.status, started, dnf_session.user_id)
        logger.info(
            "Book %s restarted after DNF: session #%s archived, #%s opened",
            book.id,
            dnf_session.session_number,
            new_session.session_number,
        )

        result = StatusUpdateResult(
            session=new_session,
            session_archived=True,
            archived_session_number=dnf_session.session_number,
        )
        if data.review is not None:
            new_session.review = data.review
            result.review_updated = True
        return result

    def _archive_as_dnf(
        self, s: Session, active: Optional[ReadingSession], dnf_date: str
    ) -> StatusUpdateResult:
        if active is None:
            raise StateConflictError(NO_ACTIVE_SESSION)
        active.status = SessionStatus.DNF.value
        active.is_active = False
        active.completed_date = dnf_date
        s.flush()
        return StatusUpdateResult(
            session=active,
            session_archived=True,
            archived_session_number=active.session_number,
        )

    def _update_completed(
        self, s: Session, completed: ReadingSession, data: StatusUpdate
    ) -> StatusUpdateResult:
        """Re-apply "read" to an already completed session."""
        result = StatusUpdateResult(session=completed)
        if data.completed_date is not None:
            completed.completed_date = data.completed_date
        if data.rating is not None:
            completed.rating = data.rating
        if data.review is not None:
            completed.review = data.review
            result.review_updated = True
        s.flush()
        return result

    def _restart(
        self,
        s: Session,
        book: Book,
        active: ReadingSession,
        status: SessionStatus,
        today: str,
    ) -> StatusUpdateResult:
        """Shelve a started book: keep its progress in an archived session."""
        active.is_active = False
        s.flush()
        new_session = self._new_session(s, book, status, user_id=active.user_id)
        logger.info(
            "Book %s moved back to %s: session #%s archived",
            book.id,
            status.value,
            active.session_number,
        )
        return StatusUpdateResult(
            session=new_session,
            session_archived=True,
            archived_session_number=active.session_number,
        )

    def _apply(
        self,
        s: Session,
        book: Book,
        active: Optional[ReadingSession],
        data: StatusUpdate,
        today: str,
    ) -> StatusUpdateResult:
        reading_session = active or self._new_session(s, book, data.status)
        result = StatusUpdateResult(session=reading_session)

        reading_session.status = data.status.value
        if data.started_date is not None:
            reading_session.started_date = data.started_date
        elif data.status in (SessionStatus.READING, SessionStatus.READ):
            if not reading_session.started_date:
                reading_session.started_date = today

        if data.review is not None:
            reading_session.review = data.review
            result.review_updated = True

        if data.status == SessionStatus.READ:
            reading_session.completed_date = data.completed_date or today
            if data.rating is not None:
                reading_session.rating = data.rating
            result.progress_created = self._complete_progress(
                s, book, reading_session, reading_session.completed_date
            )
            reading_session.is_active = False
            result.session_archived = True
            result.archived_session_number = reading_session.session_number

        s.flush()
        return result

    def _complete_progress(
        self, s: Session, book: Book, reading_session: ReadingSession, completed_date: str
    ) -> bool:
        """Add a 100% entry on the completion day unless one already exists."""
        if not book.total_pages:
            return False
        if self.db.has_completion_entry(reading_session.id, session=s):
            return False

        entries = self.db.get_progress_for_session(reading_session.id, session=s)
        check = check_timeline(entries, completed_date, book.total_pages)
        if not check.valid:
            raise TimelineConflictError(check.error, check.conflicting_entry)

        latest = self.db.get_latest_progress(reading_session.id, session=s)
        pages_read = (
            max(0, book.total_pages - latest.current_page) if latest else book.total_pages
        )
        self.db.create_progress_log(
            book_id=book.id,
            session_id=reading_session.id,
            progress_date=completed_date,
            current_page=book.total_pages,
            current_percentage=100.0,
            pages_read=pages_read,
            session=s,
        )
        return True

    def mark_dnf(self, book_id: int, dnf_date: Optional[str] = None) -> StatusUpdateResult:
        """Archive the active session as did-not-finish.

        Args:
            book_id: Book to mark
            dnf_date: Day reading stopped (default: today)
        """
        if dnf_date is not None:
            parse_date_string(dnf_date, "DNF date")
        today = self._today()

        with self.db.get_session() as session:
            if self.db.get_book(book_id, session=session) is None:
                raise NotFoundError("Book not found")
            active = self.db.get_active_session(book_id, session=session)
            result = self._archive_as_dnf(session, active, dnf_date or today)
            session.expunge(result.session)

        logger.info("Book %s marked DNF (session #%s)", book_id, result.session.session_number)
        return result

    def start_reread(self, book_id: int) -> ReadingSession:
        """Start reading a completed book again in a new session.

        Raises:
            NotFoundError: Unknown book
            StateConflictError: No completed read, or a session is already active
        """
        today = self._today()

        with self.db.get_session() as session:
            book = self.db.get_book(book_id, session=session)
            if book is None:
                raise NotFoundError("Book not found")

            completed = [
                s
                for s in self.db.get_sessions_for_book(book_id, session=session)
                if s.status == SessionStatus.READ.value
            ]
            if not completed:
                raise StateConflictError("Cannot start re-read: no completed reads found")
            if self.db.get_active_session(book_id, session=session) is not None:
                raise StateConflictError("Cannot start re-read: book already has an active session")

            new_session = self._new_session(
                session, book, SessionStatus.READING, today, completed[0].user_id
            )
            session.expunge(new_session)

        logger.info("Re-read of book %s started (session #%s)", book_id, new_session.session_number)
        return new_session

    def update_session_date(self, session_id: int, field: str, value: str) -> ReadingSession:
        """Correct the start or completion day of a session.

        Args:
            session_id: Session to edit
            field: "started_date" or "completed_date"
            value: New day (YYYY-MM-DD)
        """
        if field not in ("started_date", "completed_date"):
            raise ValidationError(f"Cannot update session field: {field}")
        parse_date_string(value, field.replace("_", " "))

        with self.db.get_session() as session:
            reading_session = self.db.get_reading_session(session_id, session=session)
            if reading_session is None:
                raise NotFoundError("Session not found")
            setattr(reading_session, field, value)
            session.flush()
            session.expunge(reading_session)
            return reading_session
