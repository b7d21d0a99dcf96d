"""SQLite database operations.

Handles database connection, session management, and CRUD operations.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, Book, ProgressLog, ReadingSession
from .schemas import BookCreate, SessionStatus


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     the configured TOME_DB_PATH or default location.
        """
        if db_path is None:
            from ..config import get_config

            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )

        # SQLite leaves foreign keys off unless asked per connection
        @event.listens_for(self.engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        # Import streak models to register them with Base
        from ..streaks.models import Streak  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Book Operations
    # ========================================================================

    def create_book(self, book: BookCreate, session: Optional[Session] = None) -> Book:
        """Create a new book record."""

        def _create(s: Session) -> Book:
            db_book = Book(
                title=book.title,
                author=book.author,
                total_pages=book.total_pages,
                rating=book.rating,
                calibre_id=book.calibre_id,
            )
            s.add(db_book)
            s.flush()
            return db_book

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                db_book = _create(s)
                s.expunge(db_book)
                return db_book

    def get_book(self, book_id: int, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_all_books(self, session: Optional[Session] = None) -> list[Book]:
        """Get all books."""

        def _get(s: Session) -> list[Book]:
            stmt = select(Book).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def update_book_total_pages(
        self, book_id: int, total_pages: Optional[int], session: Optional[Session] = None
    ) -> Optional[Book]:
        """Set a book's page count."""

        def _update(s: Session) -> Optional[Book]:
            book = s.get(Book, book_id)
            if not book:
                return None
            book.total_pages = total_pages
            s.flush()
            return book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                book = _update(s)
                if book:
                    s.expunge(book)
                return book

    def update_book_rating(
        self, book_id: int, rating: Optional[int], session: Optional[Session] = None
    ) -> Optional[Book]:
        """Set a book's rating."""

        def _update(s: Session) -> Optional[Book]:
            book = s.get(Book, book_id)
            if not book:
                return None
            book.rating = rating
            s.flush()
            return book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                book = _update(s)
                if book:
                    s.expunge(book)
                return book

    # ========================================================================
    # Reading Session Operations
    # ========================================================================

    def create_reading_session(
        self,
        book_id: int,
        session_number: int,
        status: SessionStatus = SessionStatus.TO_READ,
        is_active: bool = True,
        started_date: Optional[str] = None,
        completed_date: Optional[str] = None,
        user_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> ReadingSession:
        """Create a reading session for a book."""

        def _create(s: Session) -> ReadingSession:
            reading_session = ReadingSession(
                user_id=user_id,
                book_id=book_id,
                session_number=session_number,
                status=SessionStatus(status).value,
                is_active=is_active,
                started_date=started_date,
                completed_date=completed_date,
            )
            s.add(reading_session)
            s.flush()
            return reading_session

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                reading_session = _create(s)
                s.expunge(reading_session)
                return reading_session

    def get_reading_session(
        self, session_id: int, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get a reading session by ID."""

        def _get(s: Session) -> Optional[ReadingSession]:
            return s.get(ReadingSession, session_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                reading_session = _get(s)
                if reading_session:
                    s.expunge(reading_session)
                return reading_session

    def get_active_session(
        self, book_id: int, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get the active reading session for a book, if any."""

        def _get(s: Session) -> Optional[ReadingSession]:
            stmt = select(ReadingSession).where(
                ReadingSession.book_id == book_id,
                ReadingSession.is_active.is_(True),
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                reading_session = _get(s)
                if reading_session:
                    s.expunge(reading_session)
                return reading_session

    def get_sessions_for_book(
        self, book_id: int, session: Optional[Session] = None
    ) -> list[ReadingSession]:
        """Get all sessions for a book, most recent session number first."""

        def _get(s: Session) -> list[ReadingSession]:
            stmt = (
                select(ReadingSession)
                .where(ReadingSession.book_id == book_id)
                .order_by(ReadingSession.session_number.desc())
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                sessions = _get(s)
                for reading_session in sessions:
                    s.expunge(reading_session)
                return sessions

    def get_latest_session(
        self, book_id: int, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get the session with the highest session number for a book."""

        def _get(s: Session) -> Optional[ReadingSession]:
            stmt = (
                select(ReadingSession)
                .where(ReadingSession.book_id == book_id)
                .order_by(ReadingSession.session_number.desc())
                .limit(1)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                reading_session = _get(s)
                if reading_session:
                    s.expunge(reading_session)
                return reading_session

    def get_next_session_number(self, book_id: int, session: Optional[Session] = None) -> int:
        """Next unused session number for a book (1 for a new book)."""

        def _get(s: Session) -> int:
            stmt = select(func.max(ReadingSession.session_number)).where(
                ReadingSession.book_id == book_id
            )
            current = s.execute(stmt).scalar()
            return (current or 0) + 1

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    def touch_reading_session(self, session_id: int, session: Optional[Session] = None) -> None:
        """Bump a session's updated_at so recency sorting sees new activity."""

        def _touch(s: Session) -> None:
            reading_session = s.get(ReadingSession, session_id)
            if reading_session:
                reading_session.updated_at = datetime.now(timezone.utc).isoformat()
                s.flush()

        if session:
            _touch(session)
        else:
            with self.get_session() as s:
                _touch(s)

    # ========================================================================
    # Progress Log Operations
    # ========================================================================

    def create_progress_log(
        self,
        book_id: int,
        session_id: int,
        progress_date: str,
        current_page: int = 0,
        current_percentage: float = 0.0,
        pages_read: int = 0,
        notes: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> ProgressLog:
        """Create a progress log entry."""

        def _create(s: Session) -> ProgressLog:
            log = ProgressLog(
                book_id=book_id,
                session_id=session_id,
                current_page=current_page,
                current_percentage=current_percentage,
                pages_read=pages_read,
                progress_date=progress_date,
                notes=notes,
            )
            s.add(log)
            s.flush()
            return log

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                log = _create(s)
                s.expunge(log)
                return log

    def get_progress_log(
        self, progress_id: int, session: Optional[Session] = None
    ) -> Optional[ProgressLog]:
        """Get a progress log entry by ID."""

        def _get(s: Session) -> Optional[ProgressLog]:
            return s.get(ProgressLog, progress_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                log = _get(s)
                if log:
                    s.expunge(log)
                return log

    def get_progress_for_session(
        self, session_id: int, session: Optional[Session] = None
    ) -> list[ProgressLog]:
        """Get all progress entries of a session in chronological order."""

        def _get(s: Session) -> list[ProgressLog]:
            stmt = (
                select(ProgressLog)
                .where(ProgressLog.session_id == session_id)
                .order_by(ProgressLog.progress_date, ProgressLog.id)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                logs = _get(s)
                for log in logs:
                    s.expunge(log)
                return logs

    def get_latest_progress(
        self, session_id: int, session: Optional[Session] = None
    ) -> Optional[ProgressLog]:
        """Get the most recently created entry of a session, regardless of its date."""

        def _get(s: Session) -> Optional[ProgressLog]:
            stmt = (
                select(ProgressLog)
                .where(ProgressLog.session_id == session_id)
                .order_by(ProgressLog.id.desc())
                .limit(1)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                log = _get(s)
                if log:
                    s.expunge(log)
                return log

    def get_previous_progress(
        self,
        session_id: int,
        before_date: str,
        exclude_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> Optional[ProgressLog]:
        """Get the latest entry of a session dated strictly before a day."""

        def _get(s: Session) -> Optional[ProgressLog]:
            stmt = select(ProgressLog).where(
                ProgressLog.session_id == session_id,
                ProgressLog.progress_date < before_date,
            )
            if exclude_id is not None:
                stmt = stmt.where(ProgressLog.id != exclude_id)
            stmt = stmt.order_by(ProgressLog.progress_date.desc(), ProgressLog.id.desc()).limit(1)
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                log = _get(s)
                if log:
                    s.expunge(log)
                return log

    def has_completion_entry(self, session_id: int, session: Optional[Session] = None) -> bool:
        """Check whether a session already has an entry at 100% or more."""

        def _check(s: Session) -> bool:
            stmt = (
                select(func.count())
                .select_from(ProgressLog)
                .where(
                    ProgressLog.session_id == session_id,
                    ProgressLog.current_percentage >= 100,
                )
            )
            return (s.execute(stmt).scalar() or 0) > 0

        if session:
            return _check(session)
        else:
            with self.get_session() as s:
                return _check(s)

    def delete_progress_log(self, progress_id: int, session: Optional[Session] = None) -> bool:
        """Delete a progress log entry."""

        def _delete(s: Session) -> bool:
            log = s.get(ProgressLog, progress_id)
            if not log:
                return False
            s.delete(log)
            s.flush()
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    def get_daily_page_totals(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        user_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> dict[str, int]:
        """Sum pages read per progress day across all sessions.

        Args:
            start_date: Inclusive lower bound (YYYY-MM-DD)
            end_date: Inclusive upper bound (YYYY-MM-DD)
            user_id: Restrict to one user; None means the default user

        Returns:
            Mapping of day string to total pages read that day
        """

        def _get(s: Session) -> dict[str, int]:
            stmt = select(
                ProgressLog.progress_date,
                func.coalesce(func.sum(ProgressLog.pages_read), 0),
            )
            if user_id is None:
                stmt = stmt.where(ProgressLog.user_id.is_(None))
            else:
                stmt = stmt.where(ProgressLog.user_id == user_id)
            if start_date:
                stmt = stmt.where(ProgressLog.progress_date >= start_date)
            if end_date:
                stmt = stmt.where(ProgressLog.progress_date <= end_date)
            stmt = stmt.group_by(ProgressLog.progress_date).order_by(ProgressLog.progress_date)
            return {day: int(total) for day, total in s.execute(stmt).all()}

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
