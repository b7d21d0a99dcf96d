"""Pytest configuration and shared fixtures.

This module provides fixtures for testing tome, including a temporary
database, a fixed clock, and books in common reading states.
"""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

from tome.config import reset_config
from tome.db.models import Book
from tome.db.schemas import BookCreate, SessionStatus
from tome.db.sqlite import Database, reset_db
from tome.reading.progress import ProgressTracker
from tome.reading.session import SessionManager
from tome.streaks.manager import StreakManager

# Noon in New York on 2025-01-15
NOW = datetime(2025, 1, 15, 17, 0, tzinfo=timezone.utc)
TODAY = "2025-01-15"


def fixed_clock(instant: datetime = NOW) -> Callable[[], datetime]:
    """A clock that always returns the same instant."""
    return lambda: instant


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate tests from TOME_* settings in the environment or a .env file."""
    for name in list(os.environ):
        if name.startswith("TOME_"):
            monkeypatch.delenv(name)
    reset_config()
    reset_db()
    yield
    reset_config()
    reset_db()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    database = Database(str(temp_db_path))
    database.create_tables()
    yield database
    database.engine.dispose()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed clock at noon New York time on 2025-01-15."""
    return fixed_clock()


@pytest.fixture
def streaks(db: Database, clock) -> StreakManager:
    """StreakManager on the test database."""
    return StreakManager(db, clock=clock)


@pytest.fixture
def tracker(db: Database, streaks: StreakManager, clock) -> ProgressTracker:
    """ProgressTracker on the test database."""
    return ProgressTracker(db, streaks=streaks, clock=clock)


@pytest.fixture
def sessions(db: Database, streaks: StreakManager, clock) -> SessionManager:
    """SessionManager on the test database."""
    return SessionManager(db, streaks=streaks, clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def book(db: Database) -> Book:
    """A 300 page book with no sessions."""
    return db.create_book(BookCreate(title="Dune", author="Frank Herbert", total_pages=300))


@pytest.fixture
def book_without_pages(db: Database) -> Book:
    """A book whose page count is unknown."""
    return db.create_book(BookCreate(title="Unknown Length", author="Anonymous"))


@pytest.fixture
def reading_book(db: Database, book: Book) -> Book:
    """The 300 page book with an active 'reading' session."""
    db.create_reading_session(
        book.id, session_number=1, status=SessionStatus.READING, started_date="2025-01-01"
    )
    return book
