"""SQLAlchemy ORM models for local SQLite database.

Tables:
- books: Book records (owned by the library import, read by the tracker)
- reading_sessions: One row per reading attempt of a book
- progress_logs: Dated reading positions within a session
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import SessionStatus


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> str:
    """Current UTC timestamp as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


class Book(Base):
    """Book model - the parts of a book the tracker reads and writes."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[Optional[str]] = mapped_column(String(500))
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    calibre_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    # Relationships
    sessions: Mapped[list["ReadingSession"]] = relationship(
        "ReadingSession", back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}')>"


class ReadingSession(Base):
    """Reading session model - one attempt at reading a book.

    At most one session per book is active; the partial unique index
    enforces it in the database.
    """

    __tablename__ = "reading_sessions"
    __table_args__ = (
        UniqueConstraint("book_id", "session_number", name="uq_reading_sessions_book_number"),
        Index(
            "uq_reading_sessions_one_active",
            "book_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SessionStatus.TO_READ.value, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    started_date: Mapped[Optional[str]] = mapped_column(String(10))  # YYYY-MM-DD
    completed_date: Mapped[Optional[str]] = mapped_column(String(10))  # YYYY-MM-DD
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    review: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    # Relationships
    book: Mapped["Book"] = relationship("Book", back_populates="sessions")
    progress_logs: Mapped[list["ProgressLog"]] = relationship(
        "ProgressLog",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ReadingSession(id={self.id}, book_id={self.book_id}, "
            f"number={self.session_number}, status={self.status}, active={self.is_active})>"
        )


class ProgressLog(Base):
    """Progress log model - a dated reading position within a session."""

    __tablename__ = "progress_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reading_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pages_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)

    # Relationships
    session: Mapped["ReadingSession"] = relationship(
        "ReadingSession", back_populates="progress_logs"
    )

    def __repr__(self) -> str:
        return (
            f"<ProgressLog(id={self.id}, session_id={self.session_id}, "
            f"date={self.progress_date}, page={self.current_page})>"
        )
