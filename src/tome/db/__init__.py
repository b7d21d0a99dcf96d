"""Database module for local SQLite storage."""

from .models import Book, ProgressLog, ReadingSession
from .schemas import BookCreate, BookResponse, SessionStatus
from .sqlite import Database, get_db

__all__ = [
    "Book",
    "ProgressLog",
    "ReadingSession",
    "BookCreate",
    "BookResponse",
    "SessionStatus",
    "Database",
    "get_db",
]
