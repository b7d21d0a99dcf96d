"""SQLAlchemy models for reading streaks.

Tables:
- streaks: One row per user (the default user has a NULL user_id)
"""

from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..dates import DEFAULT_TIMEZONE
from ..db.models import Base, utc_now


class Streak(Base):
    """Streak model - derived reading streak state for a user."""

    __tablename__ = "streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)

    # Derived counters
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_days_active: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Settings
    daily_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    user_timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_TIMEZONE
    )
    streak_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Calendar days (YYYY-MM-DD) in the user's timezone
    last_activity_date: Mapped[Optional[str]] = mapped_column(String(10))
    streak_start_date: Mapped[Optional[str]] = mapped_column(String(10))
    last_checked_date: Mapped[Optional[str]] = mapped_column(String(10))

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return (
            f"<Streak(user_id={self.user_id}, current={self.current_streak}, "
            f"longest={self.longest_streak})>"
        )


# NULL never equals NULL in a plain unique index, so the default user is
# folded to -1 to keep a single row for it as well.
Index("uq_streaks_user", func.coalesce(Streak.__table__.c.user_id, -1), unique=True)
