"""Streak manager for daily reading streaks.

A day counts toward the streak when the pages read across all progress
entries dated that day reach the daily threshold. Days are the
``progress_date`` strings of the entries, already normalized to the
user's timezone when they were logged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_config
from ..dates import days_between, get_zone, parse_date_string, today_in_timezone
from ..db.sqlite import Database, get_db
from ..errors import ValidationError
from .models import Streak
from .schemas import DailyActivity, validate_threshold

logger = logging.getLogger(__name__)


@dataclass
class StreakRuns:
    """Consecutive-day runs found in a sorted list of qualifying days."""

    current: int = 0
    longest: int = 0
    current_start: Optional[str] = None


def calculate_streak_runs(days: list[str]) -> StreakRuns:
    """Walk sorted qualifying days and measure consecutive runs.

    Args:
        days: Qualifying ``YYYY-MM-DD`` strings in ascending order

    Returns:
        Length of the final run, the longest run, and the final run's first day
    """
    runs = StreakRuns()
    previous: Optional[str] = None
    for day in days:
        if previous is not None and days_between(previous, day) == 1:
            runs.current += 1
        else:
            runs.current = 1
            runs.current_start = day
        runs.longest = max(runs.longest, runs.current)
        previous = day
    return runs


class StreakManager:
    """Maintains the streak row derived from the progress history."""

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize streak manager.

        Args:
            db: Database instance
            clock: Returns the current instant; defaults to the system UTC clock
        """
        self.db = db or get_db()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Streak Row Access
    # -------------------------------------------------------------------------

    def _find(self, s: Session, user_id: Optional[int]) -> Optional[Streak]:
        stmt = select(Streak)
        if user_id is None:
            stmt = stmt.where(Streak.user_id.is_(None))
        else:
            stmt = stmt.where(Streak.user_id == user_id)
        return s.execute(stmt).scalar_one_or_none()

    def _get_or_create(self, s: Session, user_id: Optional[int]) -> Streak:
        streak = self._find(s, user_id)
        if streak is not None:
            return streak

        config = get_config()
        tz = config.default_timezone
        today = today_in_timezone(tz, self.clock())
        streak = Streak(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            total_days_active=0,
            daily_threshold=config.default_daily_threshold,
            user_timezone=tz,
            streak_enabled=True,
            last_activity_date=today,
            streak_start_date=today,
        )
        s.add(streak)
        s.flush()
        logger.info("Created streak row for user %s", user_id)
        return streak

    def _today(self, streak: Streak, current_date: Optional[str] = None) -> str:
        if current_date is not None:
            return parse_date_string(current_date, "current date")
        return today_in_timezone(streak.user_timezone, self.clock())

    def get_streak(self, user_id: Optional[int] = None) -> Optional[Streak]:
        """Get the streak row for a user, if one exists."""
        with self.db.get_session() as session:
            streak = self._find(session, user_id)
            if streak:
                session.expunge(streak)
            return streak

    def get_or_create_streak(self, user_id: Optional[int] = None) -> Streak:
        """Get the streak row for a user, creating a zeroed one on first access."""
        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            session.expunge(streak)
            return streak

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_timezone(self, user_id: Optional[int] = None) -> str:
        """Get the user's configured IANA timezone."""
        return self.get_or_create_streak(user_id).user_timezone

    def set_timezone(self, tz: str, user_id: Optional[int] = None) -> Streak:
        """Change the user's timezone and recompute the streak.

        Raises:
            ValidationError: If the timezone name is unknown
        """
        get_zone(tz)
        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            streak.user_timezone = tz
        logger.info("Timezone for user %s set to %s", user_id, tz)
        return self.rebuild_streak(user_id)

    def set_streak_enabled(self, enabled: bool, user_id: Optional[int] = None) -> Streak:
        """Turn streak tracking on or off for a user."""
        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            streak.streak_enabled = enabled
            session.flush()
            session.expunge(streak)
            return streak

    def update_threshold(self, user_id: Optional[int], new_threshold: object) -> Streak:
        """Change the daily page threshold and rebuild from history.

        A threshold change can qualify or disqualify any past day, so the
        streak is always fully rebuilt.

        Args:
            user_id: User whose threshold changes (None for the default user)
            new_threshold: Pages per day, an integer in 1-9999

        Returns:
            The rebuilt streak

        Raises:
            ValidationError: If the threshold is not an integer in range
        """
        try:
            threshold = validate_threshold(new_threshold)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            previous = streak.daily_threshold
            streak.daily_threshold = threshold
        logger.info("Daily threshold for user %s changed %s -> %s", user_id, previous, threshold)
        return self.rebuild_streak(user_id)

    # -------------------------------------------------------------------------
    # Computation
    # -------------------------------------------------------------------------

    def update_streaks(self, user_id: Optional[int] = None) -> Streak:
        """Apply today's activity to the streak incrementally.

        Only today's summed pages are considered; history is not reread.

        Returns:
            The updated streak
        """
        with self.db.get_session() as session:
            existing = self._find(session, user_id)
            streak = existing or self._get_or_create(session, user_id)
            today = self._today(streak)
            pages_today = self.db.get_daily_page_totals(
                today, today, user_id=user_id, session=session
            ).get(today, 0)
            threshold_met = pages_today >= streak.daily_threshold

            if existing is None:
                if threshold_met:
                    streak.current_streak = 1
                    streak.longest_streak = 1
                    streak.total_days_active = 1
                logger.debug("New streak for user %s seeded with %s", user_id, streak.current_streak)
            else:
                self._apply_day(streak, today, threshold_met)

            session.flush()
            session.expunge(streak)
            return streak

    def _apply_day(self, streak: Streak, today: str, threshold_met: bool) -> None:
        last = streak.last_activity_date
        days_diff = days_between(last, today) if last else None

        if days_diff == 0:
            if streak.current_streak == 0 and threshold_met:
                streak.current_streak = 1
                streak.longest_streak = max(streak.longest_streak, 1)
                streak.total_days_active += 1
                streak.streak_start_date = today
                logger.debug("Streak started on %s", today)
            elif streak.current_streak > 0 and not threshold_met:
                # Threshold raised mid-day; total_days_active is corrected on rebuild
                streak.current_streak = 0
                logger.debug("Streak reset on %s, threshold no longer met", today)
            return

        if not threshold_met:
            return

        if days_diff == 1:
            streak.current_streak += 1
            streak.total_days_active += 1
        elif days_diff is None or days_diff > 1:
            streak.current_streak = 1
            streak.streak_start_date = today
            streak.total_days_active += 1
        else:
            # Activity dated before the last recorded day; leave to rebuild
            return

        streak.longest_streak = max(streak.longest_streak, streak.current_streak)
        streak.last_activity_date = today
        logger.debug("Streak for %s is now %s", today, streak.current_streak)

    def rebuild_streak(
        self, user_id: Optional[int] = None, current_date: Optional[str] = None
    ) -> Streak:
        """Recompute the streak from the full progress history.

        Args:
            user_id: User to rebuild (None for the default user)
            current_date: Override for "today" (YYYY-MM-DD) in the user's timezone

        Returns:
            The rebuilt streak
        """
        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            today = self._today(streak, current_date)
            totals = self.db.get_daily_page_totals(user_id=user_id, session=session)

            qualifying = sorted(
                day for day, pages in totals.items() if pages >= streak.daily_threshold
            )
            runs = calculate_streak_runs(qualifying)

            if qualifying:
                last_day = qualifying[-1]
                current = runs.current
                start = runs.current_start
                if days_between(last_day, today) > 1:
                    current = 0
                    start = today
                streak.current_streak = current
                streak.longest_streak = runs.longest
                streak.total_days_active = len(qualifying)
                streak.last_activity_date = last_day
                streak.streak_start_date = start
            else:
                streak.current_streak = 0
                streak.longest_streak = 0
                streak.total_days_active = 0
                streak.last_activity_date = today
                streak.streak_start_date = today

            streak.last_checked_date = today
            session.flush()
            logger.info(
                "Rebuilt streak for user %s: current=%s longest=%s active_days=%s",
                user_id,
                streak.current_streak,
                streak.longest_streak,
                streak.total_days_active,
            )
            session.expunge(streak)
            return streak

    def check_and_reset_streak_if_needed(
        self, user_id: Optional[int] = None, current_date: Optional[str] = None
    ) -> bool:
        """Zero a stale streak, at most once per day.

        Cheap enough to call on every read: once a day has been checked,
        later calls on the same day do nothing.

        Returns:
            True if the streak was reset
        """
        with self.db.get_session() as session:
            streak = self._get_or_create(session, user_id)
            today = self._today(streak, current_date)
            if streak.last_checked_date == today:
                return False

            reset = False
            if (
                streak.current_streak > 0
                and streak.last_activity_date
                and days_between(streak.last_activity_date, today) > 1
            ):
                logger.info(
                    "Streak of %s for user %s broken, last activity %s",
                    streak.current_streak,
                    user_id,
                    streak.last_activity_date,
                )
                streak.current_streak = 0
                reset = True

            streak.last_checked_date = today
            return reset

    def notify_progress_changed(self, user_id: Optional[int] = None) -> Streak:
        """Hook called after any progress or session mutation."""
        return self.rebuild_streak(user_id)

    # -------------------------------------------------------------------------
    # Activity
    # -------------------------------------------------------------------------

    def get_daily_totals(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> list[DailyActivity]:
        """Pages read per day in a date range, flagged by whether the day qualifies.

        Args:
            start_date: Inclusive first day (YYYY-MM-DD)
            end_date: Inclusive last day (YYYY-MM-DD)
            user_id: User to report on

        Returns:
            One entry per day with activity, in date order
        """
        if start_date is not None:
            parse_date_string(start_date, "start date")
        if end_date is not None:
            parse_date_string(end_date, "end date")

        threshold = self.get_or_create_streak(user_id).daily_threshold
        totals = self.db.get_daily_page_totals(start_date, end_date, user_id=user_id)
        return [
            DailyActivity(date=day, pages_read=pages, qualifies=pages >= threshold)
            for day, pages in totals.items()
        ]
