"""Tests for streak calculation and maintenance."""

import pytest
from sqlalchemy import select

from tome.config import reset_config
from tome.db.schemas import SessionStatus
from tome.errors import ValidationError
from tome.streaks.manager import StreakManager, calculate_streak_runs
from tome.streaks.models import Streak

TODAY = "2025-01-15"


@pytest.fixture
def log_pages(db, book):
    """Return a helper that records pages read on a day."""
    reading_session = db.create_reading_session(book.id, 1, SessionStatus.READING)

    def _log(day: str, pages: int) -> None:
        db.create_progress_log(book.id, reading_session.id, day, pages_read=pages)

    return _log


def set_streak_fields(db, **fields) -> None:
    with db.get_session() as session:
        streak = session.execute(select(Streak).where(Streak.user_id.is_(None))).scalar_one()
        for name, value in fields.items():
            setattr(streak, name, value)


class TestCalculateStreakRuns:
    """Tests for the run-length walk over qualifying days."""

    def test_empty(self):
        """Test no days means no runs."""
        runs = calculate_streak_runs([])

        assert runs.current == 0
        assert runs.longest == 0
        assert runs.current_start is None

    def test_single_run(self):
        """Test consecutive days form one run."""
        runs = calculate_streak_runs(["2025-01-01", "2025-01-02", "2025-01-03"])

        assert runs.current == 3
        assert runs.longest == 3
        assert runs.current_start == "2025-01-01"

    def test_gap_starts_new_run(self):
        """Test the final run and the longest run are tracked separately."""
        runs = calculate_streak_runs(
            ["2025-01-01", "2025-01-02", "2025-01-03", "2025-01-07", "2025-01-08"]
        )

        assert runs.current == 2
        assert runs.longest == 3
        assert runs.current_start == "2025-01-07"

    def test_month_boundary(self):
        """Test runs continue across months and leap days."""
        runs = calculate_streak_runs(["2024-02-28", "2024-02-29", "2024-03-01"])

        assert runs.current == 3


class TestStreakRow:
    """Tests for streak row creation and settings."""

    def test_created_zeroed(self, streaks):
        """Test first access creates a zeroed row anchored on today."""
        streak = streaks.get_or_create_streak()

        assert streak.current_streak == 0
        assert streak.longest_streak == 0
        assert streak.total_days_active == 0
        assert streak.daily_threshold == 1
        assert streak.user_timezone == "America/New_York"
        assert streak.streak_enabled is True
        assert streak.last_activity_date == TODAY
        assert streak.streak_start_date == TODAY

    def test_get_streak_missing(self, streaks):
        """Test lookup without creation."""
        assert streaks.get_streak() is None
        streaks.get_or_create_streak()
        assert streaks.get_streak() is not None

    def test_one_row_per_user(self, streaks, db):
        """Test repeated access reuses the row."""
        streaks.get_or_create_streak()
        streaks.get_or_create_streak()

        with db.get_session() as session:
            assert session.query(Streak).count() == 1

    def test_configured_defaults(self, db, clock, monkeypatch):
        """Test new rows take timezone and threshold from configuration."""
        monkeypatch.setenv("TOME_TIMEZONE", "Asia/Tokyo")
        monkeypatch.setenv("TOME_DAILY_THRESHOLD", "25")
        reset_config()

        streak = StreakManager(db, clock=clock).get_or_create_streak()

        assert streak.user_timezone == "Asia/Tokyo"
        assert streak.daily_threshold == 25
        # Noon in New York is already the next day in Tokyo
        assert streak.last_activity_date == "2025-01-16"

    def test_set_timezone(self, streaks):
        """Test changing the timezone."""
        streaks.set_timezone("Europe/London")

        assert streaks.get_timezone() == "Europe/London"

    def test_set_invalid_timezone(self, streaks):
        """Test unknown zone names are rejected."""
        with pytest.raises(ValidationError, match="Invalid timezone"):
            streaks.set_timezone("Mars/Olympus_Mons")

        assert streaks.get_timezone() == "America/New_York"

    def test_set_streak_enabled(self, streaks):
        """Test toggling streak tracking."""
        assert streaks.set_streak_enabled(False).streak_enabled is False
        assert streaks.get_or_create_streak().streak_enabled is False


class TestRebuild:
    """Tests for the full recomputation from history."""

    @pytest.fixture
    def history(self, log_pages):
        """Jan 1-3 and Jan 7-8 meet a threshold of 10; Jan 5 does not."""
        for day in ["2025-01-01", "2025-01-02", "2025-01-03", "2025-01-07", "2025-01-08"]:
            log_pages(day, 10)
        log_pages("2025-01-05", 9)

    def test_longest_and_current(self, streaks, history):
        """Test the runs on the day after the last activity."""
        streaks.update_threshold(None, 10)

        streak = streaks.rebuild_streak(current_date="2025-01-09")

        assert streak.longest_streak == 3
        assert streak.current_streak == 2
        assert streak.total_days_active == 5
        assert streak.last_activity_date == "2025-01-08"
        assert streak.streak_start_date == "2025-01-07"
        assert streak.last_checked_date == "2025-01-09"

    def test_current_on_activity_day(self, streaks, history):
        """Test the streak is alive on the last active day itself."""
        streaks.update_threshold(None, 10)

        assert streaks.rebuild_streak(current_date="2025-01-08").current_streak == 2

    def test_stale_streak(self, streaks, history):
        """Test a gap of two or more days zeroes the current streak."""
        streaks.update_threshold(None, 10)

        streak = streaks.rebuild_streak(current_date="2025-01-11")

        assert streak.current_streak == 0
        assert streak.longest_streak == 3
        assert streak.streak_start_date == "2025-01-11"
        assert streak.last_activity_date == "2025-01-08"

    def test_idempotent(self, streaks, history):
        """Test rebuilding twice yields the same row."""
        first = streaks.rebuild_streak(current_date="2025-01-09")
        second = streaks.rebuild_streak(current_date="2025-01-09")

        for field in (
            "current_streak",
            "longest_streak",
            "total_days_active",
            "last_activity_date",
            "streak_start_date",
        ):
            assert getattr(first, field) == getattr(second, field)

    def test_threshold_changes_history(self, streaks, history):
        """Test lowering the threshold qualifies the Jan 5 gap day."""
        streaks.update_threshold(None, 9)

        streak = streaks.rebuild_streak(current_date="2025-01-09")

        assert streak.total_days_active == 6
        assert streak.longest_streak == 3
        assert streak.current_streak == 2

    def test_threshold_above_everything(self, streaks, history):
        """Test a threshold nothing meets clears the streak."""
        streak = streaks.update_threshold(None, 11)

        assert streak.current_streak == 0
        assert streak.longest_streak == 0
        assert streak.total_days_active == 0
        assert streak.last_activity_date == TODAY
        assert streak.streak_start_date == TODAY

    def test_pages_summed_per_day(self, streaks, log_pages):
        """Test several entries on one day add up toward the threshold."""
        log_pages("2025-01-14", 6)
        log_pages("2025-01-14", 6)
        streaks.update_threshold(None, 10)

        streak = streaks.rebuild_streak()

        assert streak.current_streak == 1
        assert streak.last_activity_date == "2025-01-14"

    def test_no_history(self, streaks):
        """Test rebuilding with no progress at all."""
        streak = streaks.rebuild_streak()

        assert streak.current_streak == 0
        assert streak.total_days_active == 0
        assert streak.last_checked_date == TODAY

    def test_other_user_isolated(self, streaks, history):
        """Test a separate user's streak ignores default-user progress."""
        streak = streaks.rebuild_streak(user_id=7)

        assert streak.total_days_active == 0

    def test_invalid_current_date(self, streaks):
        """Test the override day must be a real date."""
        with pytest.raises(ValidationError, match="Invalid current date format"):
            streaks.rebuild_streak(current_date="2025-13-01")


class TestUpdateThreshold:
    """Tests for threshold validation."""

    @pytest.mark.parametrize(
        "value,message",
        [
            (0, "Daily threshold must be between 1 and 9999"),
            (10000, "Daily threshold must be between 1 and 9999"),
            (-5, "Daily threshold must be between 1 and 9999"),
            (2.5, "Daily threshold must be an integer"),
            ("10", "Daily threshold must be an integer"),
            (True, "Daily threshold must be an integer"),
        ],
    )
    def test_invalid(self, streaks, value, message):
        """Test out-of-range and non-integer thresholds leave the row alone."""
        with pytest.raises(ValidationError, match=message):
            streaks.update_threshold(None, value)

        assert streaks.get_or_create_streak().daily_threshold == 1

    def test_bounds_inclusive(self, streaks):
        """Test 1 and 9999 are accepted."""
        assert streaks.update_threshold(None, 9999).daily_threshold == 9999
        assert streaks.update_threshold(None, 1).daily_threshold == 1

    def test_integral_float_accepted(self, streaks):
        """Test 5.0 is treated as 5."""
        assert streaks.update_threshold(None, 5.0).daily_threshold == 5


class TestIncrementalUpdate:
    """Tests for today-only streak updates."""

    def test_first_activity_creates_streak(self, streaks, log_pages):
        """Test the first qualifying day seeds a one-day streak."""
        log_pages(TODAY, 5)

        streak = streaks.update_streaks()

        assert streak.current_streak == 1
        assert streak.longest_streak == 1
        assert streak.total_days_active == 1

    def test_first_call_without_activity(self, streaks):
        """Test a new row stays zeroed without activity."""
        streak = streaks.update_streaks()

        assert streak.current_streak == 0

    def test_consecutive_day_extends(self, streaks, log_pages):
        """Test activity the day after the last active day."""
        streaks.get_or_create_streak()
        set_streak_fields(
            streaks.db,
            current_streak=3,
            longest_streak=3,
            total_days_active=3,
            last_activity_date="2025-01-14",
        )
        log_pages(TODAY, 5)

        streak = streaks.update_streaks()

        assert streak.current_streak == 4
        assert streak.longest_streak == 4
        assert streak.total_days_active == 4
        assert streak.last_activity_date == TODAY

    def test_gap_restarts(self, streaks, log_pages):
        """Test activity after a gap starts over at one."""
        streaks.get_or_create_streak()
        set_streak_fields(
            streaks.db,
            current_streak=5,
            longest_streak=5,
            total_days_active=5,
            last_activity_date="2025-01-10",
        )
        log_pages(TODAY, 5)

        streak = streaks.update_streaks()

        assert streak.current_streak == 1
        assert streak.longest_streak == 5
        assert streak.streak_start_date == TODAY
        assert streak.total_days_active == 6

    def test_same_day_start(self, streaks, log_pages):
        """Test the threshold being met later on the anchor day."""
        streaks.get_or_create_streak()
        log_pages(TODAY, 5)

        streak = streaks.update_streaks()

        assert streak.current_streak == 1
        assert streak.total_days_active == 1
        assert streak.streak_start_date == TODAY

    def test_same_day_threshold_raised(self, streaks, log_pages):
        """Test raising the threshold above today's pages resets today."""
        log_pages(TODAY, 5)
        streaks.update_streaks()
        set_streak_fields(streaks.db, daily_threshold=10)

        streak = streaks.update_streaks()

        assert streak.current_streak == 0

    def test_below_threshold_no_change(self, streaks, log_pages):
        """Test a short reading day leaves the streak as it was."""
        streaks.get_or_create_streak()
        set_streak_fields(
            streaks.db,
            current_streak=2,
            longest_streak=2,
            daily_threshold=10,
            last_activity_date="2025-01-14",
        )
        log_pages(TODAY, 3)

        streak = streaks.update_streaks()

        assert streak.current_streak == 2
        assert streak.last_activity_date == "2025-01-14"


class TestCheckAndReset:
    """Tests for the once-per-day staleness check."""

    def test_resets_stale_streak_once(self, streaks):
        """Test a broken streak is zeroed and the day recorded."""
        streaks.get_or_create_streak()
        set_streak_fields(streaks.db, current_streak=4, last_activity_date="2025-01-10")

        assert streaks.check_and_reset_streak_if_needed() is True
        assert streaks.get_or_create_streak().current_streak == 0
        assert streaks.get_or_create_streak().last_checked_date == TODAY
        assert streaks.check_and_reset_streak_if_needed() is False

    def test_recent_streak_kept(self, streaks):
        """Test yesterday's activity keeps the streak alive."""
        streaks.get_or_create_streak()
        set_streak_fields(streaks.db, current_streak=4, last_activity_date="2025-01-14")

        assert streaks.check_and_reset_streak_if_needed() is False
        assert streaks.get_or_create_streak().current_streak == 4

    def test_already_checked_today(self, streaks):
        """Test nothing happens once today was checked."""
        streaks.get_or_create_streak()
        set_streak_fields(
            streaks.db,
            current_streak=4,
            last_activity_date="2025-01-10",
            last_checked_date=TODAY,
        )

        assert streaks.check_and_reset_streak_if_needed() is False
        assert streaks.get_or_create_streak().current_streak == 4


class TestDailyTotals:
    """Tests for the per-day activity report."""

    def test_totals_flag_qualifying_days(self, streaks, log_pages):
        """Test each active day is reported with its qualification."""
        log_pages("2025-01-01", 5)
        log_pages("2025-01-02", 12)
        log_pages("2025-01-02", 3)
        streaks.update_threshold(None, 10)

        totals = streaks.get_daily_totals()

        assert [(d.date, d.pages_read, d.qualifies) for d in totals] == [
            ("2025-01-01", 5, False),
            ("2025-01-02", 15, True),
        ]

    def test_range(self, streaks, log_pages):
        """Test the inclusive date range."""
        log_pages("2025-01-01", 5)
        log_pages("2025-01-05", 5)
        log_pages("2025-01-09", 5)

        totals = streaks.get_daily_totals("2025-01-05", "2025-01-09")

        assert [d.date for d in totals] == ["2025-01-05", "2025-01-09"]

    def test_invalid_range(self, streaks):
        """Test range bounds are validated."""
        with pytest.raises(ValidationError, match="Invalid start date format"):
            streaks.get_daily_totals("01/05/2025")
