"""Tests for pydantic schemas."""

import pydantic
import pytest

from tome.db.schemas import (
    BookCreate,
    PagePosition,
    PercentagePosition,
    ProgressLogCreate,
    ProgressLogUpdate,
    SessionStatus,
    StatusUpdate,
    validate_rating,
)
from tome.errors import first_error_message
from tome.streaks.schemas import ThresholdUpdate


class TestProgressLogCreate:
    """Tests for progress input validation."""

    def test_requires_page_or_percentage(self):
        """Test that an entry without a position is rejected."""
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ProgressLogCreate(notes="nothing")

        assert (
            first_error_message(exc_info.value)
            == "Either currentPage or currentPercentage is required"
        )

    def test_page_position(self):
        """Test the page variant of the position union."""
        assert ProgressLogCreate(current_page=42).position() == PagePosition(page=42)

    def test_percentage_position(self):
        """Test the percentage variant of the position union."""
        position = ProgressLogCreate(current_percentage=12.5).position()
        assert position == PercentagePosition(percentage=12.5)

    def test_page_wins_when_both_given(self):
        """Test that the page is authoritative when both are supplied."""
        position = ProgressLogCreate(current_page=42, current_percentage=99).position()
        assert isinstance(position, PagePosition)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"current_page": -1},
            {"current_percentage": -0.5},
            {"current_percentage": 100.5},
        ],
    )
    def test_out_of_range(self, kwargs):
        """Test negative pages and percentages above 100 are rejected."""
        with pytest.raises(pydantic.ValidationError):
            ProgressLogCreate(**kwargs)

    def test_progress_date_validated(self):
        """Test that the progress date must be a real YYYY-MM-DD day."""
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ProgressLogCreate(current_page=1, progress_date="2025-02-30")

        assert "valid calendar date" in first_error_message(exc_info.value)

    def test_update_allows_empty(self):
        """Test that an edit may change nothing but notes."""
        update = ProgressLogUpdate(notes="typo fix")
        assert update.position() is None


class TestStatusUpdate:
    """Tests for status transition input."""

    def test_status_values(self):
        """Test statuses parse from their hyphenated values."""
        assert StatusUpdate(status="read-next").status == SessionStatus.READ_NEXT
        assert StatusUpdate(status="dnf").status == SessionStatus.DNF

    def test_unknown_status(self):
        """Test unknown statuses are rejected."""
        with pytest.raises(pydantic.ValidationError):
            StatusUpdate(status="finished")

    @pytest.mark.parametrize("value,expected", [(1, 1), (5, 5), (4.0, 4), (None, None)])
    def test_valid_ratings(self, value, expected):
        """Test whole-number ratings in range."""
        assert validate_rating(value) == expected

    @pytest.mark.parametrize("value", [4.5, "4", True])
    def test_non_integer_rating(self, value):
        """Test fractional and non-numeric ratings."""
        with pytest.raises(ValueError, match="Rating must be a whole number between 1 and 5"):
            validate_rating(value)

    @pytest.mark.parametrize("value", [0, 6, -1])
    def test_rating_out_of_range(self, value):
        """Test ratings outside 1-5."""
        with pytest.raises(ValueError, match="Rating must be between 1 and 5"):
            validate_rating(value)

    def test_completed_date_message(self):
        """Test the completed date error names the field."""
        with pytest.raises(pydantic.ValidationError) as exc_info:
            StatusUpdate(status="read", completed_date="2025/01/10")

        assert "Invalid completed date format" in first_error_message(exc_info.value)


class TestThresholdUpdate:
    """Tests for daily threshold input."""

    def test_valid(self):
        """Test the bounds are inclusive."""
        assert ThresholdUpdate(daily_threshold=1).daily_threshold == 1
        assert ThresholdUpdate(daily_threshold=9999).daily_threshold == 9999

    @pytest.mark.parametrize(
        "value,message",
        [
            (0, "Daily threshold must be between 1 and 9999"),
            (10000, "Daily threshold must be between 1 and 9999"),
            (2.5, "Daily threshold must be an integer"),
            ("10", "Daily threshold must be an integer"),
        ],
    )
    def test_invalid(self, value, message):
        """Test out-of-range and non-integer thresholds."""
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ThresholdUpdate(daily_threshold=value)

        assert first_error_message(exc_info.value) == message


class TestBookCreate:
    """Tests for book input."""

    def test_minimal(self):
        """Test only a title is required."""
        book = BookCreate(title="Dune")
        assert book.total_pages is None

    def test_rejects_zero_pages(self):
        """Test page counts must be positive."""
        with pytest.raises(pydantic.ValidationError):
            BookCreate(title="Dune", total_pages=0)
