"""Pydantic schemas for reading streaks."""

from typing import Optional

from pydantic import BaseModel, field_validator

from ..db.schemas import whole_number


def validate_threshold(value: object) -> int:
    """Validate a daily page threshold.

    Raises:
        ValueError: If the threshold is not an integer in 1-9999
    """
    threshold = whole_number(value)
    if threshold is None:
        raise ValueError("Daily threshold must be an integer")
    if not 1 <= threshold <= 9999:
        raise ValueError("Daily threshold must be between 1 and 9999")
    return threshold


class ThresholdUpdate(BaseModel):
    """Schema for changing the daily page threshold."""

    daily_threshold: int

    @field_validator("daily_threshold", mode="before")
    @classmethod
    def check_threshold(cls, v: object) -> int:
        return validate_threshold(v)


class StreakResponse(BaseModel):
    """Schema for streak response."""

    current_streak: int
    longest_streak: int
    total_days_active: int
    daily_threshold: int
    user_timezone: str
    streak_enabled: bool
    last_activity_date: Optional[str]
    streak_start_date: Optional[str]
    last_checked_date: Optional[str]

    model_config = {"from_attributes": True}


class DailyActivity(BaseModel):
    """Pages read on one calendar day."""

    date: str
    pages_read: int
    qualifies: bool
