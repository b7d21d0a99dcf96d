"""Reading streaks module."""

from .manager import StreakManager, calculate_streak_runs
from .models import Streak
from .schemas import DailyActivity, StreakResponse, ThresholdUpdate

__all__ = [
    "StreakManager",
    "calculate_streak_runs",
    "Streak",
    "DailyActivity",
    "StreakResponse",
    "ThresholdUpdate",
]
