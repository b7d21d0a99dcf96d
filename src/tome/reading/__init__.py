"""Reading session lifecycle, progress logging and timeline validation."""

from .progress import (
    ProgressLogResult,
    ProgressTracker,
    calculate_page_from_percentage,
    calculate_percentage,
)
from .session import SessionManager, StatusUpdateResult
from .validation import ProgressValidationResult, TimelineValidator, check_timeline

__all__ = [
    "ProgressLogResult",
    "ProgressTracker",
    "calculate_page_from_percentage",
    "calculate_percentage",
    "SessionManager",
    "StatusUpdateResult",
    "ProgressValidationResult",
    "TimelineValidator",
    "check_timeline",
]
