"""Configuration management for tome.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .dates import DEFAULT_TIMEZONE, validate_timezone

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Streak defaults for a newly created streak row
    default_timezone: str
    default_daily_threshold: int

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "TOME_DB_PATH",
            str(Path.home() / ".tome" / "tome.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            default_timezone=os.environ.get("TOME_TIMEZONE", DEFAULT_TIMEZONE),
            default_daily_threshold=int(os.environ.get("TOME_DAILY_THRESHOLD", "1")),
            log_level=os.environ.get("TOME_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if not validate_timezone(self.default_timezone):
            errors.append(f"Invalid timezone: {self.default_timezone}")

        if not 1 <= self.default_daily_threshold <= 9999:
            errors.append("Daily threshold must be between 1 and 9999")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
