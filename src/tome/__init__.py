"""Reading session, progress timeline and streak tracking."""

__version__ = "0.1.0"
