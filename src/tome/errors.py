"""Exceptions raised by the tracking services.

Every exception carries the human-readable message that callers show
verbatim to the user. The classes map onto response categories:

- ValidationError: malformed input, rejected before storage access (400)
- NotFoundError: book, session or progress entry absent (404)
- StateConflictError: the request is well formed but the current state
  forbids it (400/409), optionally with the conflicting progress entry
"""

from dataclasses import dataclass
from typing import Literal, Optional

import pydantic


@dataclass(frozen=True)
class ConflictingEntry:
    """A progress entry that blocks a candidate entry on the timeline."""

    id: int
    date: str
    progress: float
    type: Literal["before", "after"]

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "date": self.date,
            "progress": self.progress,
            "type": self.type,
        }


class TomeError(Exception):
    """Base class for tracking errors."""

    pass


class ValidationError(TomeError, ValueError):
    """Input failed validation."""

    pass


class NotFoundError(TomeError, LookupError):
    """A requested record does not exist."""

    pass


class StateConflictError(TomeError):
    """The operation is not allowed in the current state."""

    def __init__(self, message: str, conflicting_entry: Optional[ConflictingEntry] = None):
        super().__init__(message)
        self.conflicting_entry = conflicting_entry


class TimelineConflictError(StateConflictError):
    """A progress value breaks the session's chronological ordering."""

    pass


def first_error_message(exc: pydantic.ValidationError) -> str:
    """Extract the first readable message from a pydantic error.

    Messages raised from our own validators are returned without the
    "Value error, " prefix pydantic adds.
    """
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    ctx = err.get("ctx") or {}
    if isinstance(ctx.get("error"), Exception):
        return str(ctx["error"])
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]
