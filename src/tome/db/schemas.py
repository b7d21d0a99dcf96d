"""Pydantic schemas for data validation.

Input schemas validate request payloads before any storage access;
response schemas serialize ORM rows for callers.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..dates import parse_date_string


class SessionStatus(str, Enum):
    """Status of a reading session."""

    TO_READ = "to-read"
    READ_NEXT = "read-next"
    READING = "reading"
    READ = "read"
    DNF = "dnf"  # Did not finish


# Statuses that move a book "back" to the shelf
PRE_READING_STATUSES = (SessionStatus.TO_READ, SessionStatus.READ_NEXT)


def whole_number(value: object) -> Optional[int]:
    """Coerce an integral number to int, or return None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def validate_rating(value: object) -> Optional[int]:
    """Validate a 1-5 star rating.

    Raises:
        ValueError: If the rating is not a whole number in range
    """
    if value is None:
        return None
    rating = whole_number(value)
    if rating is None:
        raise ValueError("Rating must be a whole number between 1 and 5")
    if not 1 <= rating <= 5:
        raise ValueError("Rating must be between 1 and 5")
    return rating


# ============================================================================
# Progress Position
# ============================================================================


class PagePosition(BaseModel):
    """Reading position given as a page number."""

    kind: Literal["page"] = "page"
    page: int = Field(..., ge=0)


class PercentagePosition(BaseModel):
    """Reading position given as a percentage of the book."""

    kind: Literal["percentage"] = "percentage"
    percentage: float = Field(..., ge=0, le=100)


ProgressPosition = Annotated[
    Union[PagePosition, PercentagePosition], Field(discriminator="kind")
]


# ============================================================================
# Book Schemas
# ============================================================================


class BookCreate(BaseModel):
    """Schema for creating a book."""

    title: str = Field(..., min_length=1, description="Book title")
    author: Optional[str] = None
    total_pages: Optional[int] = Field(None, ge=1)
    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating 1-5")
    calibre_id: Optional[int] = None


class BookResponse(BaseModel):
    """Schema for book response."""

    id: int
    title: str
    author: Optional[str]
    total_pages: Optional[int]
    rating: Optional[int]
    calibre_id: Optional[int]

    model_config = {"from_attributes": True}


# ============================================================================
# Session Schemas
# ============================================================================


class StatusUpdate(BaseModel):
    """Schema for a status transition request."""

    status: SessionStatus
    rating: Optional[int] = None
    review: Optional[str] = None
    started_date: Optional[str] = None
    completed_date: Optional[str] = None

    @field_validator("rating", mode="before")
    @classmethod
    def check_rating(cls, v: object) -> Optional[int]:
        return validate_rating(v)

    @field_validator("started_date")
    @classmethod
    def check_started_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return parse_date_string(v, "started date")

    @field_validator("completed_date")
    @classmethod
    def check_completed_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return parse_date_string(v, "completed date")


class ReadingSessionResponse(BaseModel):
    """Schema for reading session response."""

    id: int
    book_id: int
    session_number: int
    status: SessionStatus
    is_active: bool
    started_date: Optional[str]
    completed_date: Optional[str]
    rating: Optional[int]
    review: Optional[str]

    model_config = {"from_attributes": True}


# ============================================================================
# Progress Schemas
# ============================================================================


class ProgressLogCreate(BaseModel):
    """Schema for logging progress.

    At least one of page or percentage is required. When both are given,
    the page is authoritative and the percentage is recomputed from it.
    """

    current_page: Optional[int] = Field(None, ge=0)
    current_percentage: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    progress_date: Optional[str] = None

    @field_validator("progress_date")
    @classmethod
    def check_progress_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return parse_date_string(v, "progress date")

    @model_validator(mode="after")
    def require_position(self) -> "ProgressLogCreate":
        if self.current_page is None and self.current_percentage is None:
            raise ValueError("Either currentPage or currentPercentage is required")
        return self

    def position(self) -> Union[PagePosition, PercentagePosition]:
        """The authoritative reading position of this entry."""
        if self.current_page is not None:
            return PagePosition(page=self.current_page)
        return PercentagePosition(percentage=self.current_percentage)


class ProgressLogUpdate(BaseModel):
    """Schema for editing a progress entry. Unset fields keep their value."""

    current_page: Optional[int] = Field(None, ge=0)
    current_percentage: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    progress_date: Optional[str] = None

    @field_validator("progress_date")
    @classmethod
    def check_progress_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return parse_date_string(v, "progress date")

    def position(self) -> Optional[Union[PagePosition, PercentagePosition]]:
        """The supplied reading position, if any."""
        if self.current_page is not None:
            return PagePosition(page=self.current_page)
        if self.current_percentage is not None:
            return PercentagePosition(percentage=self.current_percentage)
        return None


class ProgressLogResponse(BaseModel):
    """Schema for progress log response."""

    id: int
    book_id: int
    session_id: int
    current_page: int
    current_percentage: float
    pages_read: int
    progress_date: str
    notes: Optional[str]

    model_config = {"from_attributes": True}
