"""Data models for NoteGraph."""

import datetime
from datetime import timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Characters that may never appear in a note title
TITLE_LINE_BREAKS = ("\n", "\r")


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite does not keep timezone information, so every datetime read back
    from the database is naive and is assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


class Note(BaseModel):
    """A short text note.

    ``id`` is None until the note has been stored. Titles are unique among
    non-deleted notes; that rule is enforced by the store, not by the model.
    """

    id: Optional[int] = Field(default=None, description="Store-assigned note ID")
    title: str = Field(..., description="Title of the note")
    content: str = Field(default="", description="Content of the note")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )
    deleted: bool = Field(default=False, description="Soft-delete tombstone")

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class Link(BaseModel):
    """A directed edge between two notes."""

    id: Optional[int] = Field(default=None, description="Store-assigned link ID")
    source_id: int = Field(..., description="ID of the source note")
    target_id: int = Field(..., description="ID of the target note")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the link was created (UTC)"
    )

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "frozen": True,  # Links are immutable
    }

    @model_validator(mode="after")
    def _reject_self_loop(self) -> "Link":
        if self.source_id == self.target_id:
            raise ValueError("A note cannot link to itself")
        return self
