"""
Feedback Models
===============

Feedback table (raw text + AI analysis stored as one JSON document),
the FeedbackAnalysis value object, and the request/response schemas
used by the feedback API.
"""

import re
from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field as SQLField, SQLModel

from app.config import settings

Sentiment = Literal["positive", "neutral", "negative"]
Priority = Literal["P0", "P1", "P2", "P3"]

SENTIMENTS: tuple = get_args(Sentiment)
PRIORITIES: tuple = get_args(Priority)

MAX_FEEDBACK_LENGTH = 10_000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class FeedbackAnalysis(BaseModel):
    """Structured AI analysis of one piece of feedback. Immutable."""

    model_config = {"frozen": True, "strict": True, "populate_by_name": True}

    summary: str = Field(..., min_length=1, description="One-sentence, PII-free summary")
    sentiment: Sentiment
    tags: Tuple[str, ...] = ()
    priority: Priority
    next_action: str = Field(..., min_length=1, alias="nextAction")

    @field_validator("tags", mode="before")
    @classmethod
    def _freeze_tags(cls, value):
        # JSON documents carry arrays; the stored value is immutable
        return tuple(value) if isinstance(value, list) else value

    @field_validator("summary", "next_action")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_document(self) -> dict:
        """JSON document stored in the ``analysis`` column."""
        return self.model_dump(mode="json", by_alias=True)


class Feedback(SQLModel, table=True):
    __tablename__ = "feedback"

    id: Optional[int] = SQLField(default=None, primary_key=True)
    text: str = SQLField(max_length=MAX_FEEDBACK_LENGTH)
    email: Optional[str] = SQLField(default=None, max_length=255)
    created_at: datetime = SQLField(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    analysis: dict = SQLField(
        sa_column=Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    )


# --- Request / Response Schemas ---

class FeedbackCreate(BaseModel):
    text: str = Field(..., min_length=1)
    email: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _within_max_length(cls, value: str) -> str:
        limit = settings.max_feedback_length
        if len(value) > limit:
            raise ValueError(f"Feedback text must be at most {limit} characters")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value):
        if value is None or value == "":
            return None
        if not isinstance(value, str) or not _EMAIL_RE.match(value):
            raise ValueError("Invalid email")
        return value


class FeedbackRead(BaseModel):
    model_config = {"populate_by_name": True}

    id: int
    text: str
    email: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    analysis: FeedbackAnalysis


class PaginationInfo(BaseModel):
    model_config = {"populate_by_name": True}

    page: int
    page_size: int = Field(..., alias="pageSize")
    total: int
    total_pages: int = Field(..., alias="totalPages")


class FeedbackListResponse(BaseModel):
    data: List[FeedbackRead]
    pagination: PaginationInfo
