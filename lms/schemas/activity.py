"""Pydantic schemas for activities."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActivityQuestion(BaseModel):
    """A question inside an activity definition."""

    question_id: str = Field(..., min_length=1, max_length=100)
    prompt: str = Field(..., min_length=1, max_length=5000)
    correct_response: str | None = Field(
        None, max_length=5000, description="Answer key for auto-grading (optional)"
    )
    marks: int = Field(1, ge=0, le=1000)


class ActivityCreate(BaseModel):
    """Request to create an activity."""

    title: str = Field(..., min_length=2, max_length=200)
    description: str | None = Field(None, max_length=2000)
    time_limit_seconds: int = Field(..., gt=0, le=24 * 3600)
    is_active: bool = True
    available_from: datetime | None = None
    available_until: datetime | None = None
    questions: list[ActivityQuestion] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_window(self):
        if self.available_from and self.available_until and self.available_until <= self.available_from:
            raise ValueError("available_until must be after available_from")
        ids = [q.question_id for q in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError("question_id values must be unique")
        return self


class ActivityUpdate(BaseModel):
    """Partial update of an activity. Running attempts keep their own time limit."""

    title: str | None = Field(None, min_length=2, max_length=200)
    description: str | None = Field(None, max_length=2000)
    time_limit_seconds: int | None = Field(None, gt=0, le=24 * 3600)
    is_active: bool | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None


class ActivityQuestionOut(BaseModel):
    """Question as shown to a taker (no answer key)."""

    question_id: str
    prompt: str
    marks: int


class ActivityOut(BaseModel):
    """Activity response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    time_limit_seconds: int
    is_active: bool
    available_from: datetime | None
    available_until: datetime | None
    max_score: int | None
    questions: list[ActivityQuestionOut]
    created_at: datetime
