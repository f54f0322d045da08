"""Pydantic schemas for timed attempts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from lms.models.attempt import AttemptState


class AnswerItem(BaseModel):
    """One answer on the wire. Blank responses are allowed per item."""

    question_id: str = Field(..., min_length=1, max_length=100)
    response: str = Field("", max_length=10000)


def check_unique_questions(answers: list[AnswerItem]) -> list[AnswerItem]:
    ids = [a.question_id for a in answers]
    if len(ids) != len(set(ids)):
        raise ValueError("question_id values must be unique")
    return answers


class AttemptStart(BaseModel):
    """Request to start (or resume) an attempt."""

    activity_id: UUID
    taker_id: UUID | None = Field(None, description="Defaults to the caller")


class AttemptStartResponse(BaseModel):
    """Timer anchor for the client countdown."""

    session_id: UUID
    state: AttemptState
    start_time: datetime
    end_time: datetime
    server_time: datetime
    time_limit_seconds: int


class AttemptSubmit(BaseModel):
    """Final answers for an attempt."""

    answers: list[AnswerItem] = Field(default_factory=list, max_length=500)

    @field_validator("answers")
    @classmethod
    def unique_questions(cls, answers: list[AnswerItem]) -> list[AnswerItem]:
        return check_unique_questions(answers)


class AttemptSubmitResponse(BaseModel):
    """Outcome of a successful submit."""

    session_id: UUID
    status: AttemptState
    submitted_at: datetime
    is_late: bool
    time_taken_seconds: int
    score: float | None = None
    max_score: float | None = None


class AttemptDraft(BaseModel):
    """Draft answers saved while the attempt is running."""

    answers: list[AnswerItem] = Field(default_factory=list, max_length=500)

    @field_validator("answers")
    @classmethod
    def unique_questions(cls, answers: list[AnswerItem]) -> list[AnswerItem]:
        return check_unique_questions(answers)


class AttemptOut(BaseModel):
    """Attempt view with the effective (lazily expired) state."""

    session_id: UUID
    activity_id: UUID
    taker_id: UUID
    state: AttemptState
    time_limit_seconds: int
    start_time: datetime
    end_time: datetime
    server_time: datetime
    remaining_seconds: int
    submitted_at: datetime | None
    is_late: bool
    answers: list[AnswerItem]
    score: float | None = None
    max_score: float | None = None
