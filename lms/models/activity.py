"""Activity (gradable assignment) model."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func

from lms.db.base import Base


class Activity(Base):
    """A timed, gradable activity that students attempt once."""

    __tablename__ = "activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Allotted time for a single attempt; copied onto each attempt at start
    time_limit_seconds = Column(Integer, nullable=False)

    # Availability window (null bounds = open)
    is_active = Column(Boolean, nullable=False, default=True)
    available_from = Column(DateTime, nullable=True)
    available_until = Column(DateTime, nullable=True)

    # [{question_id, prompt, correct_response, marks}, ...]
    questions_json = Column(JSON, nullable=False, default=list)
    max_score = Column(Integer, nullable=True)

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

    __table_args__ = (
        CheckConstraint("time_limit_seconds > 0", name="ck_activities_time_limit_positive"),
    )
