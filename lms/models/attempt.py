"""Timed attempt session models."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Uuid,
    text,
)
from sqlalchemy.sql import func

from lms.db.base import Base


class AttemptState(str, PyEnum):
    """Attempt lifecycle state."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.SUBMITTED, AttemptState.EXPIRED)


class AttemptSession(Base):
    """One taker's single timed attempt at one activity."""

    __tablename__ = "attempt_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("activities.id", onupdate="CASCADE"),
        nullable=False,
    )
    taker_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", onupdate="CASCADE"),
        nullable=False,
    )

    state = Column(
        Enum(AttemptState, name="attempt_state", native_enum=False, length=20),
        nullable=False,
        default=AttemptState.IN_PROGRESS,
    )

    # Timer (snapshotted at start, never recomputed)
    time_limit_seconds = Column(Integer, nullable=False)
    started_at = Column(DateTime, nullable=False)
    deadline = Column(DateTime, nullable=False)

    # Answers: [{question_id, response}, ...], written whole so finalize never merges
    answers_json = Column(JSON, nullable=False, default=list)

    # Finalization
    submitted_at = Column(DateTime, nullable=True)
    is_late = Column(Boolean, nullable=False, default=False)  # accepted inside grace window
    time_taken_seconds = Column(Integer, nullable=True)
    score = Column(Numeric(8, 2), nullable=True)
    max_score = Column(Numeric(8, 2), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

    __table_args__ = (
        # At most one non-terminal attempt per (activity, taker)
        Index(
            "uq_attempt_sessions_open_pair",
            "activity_id",
            "taker_id",
            unique=True,
            sqlite_where=text("state = 'IN_PROGRESS'"),
            postgresql_where=text("state = 'IN_PROGRESS'"),
        ),
        Index("ix_attempt_sessions_pair", "activity_id", "taker_id"),
        Index("ix_attempt_sessions_state", "state"),
    )


class AttemptEvent(Base):
    """Telemetry events for attempts (append-only log).

    IMPORTANT: This is an append-only table. Do NOT update or delete events.
    """

    __tablename__ = "attempt_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(String(100), nullable=False, index=True)
    event_ts = Column(DateTime, nullable=False, index=True)

    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("attempt_sessions.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    source = Column(String(50), nullable=True)  # "api", "web"
    payload_json = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_attempt_events_session_ts", "session_id", "event_ts"),)
