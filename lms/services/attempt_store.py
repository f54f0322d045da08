"""Persistence contract for attempt sessions and its SQLAlchemy implementation."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.core.logging import get_logger
from lms.models.attempt import AttemptSession, AttemptState

logger = get_logger(__name__)


class AlreadyFinalizedError(Exception):
    """Conditional write lost: the session is no longer IN_PROGRESS."""

    def __init__(self, current: AttemptSession | None):
        super().__init__("Attempt session is no longer in progress")
        self.current = current


class SessionStore(Protocol):
    """What the attempt controller needs from storage."""

    def get(self, session_id: UUID) -> AttemptSession | None: ...

    def find_active(self, activity_id: UUID, taker_id: UUID) -> AttemptSession | None: ...

    def find_terminal(self, activity_id: UUID, taker_id: UUID) -> AttemptSession | None: ...

    def create(self, session: AttemptSession) -> AttemptSession: ...

    def save_answers(self, session_id: UUID, answers: list[dict[str, str]]) -> AttemptSession: ...

    def finalize(
        self,
        session_id: UUID,
        answers: list[dict[str, str]],
        submitted_at: datetime | None,
        state: AttemptState,
        **result: Any,
    ) -> AttemptSession: ...


class SqlAlchemySessionStore:
    """SessionStore backed by the ``attempt_sessions`` table.

    Terminal transitions go through a conditional UPDATE keyed on
    ``state = IN_PROGRESS``, so concurrent finalizers cannot both win.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, session_id: UUID) -> AttemptSession | None:
        return self.db.get(AttemptSession, session_id, populate_existing=True)

    def find_active(self, activity_id: UUID, taker_id: UUID) -> AttemptSession | None:
        stmt = select(AttemptSession).where(
            AttemptSession.activity_id == activity_id,
            AttemptSession.taker_id == taker_id,
            AttemptSession.state == AttemptState.IN_PROGRESS,
        )
        return self.db.execute(stmt.execution_options(populate_existing=True)).scalars().first()

    def find_terminal(self, activity_id: UUID, taker_id: UUID) -> AttemptSession | None:
        """Return the terminal attempt for the pair; SUBMITTED wins over EXPIRED."""
        stmt = select(AttemptSession).where(
            AttemptSession.activity_id == activity_id,
            AttemptSession.taker_id == taker_id,
            AttemptSession.state.in_([AttemptState.SUBMITTED, AttemptState.EXPIRED]),
        )
        rows = self.db.execute(stmt.execution_options(populate_existing=True)).scalars().all()
        submitted = [r for r in rows if r.state == AttemptState.SUBMITTED]
        if submitted:
            return submitted[0]
        return rows[0] if rows else None

    def create(self, session: AttemptSession) -> AttemptSession:
        """Insert a new IN_PROGRESS session.

        If a concurrent start already inserted the open session for this pair,
        the unique index rejects ours and the existing row is returned instead.
        """
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_active(session.activity_id, session.taker_id)
            if existing is None:
                raise
            logger.info(
                "Concurrent attempt start resolved to existing session",
                extra={"session_id": str(existing.id)},
            )
            return existing
        self.db.refresh(session)
        return session

    def save_answers(self, session_id: UUID, answers: list[dict[str, str]]) -> AttemptSession:
        stmt = (
            update(AttemptSession)
            .where(
                AttemptSession.id == session_id,
                AttemptSession.state == AttemptState.IN_PROGRESS,
            )
            .values(answers_json=answers)
            .execution_options(synchronize_session=False)
        )
        return self._conditional_write(session_id, stmt)

    def finalize(
        self,
        session_id: UUID,
        answers: list[dict[str, str]],
        submitted_at: datetime | None,
        state: AttemptState,
        *,
        is_late: bool = False,
        time_taken_seconds: int | None = None,
        score: Decimal | float | None = None,
        max_score: Decimal | float | None = None,
    ) -> AttemptSession:
        """Move an IN_PROGRESS session to a terminal state exactly once."""
        if not state.is_terminal:
            raise ValueError(f"finalize requires a terminal state, got {state.value}")

        stmt = (
            update(AttemptSession)
            .where(
                AttemptSession.id == session_id,
                AttemptSession.state == AttemptState.IN_PROGRESS,
            )
            .values(
                state=state,
                answers_json=answers,
                submitted_at=submitted_at,
                is_late=is_late,
                time_taken_seconds=time_taken_seconds,
                score=score,
                max_score=max_score,
            )
            .execution_options(synchronize_session=False)
        )
        return self._conditional_write(session_id, stmt)

    def _conditional_write(self, session_id: UUID, stmt) -> AttemptSession:
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            self.db.rollback()
            raise AlreadyFinalizedError(self.get(session_id))
        self.db.commit()
        return self.get(session_id)
