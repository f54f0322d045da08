"""Server-side authority over timed attempts: start, draft save, submit, lazy expiry."""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from lms.common.attempt_errors import (
    ActivityUnavailableError,
    AlreadySubmittedError,
    AttemptExpiredError,
    AttemptNotFoundError,
    NoAnswersError,
)
from lms.common.clock import Clock, utc_now
from lms.core.config import settings
from lms.core.logging import get_logger
from lms.models.activity import Activity
from lms.models.attempt import AttemptSession, AttemptState
from lms.services.attempt_store import AlreadyFinalizedError, SessionStore, SqlAlchemySessionStore
from lms.services.grading import grade_answers
from lms.services.telemetry import EventType, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class StartResult:
    session: AttemptSession
    server_time: datetime
    resumed: bool = False


@dataclass(frozen=True)
class FinalizedResult:
    session: AttemptSession
    server_time: datetime


@dataclass(frozen=True)
class AttemptView:
    session: AttemptSession
    state: AttemptState  # effective state; may be EXPIRED while the row is IN_PROGRESS
    server_time: datetime

    @property
    def remaining_seconds(self) -> int:
        if self.state != AttemptState.IN_PROGRESS:
            return 0
        return max(0, int((self.session.deadline - self.server_time).total_seconds()))


def normalize_answers(answers: Iterable[Any]) -> list[dict[str, str]]:
    """Coerce wire answers (pydantic models or mappings) to ordered plain dicts."""
    normalized = []
    for item in answers:
        if not isinstance(item, Mapping):
            item = item.model_dump()
        normalized.append(
            {"question_id": str(item["question_id"]), "response": str(item.get("response") or "")}
        )
    return normalized


def effective_state(session: AttemptSession, now: datetime) -> AttemptState:
    """State as observed at ``now``: an open attempt past its deadline reads as EXPIRED."""
    if session.state == AttemptState.IN_PROGRESS and now > session.deadline:
        return AttemptState.EXPIRED
    return AttemptState(session.state)


class AttemptController:
    """
    Creates attempts, enforces their deadlines and finalizes them exactly once.

    The server clock is the only authority on expiry. A submit that arrives
    after the deadline is still accepted inside ``grace_seconds`` (the request
    the client fires from its own expiry handler); later ones are rejected.
    """

    def __init__(
        self,
        db: Session,
        store: SessionStore | None = None,
        clock: Clock = utc_now,
        grace_seconds: int | None = None,
    ):
        self.db = db
        self.store = store or SqlAlchemySessionStore(db)
        self.clock = clock
        grace = settings.ATTEMPT_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.grace = timedelta(seconds=grace)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, activity_id: UUID, taker_id: UUID) -> StartResult:
        """
        Start a new attempt or resume the open one for (activity, taker).

        Raises:
            AttemptNotFoundError: Unknown activity
            AlreadySubmittedError: The taker already submitted this activity
            AttemptExpiredError: The taker's single attempt ran out of time
            ActivityUnavailableError: Activity inactive or outside its window
        """
        activity = self.db.get(Activity, activity_id)
        if activity is None:
            raise AttemptNotFoundError("Activity not found")

        terminal = self.store.find_terminal(activity_id, taker_id)
        if terminal is not None:
            self._raise_terminal(terminal)

        now = self.clock()
        active = self.store.find_active(activity_id, taker_id)
        if active is not None:
            if self._past_grace(active, now):
                self._raise_terminal(self._expire(active))
            log_event(self.db, active.id, taker_id, EventType.ATTEMPT_RESUMED)
            return StartResult(session=active, server_time=now, resumed=True)

        self._check_available(activity, now)

        session = AttemptSession(
            id=uuid.uuid4(),
            activity_id=activity_id,
            taker_id=taker_id,
            state=AttemptState.IN_PROGRESS,
            time_limit_seconds=activity.time_limit_seconds,
            started_at=now,
            deadline=now + timedelta(seconds=activity.time_limit_seconds),
            answers_json=[],
        )
        created = self.store.create(session)
        resumed = created.id != session.id

        if not resumed:
            logger.info(
                "Attempt started",
                extra={
                    "session_id": str(created.id),
                    "activity_id": str(activity_id),
                    "taker_id": str(taker_id),
                    "deadline": created.deadline.isoformat(),
                },
            )
            log_event(
                self.db,
                created.id,
                taker_id,
                EventType.ATTEMPT_STARTED,
                {"time_limit_seconds": created.time_limit_seconds},
            )
        return StartResult(session=created, server_time=now, resumed=resumed)

    def get(self, session_id: UUID) -> AttemptView:
        """Read an attempt, applying lazy expiry."""
        session = self._load(session_id)
        now = self.clock()
        if session.state == AttemptState.IN_PROGRESS and self._past_grace(session, now):
            session = self._expire(session)
        return AttemptView(session=session, state=effective_state(session, now), server_time=now)

    def save_answers(self, session_id: UUID, answers: Iterable[Any]) -> AttemptView:
        """Replace the draft answers of a running attempt."""
        session = self._load(session_id)
        now = self.clock()
        self._ensure_open(session, now, allow_grace=False)

        try:
            session = self.store.save_answers(session.id, normalize_answers(answers))
        except AlreadyFinalizedError as exc:
            self._raise_terminal(exc.current)

        log_event(self.db, session.id, session.taker_id, EventType.ANSWERS_SAVED)
        return AttemptView(session=session, state=AttemptState.IN_PROGRESS, server_time=now)

    def submit(self, session_id: UUID, answers: Iterable[Any]) -> FinalizedResult:
        """
        Finalize an attempt with its answers. This is the only path to SUBMITTED.

        Raises:
            AttemptNotFoundError: Unknown session
            AlreadySubmittedError: Already submitted (duplicate retry or lost race)
            AttemptExpiredError: Deadline plus grace window passed
            NoAnswersError: No non-blank response in the submission
        """
        session = self._load(session_id)
        now = self.clock()
        self._ensure_open(session, now, allow_grace=True)

        normalized = normalize_answers(answers)
        if not any(a["response"].strip() for a in normalized):
            raise NoAnswersError("Please provide at least one answer before submitting", session=session)

        activity = self.db.get(Activity, session.activity_id)
        score, max_score = grade_answers(activity.questions_json or [], normalized)
        is_late = now > session.deadline

        try:
            finalized = self.store.finalize(
                session.id,
                normalized,
                now,
                AttemptState.SUBMITTED,
                is_late=is_late,
                time_taken_seconds=int((now - session.started_at).total_seconds()),
                score=score,
                max_score=max_score,
            )
        except AlreadyFinalizedError as exc:
            log_event(self.db, session.id, session.taker_id, EventType.DUPLICATE_SUBMIT)
            self._raise_terminal(exc.current)

        logger.info(
            "Attempt submitted",
            extra={"session_id": str(finalized.id), "is_late": is_late, "answers": len(normalized)},
        )
        log_event(
            self.db,
            finalized.id,
            finalized.taker_id,
            EventType.ATTEMPT_SUBMITTED,
            {"is_late": is_late, "answers": len(normalized)},
        )
        return FinalizedResult(session=finalized, server_time=now)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, session_id: UUID) -> AttemptSession:
        session = self.store.get(session_id)
        if session is None:
            raise AttemptNotFoundError("Attempt session not found")
        return session

    def _past_grace(self, session: AttemptSession, now: datetime) -> bool:
        return now > session.deadline + self.grace

    def _ensure_open(self, session: AttemptSession, now: datetime, allow_grace: bool) -> None:
        if session.state != AttemptState.IN_PROGRESS:
            self._raise_terminal(session)
        if self._past_grace(session, now):
            self._raise_terminal(self._expire(session))
        if not allow_grace and now > session.deadline:
            raise AttemptExpiredError("Time limit for this attempt has passed", session=session)

    def _expire(self, session: AttemptSession) -> AttemptSession:
        """Persist EXPIRED for an open attempt; returns whatever terminal row won."""
        try:
            expired = self.store.finalize(
                session.id,
                session.answers_json or [],
                None,
                AttemptState.EXPIRED,
                time_taken_seconds=session.time_limit_seconds,
            )
        except AlreadyFinalizedError as exc:
            return exc.current

        logger.info("Attempt expired", extra={"session_id": str(session.id)})
        log_event(self.db, expired.id, expired.taker_id, EventType.ATTEMPT_EXPIRED)
        return expired

    @staticmethod
    def _check_available(activity: Activity, now: datetime) -> None:
        if not activity.is_active:
            raise ActivityUnavailableError("This activity is not active")
        if activity.available_from and now < activity.available_from:
            raise ActivityUnavailableError("This activity has not started yet")
        if activity.available_until and now > activity.available_until:
            raise ActivityUnavailableError("This activity has ended")

    @staticmethod
    def _raise_terminal(session: AttemptSession | None) -> None:
        if session is not None and session.state == AttemptState.SUBMITTED:
            raise AlreadySubmittedError("You have already submitted this activity", session=session)
        raise AttemptExpiredError("Time limit for this attempt has passed", session=session)
