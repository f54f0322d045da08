"""Attempt endpoints: start, draft save, submit and read a timed attempt."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.common.attempt_errors import (
    ActivityUnavailableError,
    AlreadySubmittedError,
    AttemptError,
    AttemptExpiredError,
    AttemptNotFoundError,
    NoAnswersError,
)
from lms.core.app_exceptions import AppError, forbidden, not_found
from lms.core.dependencies import get_current_user, require_roles
from lms.db.session import get_db
from lms.models.attempt import AttemptSession, AttemptState
from lms.models.user import User, UserRole
from lms.schemas.attempt import (
    AnswerItem,
    AttemptDraft,
    AttemptOut,
    AttemptStart,
    AttemptStartResponse,
    AttemptSubmit,
    AttemptSubmitResponse,
)
from lms.services.attempt_controller import AttemptController, AttemptView, effective_state

router = APIRouter()

require_student = require_roles(UserRole.STUDENT)

# start() answers a repeat attempt with 403; submit-side calls use 409
START_STATUS = {
    AttemptNotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadySubmittedError: status.HTTP_403_FORBIDDEN,
    AttemptExpiredError: status.HTTP_410_GONE,
    ActivityUnavailableError: status.HTTP_400_BAD_REQUEST,
}
SUBMIT_STATUS = {
    AttemptNotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadySubmittedError: status.HTTP_409_CONFLICT,
    AttemptExpiredError: status.HTTP_410_GONE,
    NoAnswersError: status.HTTP_400_BAD_REQUEST,
}


def to_app_error(exc: AttemptError, status_map: dict[type[AttemptError], int]) -> AppError:
    """Render a typed attempt outcome as an error envelope."""
    details = exc.details
    session = exc.session
    if isinstance(session, AttemptSession):
        details = {
            "session_id": str(session.id),
            "state": AttemptState(session.state).value,
            "submitted_at": session.submitted_at.isoformat() if session.submitted_at else None,
        }
    return AppError(
        status_code=status_map.get(type(exc), status.HTTP_400_BAD_REQUEST),
        code=exc.code,
        message=exc.message,
        details=details,
    )


def get_controller(db: Annotated[Session, Depends(get_db)]) -> AttemptController:
    return AttemptController(db)


def get_owned_session(controller: AttemptController, session_id: UUID, user: User) -> AttemptSession:
    """Load a session and verify the caller may act on it."""
    session = controller.store.get(session_id)
    if session is None:
        raise not_found("Attempt session not found")
    if user.role == UserRole.STUDENT.value and session.taker_id != user.id:
        raise forbidden("Not authorized to access this attempt")
    return session


def attempt_out(view: AttemptView) -> AttemptOut:
    session = view.session
    return AttemptOut(
        session_id=session.id,
        activity_id=session.activity_id,
        taker_id=session.taker_id,
        state=view.state,
        time_limit_seconds=session.time_limit_seconds,
        start_time=session.started_at,
        end_time=session.deadline,
        server_time=view.server_time,
        remaining_seconds=view.remaining_seconds,
        submitted_at=session.submitted_at,
        is_late=session.is_late,
        answers=[AnswerItem(**a) for a in session.answers_json or []],
        score=float(session.score) if session.score is not None else None,
        max_score=float(session.max_score) if session.max_score is not None else None,
    )


@router.post("/start", response_model=AttemptStartResponse)
def start_attempt(
    payload: AttemptStart,
    controller: Annotated[AttemptController, Depends(get_controller)],
    current_user: Annotated[User, Depends(require_student)],
):
    """
    Start or resume the caller's attempt at an activity.

    Returns the server-side timer anchor; clients derive their countdown
    from ``end_time`` and ``server_time`` rather than their own clock.
    """
    taker_id = payload.taker_id or current_user.id
    if taker_id != current_user.id:
        raise forbidden("Students can only start their own attempts")

    try:
        result = controller.start(payload.activity_id, taker_id)
    except AttemptError as exc:
        raise to_app_error(exc, START_STATUS) from exc

    session = result.session
    return AttemptStartResponse(
        session_id=session.id,
        state=effective_state(session, result.server_time),
        start_time=session.started_at,
        end_time=session.deadline,
        server_time=result.server_time,
        time_limit_seconds=session.time_limit_seconds,
    )


@router.get("/{session_id}", response_model=AttemptOut)
def get_attempt(
    session_id: UUID,
    controller: Annotated[AttemptController, Depends(get_controller)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get an attempt with its effective state (lazy expiry applied)."""
    get_owned_session(controller, session_id, current_user)
    try:
        view = controller.get(session_id)
    except AttemptError as exc:
        raise to_app_error(exc, SUBMIT_STATUS) from exc
    return attempt_out(view)


@router.put("/{session_id}/answers", response_model=AttemptOut)
def save_attempt_answers(
    session_id: UUID,
    payload: AttemptDraft,
    controller: Annotated[AttemptController, Depends(get_controller)],
    current_user: Annotated[User, Depends(require_student)],
):
    """Autosave draft answers while the attempt is running."""
    get_owned_session(controller, session_id, current_user)
    try:
        view = controller.save_answers(session_id, payload.answers)
    except AttemptError as exc:
        raise to_app_error(exc, SUBMIT_STATUS) from exc
    return attempt_out(view)


@router.post("/{session_id}/submit", response_model=AttemptSubmitResponse)
def submit_attempt(
    session_id: UUID,
    payload: AttemptSubmit,
    controller: Annotated[AttemptController, Depends(get_controller)],
    current_user: Annotated[User, Depends(require_student)],
):
    """
    Submit final answers.

    A duplicate submit (retry, double click, auto-submit racing a manual one)
    gets 409 ALREADY_SUBMITTED so the client can go straight to the results view.
    """
    get_owned_session(controller, session_id, current_user)
    try:
        result = controller.submit(session_id, payload.answers)
    except AttemptError as exc:
        raise to_app_error(exc, SUBMIT_STATUS) from exc

    session = result.session
    return AttemptSubmitResponse(
        session_id=session.id,
        status=AttemptState(session.state),
        submitted_at=session.submitted_at,
        is_late=session.is_late,
        time_taken_seconds=session.time_taken_seconds,
        score=float(session.score) if session.score is not None else None,
        max_score=float(session.max_score) if session.max_score is not None else None,
    )
