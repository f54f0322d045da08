"""Activity endpoints: lecturers and admins define timed assignments."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.common.clock import to_naive_utc
from lms.core.app_exceptions import AppError, not_found
from lms.core.dependencies import get_current_user, require_roles
from lms.core.logging import get_logger
from lms.db.session import get_db
from lms.models.activity import Activity
from lms.models.user import User, UserRole
from lms.schemas.activity import ActivityCreate, ActivityOut, ActivityQuestionOut, ActivityUpdate
from lms.services.grading import max_score_for

logger = get_logger(__name__)

router = APIRouter()

require_staff = require_roles(UserRole.ADMIN, UserRole.LECTURER)


def activity_out(activity: Activity) -> ActivityOut:
    """Serialize an activity without its answer key."""
    return ActivityOut(
        id=activity.id,
        title=activity.title,
        description=activity.description,
        time_limit_seconds=activity.time_limit_seconds,
        is_active=activity.is_active,
        available_from=activity.available_from,
        available_until=activity.available_until,
        max_score=activity.max_score,
        questions=[
            ActivityQuestionOut(question_id=q["question_id"], prompt=q["prompt"], marks=q.get("marks", 1))
            for q in activity.questions_json or []
        ],
        created_at=activity.created_at,
    )


def get_activity_or_404(db: Session, activity_id: UUID) -> Activity:
    activity = db.get(Activity, activity_id)
    if activity is None:
        raise not_found("Activity not found")
    return activity


@router.post("", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: ActivityCreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_staff)],
):
    """Create a timed activity."""
    questions = [q.model_dump() for q in payload.questions]
    activity = Activity(
        title=payload.title,
        description=payload.description,
        time_limit_seconds=payload.time_limit_seconds,
        is_active=payload.is_active,
        available_from=to_naive_utc(payload.available_from) if payload.available_from else None,
        available_until=to_naive_utc(payload.available_until) if payload.available_until else None,
        questions_json=questions,
        max_score=max_score_for(questions) if questions else None,
        created_by=current_user.id,
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)

    logger.info("Activity created", extra={"activity_id": str(activity.id), "user_id": str(current_user.id)})
    return activity_out(activity)


@router.get("", response_model=list[ActivityOut])
def list_activities(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """List activities. Students only see active ones."""
    stmt = select(Activity).order_by(Activity.created_at.desc())
    if current_user.role == UserRole.STUDENT.value:
        stmt = stmt.where(Activity.is_active.is_(True))
    return [activity_out(a) for a in db.execute(stmt).scalars().all()]


@router.get("/{activity_id}", response_model=ActivityOut)
def get_activity(
    activity_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return activity_out(get_activity_or_404(db, activity_id))


@router.patch("/{activity_id}", response_model=ActivityOut)
def update_activity(
    activity_id: UUID,
    payload: ActivityUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_staff)],
):
    """
    Update an activity.

    Attempts already started keep the time limit and deadline they started with.
    """
    activity = get_activity_or_404(db, activity_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "time_limit_seconds", "is_active"):
            continue
        if field in ("available_from", "available_until") and value is not None:
            value = to_naive_utc(value)
        setattr(activity, field, value)

    if (
        activity.available_from
        and activity.available_until
        and activity.available_until <= activity.available_from
    ):
        db.rollback()
        raise AppError(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="INVALID_WINDOW",
            message="available_until must be after available_from",
        )

    db.commit()
    db.refresh(activity)
    return activity_out(activity)
