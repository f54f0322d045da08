"""Telemetry service for logging attempt events.

IMPORTANT: All telemetry operations are best-effort. Failures must NOT break the main application flow.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from lms.common.clock import utc_now
from lms.models.attempt import AttemptEvent

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Attempt lifecycle events."""

    ATTEMPT_STARTED = "ATTEMPT_STARTED"
    ATTEMPT_RESUMED = "ATTEMPT_RESUMED"
    ANSWERS_SAVED = "ANSWERS_SAVED"
    ATTEMPT_SUBMITTED = "ATTEMPT_SUBMITTED"
    ATTEMPT_EXPIRED = "ATTEMPT_EXPIRED"
    DUPLICATE_SUBMIT = "DUPLICATE_SUBMIT"


def log_event(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    event_type: EventType | str,
    payload: dict[str, Any] | None = None,
    source: str = "api",
) -> AttemptEvent | None:
    """
    Record a single attempt event and commit it (best-effort).

    Args:
        db: Database session
        session_id: Attempt session ID
        user_id: Taker ID
        event_type: Event type
        payload: Event payload
        source: Event source (api, web)

    Returns:
        Created event or None if failed
    """
    event_type_str = event_type.value if isinstance(event_type, EventType) else event_type
    try:
        event = AttemptEvent(
            session_id=session_id,
            user_id=user_id,
            event_type=event_type_str,
            event_ts=utc_now(),
            source=source,
            payload_json=payload or {},
        )
        db.add(event)
        db.commit()
        return event
    except Exception as e:
        # Best-effort: log error but don't raise
        db.rollback()
        logger.error(f"Failed to log attempt event {event_type_str}: {e}", exc_info=True)
        return None
