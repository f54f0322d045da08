"""Database models."""

# Import all models here so metadata.create_all sees them
from lms.models.activity import Activity
from lms.models.attempt import AttemptEvent, AttemptSession, AttemptState
from lms.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Activity",
    "AttemptSession",
    "AttemptState",
    "AttemptEvent",
]
