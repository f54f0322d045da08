"""Typed outcomes of the attempt protocol.

Shared by the server controller and the client so both sides switch on the
same ``code`` values that travel in the error envelope.
"""

from typing import Any


class AttemptError(Exception):
    """Base class for attempt protocol errors."""

    code = "ATTEMPT_ERROR"

    def __init__(self, message: str, session: Any | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.session = session
        self.details = details


class AttemptNotFoundError(AttemptError):
    code = "NOT_FOUND"


class AlreadySubmittedError(AttemptError):
    """The attempt already reached SUBMITTED. Callers treat this as handled."""

    code = "ALREADY_SUBMITTED"


class AttemptExpiredError(AttemptError):
    """Deadline plus grace window passed without an accepted submission."""

    code = "EXPIRED"


class NoAnswersError(AttemptError):
    code = "NO_ANSWERS"


class ActivityUnavailableError(AttemptError):
    code = "ACTIVITY_UNAVAILABLE"


ERRORS_BY_CODE: dict[str, type[AttemptError]] = {
    cls.code: cls
    for cls in (
        AttemptNotFoundError,
        AlreadySubmittedError,
        AttemptExpiredError,
        NoAnswersError,
        ActivityUnavailableError,
    )
}
