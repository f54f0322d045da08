"""Client side of the timed attempt protocol."""

from lms.client.attempt_client import AttemptClient, TransientSubmitError
from lms.client.timer import ClientTimer, SubmitOutcome

__all__ = ["AttemptClient", "ClientTimer", "SubmitOutcome", "TransientSubmitError"]
