"""Client-side countdown for a timed attempt.

The countdown is anchored to the server clock: at construction the timer
records ``server_time - client_now()`` once and from then on reads
``client_now() + offset``, so a misconfigured local clock cannot stretch or
shrink the attempt. The server still decides expiry; this timer only makes
sure the client fires its own submit exactly once when time runs out.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from lms.client.attempt_client import TransientSubmitError
from lms.common.attempt_errors import AlreadySubmittedError, AttemptExpiredError, NoAnswersError
from lms.common.clock import Clock, to_naive_utc, utc_now
from lms.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WARNING_SECONDS = (300, 60)


class SubmitOutcome(str, Enum):
    """How a submit attempt ended, from the client's point of view."""

    SUBMITTED = "SUBMITTED"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"  # go to results view
    EXPIRED = "EXPIRED"  # tell the user their time lapsed
    NO_ANSWERS = "NO_ANSWERS"  # re-prompt
    FAILED = "FAILED"  # transient; user may retry


class ClientTimer:
    """Cooperative one-second countdown with exactly-once auto-submit."""

    def __init__(
        self,
        start_time: datetime,
        end_time: datetime,
        server_time: datetime,
        submit: Callable[[], Awaitable[Any]],
        clock: Clock = utc_now,
        tick_interval: float = 1.0,
        warning_seconds: Iterable[int] = DEFAULT_WARNING_SECONDS,
        on_tick: Callable[[int], None] | None = None,
        on_warning: Callable[[int], None] | None = None,
    ):
        self.start_time = to_naive_utc(start_time)
        self.end_time = to_naive_utc(end_time)
        self._clock = clock
        self.clock_offset: timedelta = to_naive_utc(server_time) - clock()
        self._submit = submit
        self.tick_interval = tick_interval
        self.warning_seconds = sorted(set(warning_seconds), reverse=True)
        self.on_tick = on_tick
        self.on_warning = on_warning

        self.triggered = False
        self.outcome: SubmitOutcome | None = None
        self.last_error: Exception | None = None
        self.last_remaining = self.remaining_seconds()
        # Thresholds already behind us when the timer is built stay silent
        self._warned: set[int] = {t for t in self.warning_seconds if self.last_remaining < t}
        self._task: asyncio.Task | None = None

    @classmethod
    def from_start_response(cls, response: Any, submit: Callable[[], Awaitable[Any]], **kwargs: Any) -> "ClientTimer":
        return cls(response.start_time, response.end_time, response.server_time, submit, **kwargs)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        """Server-aligned current time."""
        return self._clock() + self.clock_offset

    def remaining_seconds(self) -> int:
        remaining = (self.end_time - self.now()).total_seconds()
        return max(0, math.ceil(remaining))

    def format_remaining(self) -> str:
        remaining = self.remaining_seconds()
        hours, rest = divmod(remaining, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin ticking on the running event loop."""
        if self.running or self.outcome in (
            SubmitOutcome.SUBMITTED,
            SubmitOutcome.ALREADY_SUBMITTED,
            SubmitOutcome.EXPIRED,
        ):
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Stop ticking. Safe to call from inside a tick."""
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def wait(self) -> None:
        """Wait until the tick loop ends (expiry handled or stopped)."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while True:
            if await self.tick():
                return
            await asyncio.sleep(self.tick_interval)

    async def tick(self) -> bool:
        """Advance one step. Returns True once the countdown reached zero."""
        remaining = self.remaining_seconds()
        self.last_remaining = remaining
        if self.on_tick:
            self.on_tick(remaining)

        for threshold in self.warning_seconds:
            if remaining <= threshold and threshold not in self._warned:
                self._warned.add(threshold)
                if remaining > 0 and self.on_warning:
                    self.on_warning(threshold)

        if remaining > 0:
            return False

        self.stop()
        await self._fire(auto=True)
        return True

    # ------------------------------------------------------------------
    # Submitting
    # ------------------------------------------------------------------

    async def submit_now(self) -> SubmitOutcome | None:
        """Manual submit: cancel the countdown, then post."""
        self.last_remaining = self.remaining_seconds()
        self.stop()
        return await self._fire(auto=False)

    async def _fire(self, auto: bool) -> SubmitOutcome | None:
        if self.triggered:
            return None
        self.triggered = True
        remaining_at_submit = self.last_remaining

        try:
            await self._submit()
        except AlreadySubmittedError:
            self.outcome = SubmitOutcome.ALREADY_SUBMITTED
        except AttemptExpiredError:
            self.outcome = SubmitOutcome.EXPIRED
        except NoAnswersError:
            self.outcome = SubmitOutcome.NO_ANSWERS
            self._recover(remaining_at_submit)
        except TransientSubmitError as e:
            logger.warning("Attempt submit failed, retry allowed", extra={"auto": auto, "error": str(e)})
            self.last_error = e
            self.outcome = SubmitOutcome.FAILED
            self._recover(remaining_at_submit)
        except Exception as e:
            # Auth, validation or unknown-session failures: not terminal for the attempt
            logger.error(
                "Attempt submit raised unexpected error, retry allowed",
                extra={"auto": auto, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            self.last_error = e
            self.outcome = SubmitOutcome.FAILED
            self._recover(remaining_at_submit)
        else:
            self.last_error = None
            self.outcome = SubmitOutcome.SUBMITTED

        return self.outcome

    def _recover(self, remaining_at_submit: int) -> None:
        """Allow another submit; resume the countdown if time was left."""
        self.triggered = False
        if remaining_at_submit > 0:
            self.start()
