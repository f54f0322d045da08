"""Tests for the async attempt client, in-process against the app and with mock transports."""

import uuid
from datetime import timedelta

import httpx
import pytest

from lms.api.v1.endpoints.attempts import get_controller
from lms.client import AttemptClient, ClientTimer, SubmitOutcome, TransientSubmitError
from lms.common.attempt_errors import (
    AlreadySubmittedError,
    AttemptExpiredError,
    AttemptNotFoundError,
    NoAnswersError,
)
from lms.core.security import create_access_token
from lms.models.attempt import AttemptState
from lms.services.attempt_controller import AttemptController
from tests.helpers.clock import FakeClock

PARIS = [{"question_id": "q1", "response": "Paris"}]


@pytest.fixture
def server_clock(app, db, clock) -> FakeClock:
    app.dependency_overrides[get_controller] = lambda: AttemptController(db, clock=clock)
    return clock


@pytest.fixture
async def attempts(async_client, test_user, server_clock) -> AttemptClient:
    token = create_access_token(user_id=str(test_user.id), role=test_user.role)
    async with AttemptClient("http://test", token, client=async_client) as client:
        yield client


def mock_client(handler) -> AttemptClient:
    transport = httpx.MockTransport(handler)
    return AttemptClient(
        "http://test",
        "token",
        client=httpx.AsyncClient(transport=transport, base_url="http://test"),
    )


# ============================================================================
# against the app
# ============================================================================


async def test_start_and_submit(attempts, activity, server_clock):
    started = await attempts.start(activity.id)
    server_clock.advance(120)

    result = await attempts.submit(started.session_id, PARIS)

    assert started.state == AttemptState.IN_PROGRESS
    assert result.status == AttemptState.SUBMITTED
    assert result.is_late is False
    assert result.score == 2.0


async def test_duplicate_submit_raises_already_submitted(attempts, activity):
    started = await attempts.start(activity.id)
    await attempts.submit(started.session_id, PARIS)

    with pytest.raises(AlreadySubmittedError) as exc_info:
        await attempts.submit(started.session_id, PARIS)

    assert exc_info.value.details["session_id"] == str(started.session_id)


async def test_start_after_submit_raises_already_submitted(attempts, activity):
    started = await attempts.start(activity.id)
    await attempts.submit(started.session_id, PARIS)

    with pytest.raises(AlreadySubmittedError):
        await attempts.start(activity.id)


async def test_submit_after_grace_raises_expired(attempts, activity, server_clock):
    started = await attempts.start(activity.id)
    server_clock.advance(900)

    with pytest.raises(AttemptExpiredError):
        await attempts.submit(started.session_id, PARIS)


async def test_blank_submit_raises_no_answers(attempts, activity):
    started = await attempts.start(activity.id)

    with pytest.raises(NoAnswersError):
        await attempts.submit(started.session_id, [{"question_id": "q1", "response": " "}])


async def test_unknown_session_raises_not_found(attempts):
    with pytest.raises(AttemptNotFoundError):
        await attempts.submit(uuid.uuid4(), PARIS)


async def test_draft_save_and_read(attempts, activity):
    started = await attempts.start(activity.id)

    saved = await attempts.save_answers(started.session_id, PARIS)
    view = await attempts.get(started.session_id)

    assert [a.model_dump() for a in saved.answers] == PARIS
    assert view.state == AttemptState.IN_PROGRESS
    assert view.end_time == started.end_time


async def test_auth_failure_is_not_a_protocol_outcome(async_client, activity):
    client = AttemptClient("http://test", "not-a-token", client=async_client)

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await client.start(activity.id)

    assert exc_info.value.response.status_code == 401


async def test_timer_auto_submit_lands_in_grace_window(attempts, activity, server_clock):
    started = await attempts.start(activity.id)
    await attempts.save_answers(started.session_id, PARIS)

    client_clock = FakeClock(server_clock() + timedelta(minutes=7))
    timer = ClientTimer.from_start_response(
        started,
        lambda: attempts.submit(started.session_id, PARIS),
        clock=client_clock,
    )

    # Request reaches the server two seconds after the deadline
    server_clock.advance(602)
    client_clock.advance(600)
    assert await timer.tick() is True

    assert timer.outcome == SubmitOutcome.SUBMITTED
    view = await attempts.get(started.session_id)
    assert view.state == AttemptState.SUBMITTED
    assert view.is_late is True


# ============================================================================
# transport failures
# ============================================================================


async def test_network_error_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(TransientSubmitError):
            await client.submit(uuid.uuid4(), PARIS)


async def test_server_error_is_transient():
    async with mock_client(lambda request: httpx.Response(503, json={"error_code": "INTERNAL_ERROR"})) as client:
        with pytest.raises(TransientSubmitError):
            await client.submit(uuid.uuid4(), PARIS)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (403, AlreadySubmittedError),
        (404, AttemptNotFoundError),
        (409, AlreadySubmittedError),
        (410, AttemptExpiredError),
    ],
)
async def test_status_fallback_without_envelope(status_code, expected):
    async with mock_client(lambda request: httpx.Response(status_code, text="gone")) as client:
        with pytest.raises(expected):
            await client.submit(uuid.uuid4(), PARIS)


async def test_request_carries_bearer_token_and_answers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        seen["body"] = request.content
        return httpx.Response(
            200,
            json={
                "session_id": str(uuid.uuid4()),
                "status": "SUBMITTED",
                "submitted_at": "2026-03-02T09:05:00",
                "is_late": False,
                "time_taken_seconds": 300,
            },
        )

    session_id = uuid.uuid4()
    async with mock_client(handler) as client:
        result = await client.submit(session_id, PARIS)

    assert seen["auth"] == "Bearer token"
    assert seen["path"] == f"/v1/attempts/{session_id}/submit"
    assert b'"Paris"' in seen["body"]
    assert result.score is None
