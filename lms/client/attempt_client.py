"""HTTP client for the attempt protocol.

Maps the server's error envelope back onto the typed outcomes in
``lms.common.attempt_errors`` so callers never parse status codes.
"""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

import httpx

from lms.common.attempt_errors import (
    ERRORS_BY_CODE,
    AlreadySubmittedError,
    AttemptError,
    AttemptExpiredError,
    AttemptNotFoundError,
)
from lms.core.logging import get_logger
from lms.schemas.attempt import (
    AnswerItem,
    AttemptOut,
    AttemptStartResponse,
    AttemptSubmitResponse,
)

logger = get_logger(__name__)

STATUS_FALLBACK: dict[int, type[AttemptError]] = {
    403: AlreadySubmittedError,
    404: AttemptNotFoundError,
    409: AlreadySubmittedError,
    410: AttemptExpiredError,
}


class TransientSubmitError(Exception):
    """Network failure or server error; the call may be retried."""


def _answers_payload(answers: Iterable[Any]) -> list[dict[str, str]]:
    return [
        (a if isinstance(a, AnswerItem) else AnswerItem.model_validate(a)).model_dump()
        for a in answers
    ]


class AttemptClient:
    """Async client for ``/attempts`` endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str,
        client: httpx.AsyncClient | None = None,
        api_prefix: str = "/v1",
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._prefix = api_prefix.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}

    async def __aenter__(self) -> "AttemptClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def start(self, activity_id: UUID, taker_id: UUID | None = None) -> AttemptStartResponse:
        body: dict[str, Any] = {"activity_id": str(activity_id)}
        if taker_id is not None:
            body["taker_id"] = str(taker_id)
        data = await self._request("POST", "/attempts/start", json=body)
        return AttemptStartResponse.model_validate(data)

    async def get(self, session_id: UUID) -> AttemptOut:
        data = await self._request("GET", f"/attempts/{session_id}")
        return AttemptOut.model_validate(data)

    async def save_answers(self, session_id: UUID, answers: Iterable[Any]) -> AttemptOut:
        data = await self._request(
            "PUT", f"/attempts/{session_id}/answers", json={"answers": _answers_payload(answers)}
        )
        return AttemptOut.model_validate(data)

    async def submit(self, session_id: UUID, answers: Iterable[Any]) -> AttemptSubmitResponse:
        data = await self._request(
            "POST", f"/attempts/{session_id}/submit", json={"answers": _answers_payload(answers)}
        )
        return AttemptSubmitResponse.model_validate(data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method, f"{self._prefix}{path}", headers=self._headers, **kwargs
            )
        except httpx.TransportError as e:
            logger.warning("Attempt request failed", extra={"path": path, "error": str(e)})
            raise TransientSubmitError(str(e)) from e

        if response.status_code >= 500:
            raise TransientSubmitError(f"Server error {response.status_code}")
        if response.is_success:
            return response.json()

        raise self._error_from(response)

    @staticmethod
    def _error_from(response: httpx.Response) -> Exception:
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("error_code")
        message = body.get("message") or f"HTTP {response.status_code}"
        details = body.get("details") if isinstance(body.get("details"), dict) else None

        error_cls = ERRORS_BY_CODE.get(code) or STATUS_FALLBACK.get(response.status_code)
        if error_cls is None:
            # Auth and validation failures are caller bugs, not protocol outcomes
            return httpx.HTTPStatusError(message, request=response.request, response=response)
        return error_cls(message, details=details)
