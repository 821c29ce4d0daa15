import logging

import httpx

from toolrent.errors import ERRORS_BY_CODE, ModerationError, RemoteFailure
from toolrent.models.submission import Submission, SubmissionStatus

logger = logging.getLogger(__name__)


class ModerationClient:
    """
    Async client for the moderation HTTP API.
    Credentials are given at construction and sent on every call; the client
    never reads them from anywhere else.
    """

    def __init__(
        self,
        base_url: str,
        moderator_token: str | None = None,
        user_id: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {}
        if moderator_token:
            headers["Authorization"] = f"Bearer {moderator_token}"
        if user_id:
            headers["X-User-Id"] = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "ModerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("[client] %s %s transport error | %s", method, path, exc)
            raise RemoteFailure(f"{method} {path} failed: {exc}") from exc
        if response.is_success:
            return response
        raise self._error_from(response)

    async def _json(self, method: str, path: str, **kwargs):
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("[client] %s %s undecodable body | status=%s", method, path, response.status_code)
            raise RemoteFailure(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _error_from(response: httpx.Response) -> ModerationError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        message = body.get("message") if isinstance(body, dict) else None
        error_cls = ERRORS_BY_CODE.get(code or "", RemoteFailure)
        return error_cls(message or f"HTTP {response.status_code}")

    async def create_submission(self, kind: str, payload: dict) -> Submission:
        data = await self._json("POST", "/submissions", json={"kind": kind, "payload": payload})
        return Submission.from_dict(data)

    async def get_submission(self, submission_id: str) -> Submission:
        data = await self._json("GET", f"/submissions/{submission_id}")
        return Submission.from_dict(data)

    async def list_submissions(
        self, status: SubmissionStatus | None = None, page: int = 1, limit: int | None = None
    ) -> list[Submission]:
        params: dict = {"page": page}
        if status is not None:
            params["status"] = status.value
        if limit is not None:
            params["limit"] = limit
        data = await self._json("GET", "/submissions", params=params)
        return [Submission.from_dict(item) for item in data]

    async def my_submissions(self) -> list[Submission]:
        data = await self._json("GET", "/users/me/submissions")
        return [Submission.from_dict(item) for item in data]

    async def approve_submission(self, submission_id: str, note: str | None = None) -> str:
        """Approve and return the id of the product created or affected."""
        path = f"/submissions/{submission_id}/approve"
        data = await self._json("POST", path, json={"note": note})
        if not isinstance(data, dict) or not data.get("productId"):
            raise RemoteFailure(f"POST {path} answered without a productId")
        return data["productId"]

    async def reject_submission(self, submission_id: str, note: str = "") -> None:
        await self._request("POST", f"/submissions/{submission_id}/reject", json={"note": note})

    async def delete_submission(self, submission_id: str) -> None:
        await self._request("DELETE", f"/submissions/{submission_id}")
