"""Client for the callable functions that front the outfit detector.

Both functions speak the callable-function protocol: the request body is
``{"data": ...}`` and the response body is ``{"result": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from fitspo.errors import ScanServiceError
from fitspo.schemas import ScanJob, ScanSubmitResponse
from fitspo.settings import Settings


logger = logging.getLogger(__name__)


class ScanClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        *,
        submit_function: str = "scanOutfit",
        status_function: str = "fetchReplicate",
        auth_token: str | None = None,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._submit_function = submit_function
        self._status_function = status_function
        self._auth_token = auth_token

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient | None = None) -> ScanClient:
        if http is None:
            http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        return cls(
            http,
            settings.functions_base_url,
            submit_function=settings.scan_submit_function,
            status_function=settings.scan_status_function,
            auth_token=settings.functions_auth_token,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def submit(self, post_id: str, image_url: str) -> ScanJob:
        """Start one remote inference job for the post image.

        Every call starts a new (billable) job; there is no idempotency key.
        """
        if not post_id:
            raise ValueError("post_id must not be empty")
        if not image_url:
            raise ValueError("image_url must not be empty")

        result = await self._call(self._submit_function, {"postId": post_id, "imageURL": image_url})
        try:
            response = ScanSubmitResponse.model_validate(result)
        except ValidationError as e:
            raise ScanServiceError(f"undecodable {self._submit_function} response: {e}") from e

        logger.info("scan submitted post_id=%s job_id=%s status=%s", post_id, response.replicate.id, response.replicate.status)
        return response.replicate

    async def fetch(self, job_id: str) -> ScanJob:
        result = await self._call(self._status_function, {"jobId": job_id})
        try:
            return ScanJob.model_validate(result)
        except ValidationError as e:
            raise ScanServiceError(f"undecodable {self._status_function} response: {e}") from e

    async def _call(self, function: str, data: dict[str, Any]) -> Any:
        headers = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        url = f"{self._base_url}/{function}"
        try:
            r = await self._http.post(url, json={"data": data}, headers=headers)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPStatusError as e:
            raise ScanServiceError(f"{function} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ScanServiceError(f"{function} request failed: {e}") from e
        except ValueError as e:
            raise ScanServiceError(f"{function} returned invalid JSON") from e

        if not isinstance(body, dict) or "result" not in body:
            raise ScanServiceError(f"{function} response has no result")
        return body["result"]
