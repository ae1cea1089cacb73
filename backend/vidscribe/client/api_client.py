"""
Async client for the Vidscribe HTTP API.

Used by the dashboard orchestrator to:
- Upload videos and submit transcription jobs
- Poll job status
- Page through history and read usage totals
- Start a Stripe checkout
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

import httpx

from ..errors import (
    BillingError,
    PollError,
    SubmissionError,
    TranscriptionNotFound,
    Unauthenticated,
    UploadError,
    ValidationError,
    VidscribeError,
)
from ..services.billing_service import validate_checkout_params
from ..usage import DEFAULT_MAX_UPLOAD_SIZE_BYTES


def _error_detail(response: httpx.Response) -> tuple[str, Dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return (response.text or f"Request failed with status {response.status_code}"), {}
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("error")
        details = payload.get("details") if isinstance(payload.get("details"), dict) else {}
        if isinstance(detail, str) and detail:
            return detail, details
    return f"Request failed with status {response.status_code}", {}


class APIClient:
    """Client for the transcription backend, authenticated with a Supabase access token."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_BYTES,
    ):
        """
        Args:
            base_url: Base URL of the API server
            access_token: Bearer token of the signed-in user
            http_client: Optional pre-built client (tests inject a mock transport)
            max_upload_size_bytes: Client-side upload ceiling checked before sending
        """
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.http_client = http_client or httpx.AsyncClient(timeout=30)
        self.max_upload_size_bytes = max_upload_size_bytes

    async def aclose(self) -> None:
        await self.http_client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(
        self,
        method: str,
        path: str,
        error_class: Type[VidscribeError],
        **kwargs: Any,
    ) -> Any:
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise error_class(f"Unable to reach API server: {e}") from e

        if response.status_code == 401:
            message, _ = _error_detail(response)
            raise Unauthenticated(message)
        if response.status_code == 404:
            message, details = _error_detail(response)
            raise TranscriptionNotFound(message, details=details)
        if response.status_code == 400:
            message, details = _error_detail(response)
            raise ValidationError(message, details=details)
        if response.is_error:
            message, details = _error_detail(response)
            raise error_class(message, details=details, status_code=response.status_code)
        return response.json()

    async def health_check(self) -> Dict[str, Any]:
        return await self._request("GET", "/health", VidscribeError)

    async def get_client_settings(self) -> Dict[str, Any]:
        """Server-side polling, paging and upload limits."""
        return await self._request("GET", "/client-settings", VidscribeError)

    async def upload_video(self, data: bytes, filename: str, content_type: str = "video/mp4") -> Dict[str, Any]:
        """Upload raw video bytes; returns {path, public_url, filename}."""
        if len(data) > self.max_upload_size_bytes:
            limit_mb = self.max_upload_size_bytes // (1024 * 1024)
            raise UploadError(f"File size must be less than {limit_mb}MB", status_code=413)
        return await self._request(
            "POST",
            "/transcriptions/upload",
            UploadError,
            files={"video": (filename, data, content_type)},
        )

    async def create_transcription(self, video_url: str, filename: Optional[str] = None) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/transcriptions",
            SubmissionError,
            json={"video_url": video_url, "filename": filename},
        )

    async def get_transcription_status(self, job_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/transcriptions/{job_id}/poll", PollError)

    async def list_transcriptions(self, offset: int = 0, limit: int = 5) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET",
            "/transcriptions",
            VidscribeError,
            params={"offset": offset, "limit": limit},
        )
        return payload.get("transcriptions", [])

    async def get_usage(self) -> Dict[str, Any]:
        return await self._request("GET", "/transcriptions/usage", VidscribeError)

    async def create_checkout_session(
        self,
        price_id: str,
        tier_name: str,
        interval: str,
        email: Optional[str] = None,
    ) -> Dict[str, str]:
        """Validate locally, then ask the backend for a checkout URL to redirect to."""
        validate_checkout_params(price_id, tier_name, interval)
        payload = await self._request(
            "POST",
            "/billing/checkout-session",
            BillingError,
            json={"price_id": price_id, "tier_name": tier_name, "interval": interval, "email": email},
        )
        if not payload.get("url"):
            raise BillingError("No checkout URL returned")
        return payload
