"""
AssemblyAI REST client: submit a transcript job by media URL and look it up by id.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..errors import TranscriptionError

logger = logging.getLogger(__name__)
DEFAULT_ASSEMBLY_BASE_URL = "https://api.assemblyai.com/v2"


class ProviderTranscript(BaseModel):
    """Subset of AssemblyAI's transcript object the job lifecycle needs."""

    id: str
    status: str
    text: Optional[str] = None
    error: Optional[str] = None


def _extract_error_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        nested_error = payload.get("error")
        if isinstance(nested_error, dict):
            nested_message = nested_error.get("message")
            if isinstance(nested_message, str) and nested_message.strip():
                return nested_message.strip()
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _response_error(response: httpx.Response, fallback: str) -> TranscriptionError:
    try:
        message = _extract_error_message(response.json())
    except ValueError:
        message = (response.text or "").strip() or None
    return TranscriptionError(
        f"AssemblyAI Error: {message or fallback}",
        details={"status_code": response.status_code, "provider_message": message},
    )


class AssemblyAIService:
    """Thin async wrapper around the AssemblyAI v2 transcript endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = DEFAULT_ASSEMBLY_BASE_URL,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self.api_key, "Content-Type": "application/json"}

    async def submit_transcript(self, audio_url: str) -> str:
        """
        Create a transcript job for a publicly reachable media URL.

        Returns:
            The provider-assigned transcript id.

        Raises:
            TranscriptionError: network failure, non-2xx response, or no id in the body.
        """
        try:
            response = await self.http_client.post(
                f"{self.base_url}/transcript",
                headers=self._headers(),
                json={"audio_url": audio_url, "language_detection": True},
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(
                f"AssemblyAI unreachable: {exc}",
                details={"provider_message": str(exc)},
            ) from exc

        if response.is_error:
            raise _response_error(response, "Failed to submit transcription job")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError(
                "AssemblyAI returned an unreadable response",
                details={"status_code": response.status_code},
            ) from exc

        external_id = payload.get("id") if isinstance(payload, dict) else None
        if not isinstance(external_id, str) or not external_id.strip():
            raise TranscriptionError(
                "AssemblyAI response did not include a transcript id",
                details={"status_code": response.status_code},
            )

        logger.info(f"Submitted {audio_url} to AssemblyAI as {external_id}")
        return external_id

    async def get_transcript(self, external_id: str) -> ProviderTranscript:
        """Fetch the current state of a transcript job."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/transcript/{external_id}",
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(
                f"AssemblyAI unreachable: {exc}",
                details={"provider_message": str(exc)},
            ) from exc

        if response.is_error:
            raise _response_error(response, "Failed to check transcription status")

        try:
            payload = response.json()
            return ProviderTranscript.model_validate(payload)
        except ValueError as exc:
            raise TranscriptionError(
                f"AssemblyAI returned an unexpected transcript payload for {external_id}",
                details={"status_code": response.status_code},
            ) from exc
