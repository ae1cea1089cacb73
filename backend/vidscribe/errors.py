"""
Typed errors raised by the adapters and surfaced by the API and client.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class VidscribeError(Exception):
    """Base error carrying a user-facing message and optional provider details."""

    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class Unauthenticated(VidscribeError):
    status_code = 401

    def __init__(self, message: str = "User authentication required", **kwargs: Any):
        super().__init__(message, **kwargs)


class ConfigurationError(VidscribeError):
    """Missing or invalid required configuration. Fatal at startup."""


class ValidationError(VidscribeError):
    status_code = 400


class UploadError(VidscribeError):
    status_code = 502


class TranscriptionError(VidscribeError):
    """Provider-side failure talking to the speech-to-text API."""

    status_code = 502


class SubmissionError(TranscriptionError):
    """Provider rejected or never received a new job."""


class PollError(TranscriptionError):
    """Transient failure checking a job's status."""


class ProviderReportedFailure(TranscriptionError):
    """The provider itself marked the job as failed. Terminal."""

    status_code = 422


class TranscriptionNotFound(VidscribeError):
    status_code = 404


class BillingError(VidscribeError):
    status_code = 502


class WebhookVerificationError(BillingError):
    status_code = 400
