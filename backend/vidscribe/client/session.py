"""
Dashboard orchestrator: upload → submit → poll, with user-visible notifications.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..errors import ProviderReportedFailure, ValidationError, VidscribeError
from .api_client import APIClient
from .history import DEFAULT_PAGE_SIZE, HistoryView
from .polling import DEFAULT_MAX_FAILURES, DEFAULT_POLL_INTERVAL_SECONDS, PollingTask

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class VideoFile:
    data: bytes
    filename: str
    content_type: str = "video/mp4"


@dataclass
class Notification:
    level: str  # "success" | "error"
    message: str


class TranscriptionSession:
    """
    Drives one transcription at a time for the signed-in user.

    A second `select_video` while uploading or transcribing is rejected;
    open another session to run jobs side by side. This is the only layer
    that writes to `notifications`.
    """

    def __init__(
        self,
        api: APIClient,
        history: Optional[HistoryView] = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_failures: int = DEFAULT_MAX_FAILURES,
    ):
        self.api = api
        self.history = history
        self.poll_interval_seconds = poll_interval_seconds
        self.max_poll_failures = max_poll_failures
        self.state = SessionState.IDLE
        self.job_id: Optional[str] = None
        self.transcript: Optional[str] = None
        self.error: Optional[VidscribeError] = None
        self.notifications: List[Notification] = []
        self.polling: Optional[PollingTask] = None

    @classmethod
    async def connect(cls, api: APIClient) -> "TranscriptionSession":
        """Build a session (with its history view) from the server's client settings."""
        settings = await api.get_client_settings()
        api.max_upload_size_bytes = int(settings.get("max_upload_size_bytes") or api.max_upload_size_bytes)
        history = HistoryView(
            api.list_transcriptions,
            api.get_usage,
            page_size=int(settings.get("history_page_size") or DEFAULT_PAGE_SIZE),
        )
        return cls(
            api,
            history=history,
            poll_interval_seconds=float(settings.get("poll_interval_seconds") or DEFAULT_POLL_INTERVAL_SECONDS),
            max_poll_failures=int(settings.get("poll_max_failures") or DEFAULT_MAX_FAILURES),
        )

    @property
    def busy(self) -> bool:
        return self.state in (SessionState.UPLOADING, SessionState.TRANSCRIBING)

    def _notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level=level, message=message))

    def _fail(self, error: VidscribeError) -> None:
        self.state = SessionState.ERROR
        self.error = error
        self._notify("error", error.message)
        logger.error(f"Transcription session failed: {error.message}")

    async def select_video(self, source: Union[VideoFile, str], start_polling: bool = True) -> Optional[Dict[str, Any]]:
        """
        Upload (for files) and submit a video, then start polling.

        Returns the created job, or None if the attempt ended in the error state.
        """
        if self.busy:
            raise ValidationError("A transcription is already in progress")

        self._reset()
        self.state = SessionState.UPLOADING
        try:
            if isinstance(source, VideoFile):
                uploaded = await self.api.upload_video(source.data, source.filename, source.content_type)
                video_url = uploaded["public_url"]
                filename: Optional[str] = source.filename
            else:
                video_url = (source or "").strip()
                if not video_url:
                    raise ValidationError("Video URL is required")
                filename = None

            self.state = SessionState.TRANSCRIBING
            job = await self.api.create_transcription(video_url, filename)
        except VidscribeError as e:
            self._fail(e)
            return None

        self.job_id = job["id"]
        self._notify("success", "Video submitted for transcription")
        if self.history:
            await self._refresh_history()

        self.polling = PollingTask(
            job["id"],
            self.api.get_transcription_status,
            on_completed=self._on_completed,
            on_failed=self._on_failed,
            on_error=self._on_poll_error,
            interval_seconds=self.poll_interval_seconds,
            max_failures=self.max_poll_failures,
        )
        if start_polling:
            self.polling.start()
        return job

    async def _on_completed(self, job: Dict[str, Any]) -> None:
        self.state = SessionState.COMPLETED
        self.transcript = job.get("transcription_text") or ""
        self._notify("success", "Transcription completed")
        await self._refresh_history()

    async def _on_failed(self, job: Dict[str, Any]) -> None:
        self._fail(ProviderReportedFailure(
            job.get("error_message") or "An error occurred during transcription. Please try again.",
            details={"job_id": job.get("id")},
        ))
        await self._refresh_history()

    async def _on_poll_error(self, error: Exception) -> None:
        if isinstance(error, VidscribeError):
            self._fail(error)
        else:
            self._fail(VidscribeError(f"Failed to check transcription status: {error}"))

    async def _refresh_history(self) -> None:
        if not self.history:
            return
        try:
            await self.history.load(reset=True)
        except VidscribeError as e:
            self._notify("error", f"Failed to refresh history: {e.message}")

    def _reset(self) -> None:
        if self.polling:
            self.polling.cancel()
        self.polling = None
        self.job_id = None
        self.transcript = None
        self.error = None

    async def close(self) -> None:
        """Teardown: stop polling so no further updates land on a discarded view."""
        if self.polling:
            self.polling.cancel()
            await self.polling.wait()
