"""
Transcription service - job submission, status polling, retry and usage.
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional, List
from urllib.parse import urlparse
import logging

from ..errors import (
    PollError,
    SubmissionError,
    TranscriptionError,
    TranscriptionNotFound,
    Unauthenticated,
    ValidationError,
)
from ..models import JobStatus
from ..repositories.transcription_repository import TranscriptionRepository
from ..usage import calculate_minutes
from .assembly_service import AssemblyAIService

logger = logging.getLogger(__name__)
MAX_HISTORY_PAGE_SIZE = 50
DEFAULT_HISTORY_PAGE_SIZE = 5


def map_provider_status(provider_status: str) -> JobStatus:
    """Provider transcript status -> local job status."""
    normalized = (provider_status or "").strip().lower()
    if normalized == "completed":
        return JobStatus.COMPLETED
    if normalized == "error":
        return JobStatus.FAILED
    return JobStatus.PROCESSING


class TranscriptionService:
    """Service for the transcription job lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        provider: AssemblyAIService,
        history_page_size: int = DEFAULT_HISTORY_PAGE_SIZE,
    ):
        self.db = db
        self.provider = provider
        self.history_page_size = history_page_size
        self.transcription_repo = TranscriptionRepository()

    @staticmethod
    def _require_user(user_id: Optional[str]) -> str:
        if not user_id or not str(user_id).strip():
            raise Unauthenticated()
        return str(user_id).strip()

    @staticmethod
    def _validate_video_url(video_url: Optional[str]) -> str:
        value = (video_url or "").strip()
        if not value:
            raise ValidationError("video_url is required")
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValidationError("video_url must be an http(s) URL")
        return value

    async def get_transcription(self, user_id: str, job_id: str) -> Dict[str, Any]:
        user_id = self._require_user(user_id)
        job = await self.transcription_repo.get_transcription(self.db, job_id, user_id)
        if not job:
            raise TranscriptionNotFound("Transcription not found")
        return job

    async def submit(
        self,
        user_id: Optional[str],
        video_url: str,
        filename: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a job and hand it to the provider.

        The local row is created first so the job has an id; if the provider
        does not accept it the row is deleted again before re-raising.
        """
        user_id = self._require_user(user_id)
        video_url = self._validate_video_url(video_url)
        filename = (filename or "").strip() or None

        job = await self.transcription_repo.create_transcription(
            self.db,
            user_id=user_id,
            video_url=video_url,
            filename=filename,
        )

        try:
            external_id = await self.provider.submit_transcript(video_url)
        except TranscriptionError as e:
            logger.error(f"Provider rejected transcription {job['id']}: {e}")
            await self.transcription_repo.delete_transcription(self.db, job["id"], user_id)
            raise SubmissionError(str(e), details=e.details) from e
        except Exception as e:
            logger.error(f"Unexpected error submitting transcription {job['id']}: {e}", exc_info=True)
            await self.transcription_repo.delete_transcription(self.db, job["id"], user_id)
            raise SubmissionError(f"Failed to submit transcription job: {e}") from e

        await self.transcription_repo.mark_submitted(self.db, job["id"], user_id, external_id)
        return await self.get_transcription(user_id, job["id"])

    async def poll(self, user_id: Optional[str], job_id: str) -> Dict[str, Any]:
        """
        Refresh a job from the provider and return the stored record.

        Terminal jobs are returned as stored. A write happens only when the
        mapped status differs from the stored one.
        """
        user_id = self._require_user(user_id)
        job = await self.transcription_repo.get_transcription(self.db, job_id, user_id)
        if not job:
            raise TranscriptionNotFound("Transcription not found")
        if not job.get("external_id"):
            raise TranscriptionNotFound("Transcription has not been submitted to the provider yet")

        current_status = JobStatus(job["status"])
        if current_status.is_terminal:
            return job

        try:
            transcript = await self.provider.get_transcript(job["external_id"])
        except TranscriptionError as e:
            logger.error(f"Status check failed for transcription {job_id}: {e}")
            raise PollError(str(e), details=e.details) from e

        mapped_status = map_provider_status(transcript.status)
        if mapped_status == JobStatus.COMPLETED and not (transcript.text or "").strip():
            # Completion is only recorded once the transcript text is available.
            logger.warning(f"Provider reported {job['external_id']} completed without text; still processing")
            mapped_status = JobStatus.PROCESSING

        if mapped_status == JobStatus.COMPLETED:
            text = transcript.text
            minutes = calculate_minutes(text)
            await self.transcription_repo.mark_completed(self.db, job_id, user_id, text, minutes)
        elif mapped_status == JobStatus.FAILED:
            error_message = transcript.error or "Transcription failed"
            await self.transcription_repo.mark_failed(self.db, job_id, user_id, error_message)
        elif mapped_status != current_status:
            await self.transcription_repo.update_status(self.db, job_id, user_id, mapped_status.value)
        else:
            return job

        return await self.get_transcription(user_id, job_id)

    async def retry(self, user_id: Optional[str], job_id: str) -> Dict[str, Any]:
        """Resubmit a failed job; it re-enters processing with a fresh external id."""
        user_id = self._require_user(user_id)
        job = await self.get_transcription(user_id, job_id)
        if job["status"] != JobStatus.FAILED.value:
            raise ValidationError(f"Only failed transcriptions can be retried (status: {job['status']})")

        try:
            external_id = await self.provider.submit_transcript(job["video_url"])
        except TranscriptionError as e:
            logger.error(f"Retry of transcription {job_id} rejected: {e}")
            raise SubmissionError(str(e), details=e.details) from e
        except Exception as e:
            logger.error(f"Unexpected error retrying transcription {job_id}: {e}", exc_info=True)
            raise SubmissionError(f"Failed to submit transcription job: {e}") from e

        await self.transcription_repo.mark_submitted(self.db, job_id, user_id, external_id)
        logger.info(f"Retried transcription {job_id} as {external_id}")
        return await self.get_transcription(user_id, job_id)

    async def list_history(
        self,
        user_id: Optional[str],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        user_id = self._require_user(user_id)
        if limit is None:
            limit = self.history_page_size
        limit = max(1, min(MAX_HISTORY_PAGE_SIZE, int(limit)))
        return await self.transcription_repo.get_user_transcriptions(
            self.db,
            user_id,
            offset=max(0, int(offset)),
            limit=limit,
        )

    async def get_usage(self, user_id: Optional[str]) -> Dict[str, Any]:
        user_id = self._require_user(user_id)
        return await self.transcription_repo.get_user_usage(self.db, user_id)

    async def reconcile_stale_jobs(
        self,
        older_than_minutes: int = 30,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Poll processing jobs nobody is watching anymore, once each.
        Poll failures are counted and left for the next run.
        """
        jobs = await self.transcription_repo.get_stale_processing_transcriptions(
            self.db,
            older_than_minutes=older_than_minutes,
            user_id=user_id,
            limit=limit,
        )
        outcomes: Dict[str, int] = {"completed": 0, "failed": 0, "processing": 0, "errors": 0}
        if dry_run:
            return {"dry_run": True, "scanned": len(jobs), "job_ids": [job["id"] for job in jobs], **outcomes}

        for job in jobs:
            try:
                refreshed = await self.poll(job["user_id"], job["id"])
            except PollError as e:
                logger.warning(f"Reconcile poll failed for {job['id']}: {e}")
                outcomes["errors"] += 1
                continue
            outcomes[refreshed["status"]] = outcomes.get(refreshed["status"], 0) + 1

        logger.info(f"Reconciled {len(jobs)} stale transcription(s): {outcomes}")
        return {"dry_run": False, "scanned": len(jobs), "job_ids": [job["id"] for job in jobs], **outcomes}

    async def get_transcript_text(self, user_id: Optional[str], job_id: str) -> Dict[str, Any]:
        """Completed job for download; other states are not downloadable."""
        job = await self.get_transcription(user_id, job_id)
        if job["status"] != JobStatus.COMPLETED.value:
            raise ValidationError("Transcript is not available until the transcription completes")
        return job
