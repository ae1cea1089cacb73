"""
Transcription repository - handles all database operations for transcription jobs.
"""
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, delete, func, select, update
from typing import Optional, Dict, Any, List
import logging

from ..models import JobStatus, Transcription, generate_uuid_string

logger = logging.getLogger(__name__)
TERMINAL_STATUSES = [JobStatus.COMPLETED.value, JobStatus.FAILED.value]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_dict(row: Transcription) -> Dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "video_url": row.video_url,
        "filename": row.filename,
        "external_id": row.external_id,
        "status": row.status,
        "transcription_text": row.transcription_text,
        "error_message": row.error_message,
        "minutes": row.minutes,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


class TranscriptionRepository:
    """Repository for transcription job database operations. All lookups are user-scoped."""

    @staticmethod
    async def create_transcription(
        db: AsyncSession,
        user_id: str,
        video_url: str,
        filename: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a pending job and return it."""
        now = _utcnow()
        job_id = generate_uuid_string()
        await db.execute(
            Transcription.__table__.insert().values(
                id=job_id,
                user_id=user_id,
                video_url=video_url,
                filename=filename,
                status=JobStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
        )
        await db.commit()
        logger.info(f"Created transcription {job_id} for user {user_id}")
        return await TranscriptionRepository.get_transcription(db, job_id, user_id)

    @staticmethod
    async def get_transcription(
        db: AsyncSession,
        job_id: str,
        user_id: str,
    ) -> Optional[Dict[str, Any]]:
        result = await db.execute(
            select(Transcription).where(
                Transcription.id == job_id,
                Transcription.user_id == user_id,
            ).execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None
        return _row_to_dict(row)

    @staticmethod
    async def delete_transcription(db: AsyncSession, job_id: str, user_id: str) -> bool:
        result = await db.execute(
            delete(Transcription).where(
                Transcription.id == job_id,
                Transcription.user_id == user_id,
            )
        )
        await db.commit()
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"Deleted transcription {job_id}")
        return deleted

    @staticmethod
    async def mark_submitted(
        db: AsyncSession,
        job_id: str,
        user_id: str,
        external_id: str,
    ) -> bool:
        """Record the provider id and move the job to processing."""
        result = await db.execute(
            update(Transcription)
            .where(Transcription.id == job_id, Transcription.user_id == user_id)
            .values(
                external_id=external_id,
                status=JobStatus.PROCESSING.value,
                error_message=None,
                updated_at=_utcnow(),
            )
        )
        await db.commit()
        logger.info(f"Transcription {job_id} submitted as {external_id}")
        return (result.rowcount or 0) > 0

    @staticmethod
    async def mark_completed(
        db: AsyncSession,
        job_id: str,
        user_id: str,
        transcription_text: str,
        minutes: float,
    ) -> bool:
        """Persist the transcript and minutes. No-op if the job is already completed."""
        result = await db.execute(
            update(Transcription)
            .where(
                Transcription.id == job_id,
                Transcription.user_id == user_id,
                Transcription.status != JobStatus.COMPLETED.value,
            )
            .values(
                status=JobStatus.COMPLETED.value,
                transcription_text=transcription_text,
                error_message=None,
                minutes=minutes,
                updated_at=_utcnow(),
            )
        )
        await db.commit()
        updated = (result.rowcount or 0) > 0
        if updated:
            logger.info(f"Transcription {job_id} completed ({minutes} minutes)")
        return updated

    @staticmethod
    async def mark_failed(
        db: AsyncSession,
        job_id: str,
        user_id: str,
        error_message: str,
    ) -> bool:
        result = await db.execute(
            update(Transcription)
            .where(
                Transcription.id == job_id,
                Transcription.user_id == user_id,
                Transcription.status.not_in(TERMINAL_STATUSES),
            )
            .values(
                status=JobStatus.FAILED.value,
                error_message=error_message,
                updated_at=_utcnow(),
            )
        )
        await db.commit()
        updated = (result.rowcount or 0) > 0
        if updated:
            logger.info(f"Transcription {job_id} failed: {error_message}")
        return updated

    @staticmethod
    async def update_status(db: AsyncSession, job_id: str, user_id: str, status: str) -> bool:
        """Move a non-terminal job to another non-terminal status."""
        result = await db.execute(
            update(Transcription)
            .where(
                Transcription.id == job_id,
                Transcription.user_id == user_id,
                Transcription.status.not_in(TERMINAL_STATUSES),
            )
            .values(status=status, updated_at=_utcnow())
        )
        await db.commit()
        return (result.rowcount or 0) > 0

    @staticmethod
    async def get_user_transcriptions(
        db: AsyncSession,
        user_id: str,
        offset: int = 0,
        limit: int = 5,
    ) -> List[Dict[str, Any]]:
        """One page of a user's jobs, newest first."""
        result = await db.execute(
            select(Transcription)
            .where(Transcription.user_id == user_id)
            .order_by(Transcription.created_at.desc(), Transcription.id.desc())
            .offset(max(0, offset))
            .limit(max(1, limit))
            .execution_options(populate_existing=True)
        )
        return [_row_to_dict(row) for row in result.scalars().all()]

    @staticmethod
    async def get_user_usage(db: AsyncSession, user_id: str) -> Dict[str, Any]:
        """Sum of minutes over the user's completed jobs."""
        result = await db.execute(
            select(
                func.coalesce(func.sum(Transcription.minutes), 0.0),
                func.count(Transcription.id),
            ).where(
                Transcription.user_id == user_id,
                Transcription.status == JobStatus.COMPLETED.value,
            )
        )
        total_minutes, completed_count = result.one()
        return {
            "total_minutes": round(float(total_minutes or 0.0), 1),
            "completed_count": int(completed_count or 0),
        }

    @staticmethod
    async def get_stale_processing_transcriptions(
        db: AsyncSession,
        older_than_minutes: int = 30,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Processing jobs that have not been updated for a while, oldest first."""
        cutoff = _utcnow() - timedelta(minutes=max(0, older_than_minutes))
        conditions = [
            Transcription.status == JobStatus.PROCESSING.value,
            Transcription.external_id.is_not(None),
            Transcription.updated_at <= cutoff,
        ]
        if user_id:
            conditions.append(Transcription.user_id == user_id)

        query = select(Transcription).where(and_(*conditions)).order_by(Transcription.created_at.asc())
        if limit is not None:
            query = query.limit(max(1, int(limit)))

        result = await db.execute(query)
        return [_row_to_dict(row) for row in result.scalars().all()]
