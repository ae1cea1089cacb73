"""
Transcription API routes: upload, submit, poll, retry, history, usage, download.
"""
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse
from typing import Optional
import logging

from ...errors import VidscribeError
from ...services.auth_service import AuthUser
from ...services.container import AppServices
from ...services.transcription_service import MAX_HISTORY_PAGE_SIZE, TranscriptionService
from ...usage import display_name
from ..deps import get_current_user, get_services, get_transcription_service, read_json_object

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/transcriptions", tags=["transcriptions"])
UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1MB


@router.post("/upload")
async def upload_video(
    video: UploadFile = File(...),
    user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Upload a video to object storage and return its public URL."""
    try:
        if not video or not video.filename:
            raise HTTPException(status_code=400, detail="No video file provided")

        storage = services.storage
        storage.validate_filename(video.filename)

        # Read in chunks so oversized files are rejected without buffering them whole.
        chunks = []
        bytes_read = 0
        while True:
            chunk = await video.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            bytes_read += len(chunk)
            storage.check_size(bytes_read)
            chunks.append(chunk)

        path = await storage.upload(b"".join(chunks), video.filename, video.content_type)
        public_url = storage.get_public_url(path)
        logger.info(f"User {user.id} uploaded {video.filename} to {path}")

        return {
            "path": path,
            "public_url": public_url,
            "filename": video.filename,
        }
    except (HTTPException, VidscribeError):
        raise
    except Exception as e:
        logger.error(f"Error uploading video: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error uploading video: {str(e)}")
    finally:
        await video.close()


@router.post("")
async def create_transcription(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """Create a transcription job and submit it to the provider."""
    data = await read_json_object(request)
    try:
        return await transcription_service.submit(
            user.id,
            video_url=str(data.get("video_url") or ""),
            filename=data.get("filename") if isinstance(data.get("filename"), str) else None,
        )
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Error creating transcription: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating transcription: {str(e)}")


@router.get("")
async def list_transcriptions(
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=MAX_HISTORY_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """One page of the user's transcription history, newest first."""
    try:
        limit = min(limit or transcription_service.history_page_size, MAX_HISTORY_PAGE_SIZE)
        transcriptions = await transcription_service.list_history(user.id, offset=offset, limit=limit)
        return {
            "transcriptions": transcriptions,
            "offset": offset,
            "limit": limit,
            "has_more": len(transcriptions) == limit,
        }
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving transcriptions: {e}")
        raise HTTPException(status_code=500, detail=f"Error retrieving transcriptions: {str(e)}")


@router.get("/usage")
async def get_usage(
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """Total minutes transcribed across the user's completed jobs."""
    try:
        return await transcription_service.get_usage(user.id)
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving usage: {e}")
        raise HTTPException(status_code=500, detail=f"Error retrieving usage: {str(e)}")


@router.get("/{transcription_id}")
async def get_transcription(
    transcription_id: str,
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    return await transcription_service.get_transcription(user.id, transcription_id)


@router.post("/{transcription_id}/poll")
async def poll_transcription(
    transcription_id: str,
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """Check the provider for progress and return the stored job."""
    try:
        return await transcription_service.poll(user.id, transcription_id)
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Error checking transcription {transcription_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error checking transcription: {str(e)}")


@router.post("/{transcription_id}/retry")
async def retry_transcription(
    transcription_id: str,
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """Resubmit a failed transcription."""
    try:
        return await transcription_service.retry(user.id, transcription_id)
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Error retrying transcription {transcription_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error retrying transcription: {str(e)}")


@router.get("/{transcription_id}/download")
async def download_transcription(
    transcription_id: str,
    user: AuthUser = Depends(get_current_user),
    transcription_service: TranscriptionService = Depends(get_transcription_service),
):
    """Serve a completed transcript as a .txt attachment."""
    job = await transcription_service.get_transcript_text(user.id, transcription_id)
    stem = display_name(job.get("filename"), job.get("video_url")).rsplit(".", 1)[0] or "transcription"
    safe_stem = "".join(ch if ch.isalnum() or ch in "-_ " else "_" for ch in stem).strip() or "transcription"
    return PlainTextResponse(
        job.get("transcription_text") or "",
        headers={"Content-Disposition": f'attachment; filename="{safe_stem}.txt"'},
    )
