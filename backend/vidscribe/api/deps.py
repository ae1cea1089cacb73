"""
FastAPI dependencies resolving the per-app service handles.
"""
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import Unauthenticated, ValidationError
from ..services.auth_service import AuthUser
from ..services.container import AppServices
from ..services.transcription_service import TranscriptionService


def get_services(request: Request) -> AppServices:
    return request.app.state.services


async def get_db(services: AppServices = Depends(get_services)) -> AsyncIterator[AsyncSession]:
    async with services.database.session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_access_token(request: Request) -> Optional[str]:
    authorization = (request.headers.get("authorization") or "").strip()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    request: Request,
    services: AppServices = Depends(get_services),
) -> AuthUser:
    token = get_access_token(request)
    if not token:
        raise Unauthenticated()
    return await services.auth.get_user(token)


async def get_optional_user(
    request: Request,
    services: AppServices = Depends(get_services),
) -> Optional[AuthUser]:
    token = get_access_token(request)
    if not token:
        return None
    try:
        return await services.auth.get_user(token)
    except Unauthenticated:
        return None


def get_transcription_service(
    db: AsyncSession = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> TranscriptionService:
    return TranscriptionService(db, services.provider, history_page_size=services.config.history_page_size)


async def read_json_object(request: Request) -> Dict[str, Any]:
    try:
        raw_data = await request.json()
    except ValueError as e:
        raise ValidationError("Payload must be a JSON object") from e
    if not isinstance(raw_data, dict):
        raise ValidationError("Payload must be a JSON object")
    return raw_data
