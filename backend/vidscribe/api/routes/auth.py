"""
Auth API routes proxying the Supabase auth provider.
"""
from fastapi import APIRouter, Depends, Request
import logging

from ...services.auth_service import AuthUser
from ...services.container import AppServices
from ..deps import get_access_token, get_current_user, get_services, read_json_object

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
async def sign_up(request: Request, services: AppServices = Depends(get_services)):
    data = await read_json_object(request)
    result = await services.auth.sign_up(
        email=str(data.get("email") or ""),
        password=str(data.get("password") or ""),
        confirm_password=str(data.get("confirm_password") or ""),
        checkout_session_id=data.get("session_id"),
    )
    return {
        "message": "Account created. Please check your email to verify your account.",
        "user": result.get("user") or result,
    }


@router.post("/login")
async def sign_in(request: Request, services: AppServices = Depends(get_services)):
    data = await read_json_object(request)
    return await services.auth.sign_in(
        email=str(data.get("email") or ""),
        password=str(data.get("password") or ""),
    )


@router.post("/logout")
async def sign_out(request: Request, services: AppServices = Depends(get_services)):
    await services.auth.sign_out(get_access_token(request))
    return {"message": "Signed out"}


@router.get("/me")
async def me(user: AuthUser = Depends(get_current_user)):
    return user.model_dump()
