"""
Supabase Auth adapter: session lookup, sign-up, sign-in and sign-out.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import BaseModel

from ..errors import Unauthenticated, ValidationError, VidscribeError

logger = logging.getLogger(__name__)
MIN_PASSWORD_LENGTH = 6


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthService:
    """Calls the Supabase GoTrue REST API with the project's anon key."""

    def __init__(self, http_client: httpx.AsyncClient, supabase_url: str, anon_key: str):
        self.http_client = http_client
        self.auth_url = f"{supabase_url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        try:
            payload = response.json()
        except ValueError:
            return fallback
        if isinstance(payload, dict):
            for key in ("msg", "error_description", "message", "error"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return fallback

    async def _post(self, path: str, body: Optional[Dict[str, Any]] = None, access_token: Optional[str] = None) -> httpx.Response:
        try:
            return await self.http_client.post(
                f"{self.auth_url}{path}",
                headers=self._headers(access_token),
                json=body or {},
            )
        except httpx.HTTPError as exc:
            raise VidscribeError(f"Auth provider unreachable: {exc}", status_code=502) from exc

    async def get_user(self, access_token: Optional[str]) -> AuthUser:
        """Resolve a bearer token to the signed-in user."""
        if not access_token:
            raise Unauthenticated()
        try:
            response = await self.http_client.get(
                f"{self.auth_url}/user",
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as exc:
            raise VidscribeError(f"Auth provider unreachable: {exc}", status_code=502) from exc

        if response.status_code in (401, 403):
            raise Unauthenticated("Invalid or expired session")
        if response.is_error:
            raise VidscribeError(
                self._error_message(response, "Failed to verify session"),
                status_code=502,
            )
        return AuthUser.model_validate(response.json())

    async def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: str,
        checkout_session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        email = (email or "").strip()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        body: Dict[str, Any] = {"email": email, "password": password}
        if checkout_session_id:
            body["data"] = {"session_id": checkout_session_id}

        response = await self._post("/signup", body)
        if response.is_error:
            raise ValidationError(self._error_message(response, "Failed to create account"))
        logger.info(f"Signed up {email}")
        return response.json()

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        if not email or not password:
            raise ValidationError("Email and password are required")
        response = await self._post("/token?grant_type=password", {"email": email, "password": password})
        if response.status_code in (400, 401):
            raise Unauthenticated(self._error_message(response, "Invalid login credentials"))
        if response.is_error:
            raise VidscribeError(self._error_message(response, "Failed to sign in"), status_code=502)
        return response.json()

    async def sign_out(self, access_token: Optional[str]) -> None:
        if not access_token:
            raise Unauthenticated()
        response = await self._post("/logout", access_token=access_token)
        if response.is_error and response.status_code not in (401, 403):
            raise VidscribeError(self._error_message(response, "Failed to sign out"), status_code=502)
