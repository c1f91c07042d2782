"""Password authentication delegated to Supabase Auth (GoTrue REST)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException

from config import settings

logger = logging.getLogger(__name__)


def _auth_headers() -> Dict[str, str]:
    return {"apikey": settings.SUPABASE_ANON_KEY, "Content-Type": "application/json"}


def _require_configured() -> str:
    base = (settings.SUPABASE_URL or "").rstrip("/")
    if not base or not settings.SUPABASE_ANON_KEY:
        raise HTTPException(status_code=503, detail="auth_not_configured")
    return base


async def _post(path: str, body: Dict[str, Any]) -> httpx.Response:
    base = _require_configured()
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            return await client.post(f"{base}{path}", json=body, headers=_auth_headers())
    except httpx.HTTPError as exc:
        logger.warning("Supabase auth request %s failed: %s", path, exc)
        raise HTTPException(status_code=502, detail="auth_unreachable") from exc


def _user_from(body: Dict[str, Any]) -> Dict[str, Any]:
    user = body.get("user") or body
    if not user.get("id"):
        raise HTTPException(status_code=502, detail="auth_invalid_response")
    metadata = user.get("user_metadata") or {}
    return {"id": str(user["id"]), "email": user.get("email"), "full_name": metadata.get("full_name")}


async def sign_in_with_password(email: str, password: str) -> Dict[str, Any]:
    response = await _post("/auth/v1/token?grant_type=password", {"email": email, "password": password})
    if response.status_code in (400, 401, 422):
        raise HTTPException(status_code=401, detail="invalid_credentials")
    if response.status_code >= 400:
        raise HTTPException(status_code=502, detail=f"auth_http_{response.status_code}")
    return _user_from(response.json())


async def sign_up(email: str, password: str, full_name: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"email": email, "password": password}
    if full_name:
        body["data"] = {"full_name": full_name}
    response = await _post("/auth/v1/signup", body)
    if response.status_code in (400, 422):
        raise HTTPException(status_code=400, detail="signup_rejected")
    if response.status_code >= 400:
        raise HTTPException(status_code=502, detail=f"auth_http_{response.status_code}")
    return _user_from(response.json())
