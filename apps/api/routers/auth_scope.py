"""Authentication dependencies for user, consultant and admin scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.profile import Profile
from services.crypto import verify_admin_marker
from services.session_token import TokenError, decode_session_token


auth_scheme = HTTPBearer(auto_error=False)
ADMIN_COOKIE_NAME = "admin_secret"


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    role: str = "user"


@dataclass
class AdminContext:
    actor_id: Optional[str]
    via: str


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def _resolve_auth(db: AsyncSession, token: str) -> AuthContext:
    try:
        payload = decode_session_token(token)
    except TokenError as exc:
        raise HTTPException(status_code=401, detail=exc.code) from exc

    user_id = str(payload.get("sub", ""))
    profile = (await db.execute(select(Profile).where(Profile.id == user_id))).scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=401, detail="session_user_unknown")
    return AuthContext(
        user_id=user_id,
        email=profile.email or str(payload.get("email", "")) or None,
        role=profile.role or "user",
    )


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve authenticated user from a Bearer token or the session cookie."""
    token = _session_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="session_missing")
    return await _resolve_auth(db, token)


async def get_optional_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[AuthContext]:
    token = _session_token(request, credentials)
    if not token:
        return None
    try:
        return await _resolve_auth(db, token)
    except HTTPException:
        return None


def require_role(*roles: str):
    """Dependency factory accepting only the given profile roles."""

    async def _dependency(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if auth.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return auth

    return _dependency


require_worker = require_role("worker", "admin")


async def require_admin(
    request: Request,
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
) -> AdminContext:
    """Admin-role session or a valid admin-secret cookie."""
    if auth is not None and auth.role == "admin":
        return AdminContext(actor_id=auth.user_id, via="session")
    if verify_admin_marker(request.cookies.get(ADMIN_COOKIE_NAME)):
        return AdminContext(actor_id=None, via="admin_secret")
    raise HTTPException(status_code=401, detail="admin_required")
