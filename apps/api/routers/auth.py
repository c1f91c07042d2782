"""
Authentication router: password login/signup via Supabase Auth and session introspection.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.profile import Profile
from routers.auth_scope import ADMIN_COOKIE_NAME, AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from routers.tenant_scope import get_tenant
from services.credits import resolve_org_for_user
from services.session_token import create_session_token
from services.supabase_auth import sign_in_with_password, sign_up
from services.tenant import TenantContext

router = APIRouter()
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)


class SignupRequest(LoginRequest):
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)


class SessionResponse(BaseModel):
    user_id: str
    email: str
    role: str
    session_token: str
    session_expires_at: int


class CurrentUserResponse(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: str
    tenant_key: Optional[str] = None
    phone: Optional[str] = None
    org_id: Optional[str] = None
    tenant_code: str
    locale: str


async def _upsert_profile(
    db: AsyncSession,
    user: dict,
    tenant: TenantContext,
    *,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> Profile:
    profile = (await db.execute(select(Profile).where(Profile.id == user["id"]))).scalar_one_or_none()
    if profile is None:
        profile = Profile(
            id=user["id"],
            email=(user.get("email") or "").lower(),
            full_name=full_name or user.get("full_name"),
            role="user",
            tenant_key=tenant.code,
            phone=phone,
        )
        db.add(profile)
    else:
        if user.get("email"):
            profile.email = user["email"].lower()
        if full_name:
            profile.full_name = full_name
        if phone:
            profile.phone = phone
    await db.commit()
    return profile


def _issue_session(response: Response, profile: Profile) -> SessionResponse:
    session = create_session_token(profile.id, profile.email, tenant_code=profile.tenant_key)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session["token"],
        max_age=session["max_age"],
        httponly=True,
        samesite="lax",
        secure=not settings.SITE_URL.startswith("http://"),
        path="/",
    )
    return SessionResponse(
        user_id=profile.id,
        email=profile.email,
        role=profile.role,
        session_token=session["token"],
        session_expires_at=session["expires_at"],
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    response: Response,
    _rate_limit: None = Depends(rate_limit("auth_login", limit=20, window_seconds=600)),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Verify credentials with Supabase Auth and issue an API session."""
    user = await sign_in_with_password(request.email.strip().lower(), request.password)
    profile = await _upsert_profile(db, user, tenant)
    return _issue_session(response, profile)


@router.post("/signup", response_model=SessionResponse)
async def signup(
    request: SignupRequest,
    response: Response,
    _rate_limit: None = Depends(rate_limit("auth_signup", limit=10, window_seconds=3600)),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    user = await sign_up(request.email.strip().lower(), request.password, request.full_name)
    profile = await _upsert_profile(db, user, tenant, full_name=request.full_name, phone=request.phone)
    return _issue_session(response, profile)


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get current profile, organization and tenant."""
    profile = (await db.execute(select(Profile).where(Profile.id == auth.user_id))).scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")

    return CurrentUserResponse(
        user_id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        role=profile.role,
        tenant_key=profile.tenant_key,
        phone=profile.phone,
        org_id=await resolve_org_for_user(db, profile.id),
        tenant_code=tenant.code,
        locale=tenant.locale,
    )


@router.post("/logout")
async def logout(response: Response):
    """Clear session and admin cookies."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    response.delete_cookie(ADMIN_COOKIE_NAME, path="/")
    return {"ok": True, "message": "Logged out successfully"}
