"""Admin secret login guarded by audit-log attempt counting and captcha."""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import ADMIN_COOKIE_NAME, AdminContext, require_admin
from routers.payload import read_payload
from services.audit_log import client_ip, count_recent, record_audit
from services.captcha import verify_captcha
from services.crypto import issue_admin_marker

router = APIRouter()
logger = logging.getLogger(__name__)

LOGIN_ACTION = "admin_login_attempt"


@router.post("/login")
async def admin_login(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange the admin secret for an `admin_secret` cookie.

    Attempts are counted per IP over ADMIN_LOGIN_WINDOW_SECONDS from the
    audit log. The count is read before the new attempt is written, so two
    simultaneous requests can both pass the threshold check.
    """
    ip = client_ip(request)
    user_agent = request.headers.get("user-agent")
    audit_fields = {"ip": ip, "user_agent": user_agent, "resource_type": "admin_login", "actor_role": "admin"}

    attempts = await count_recent(
        db,
        LOGIN_ACTION,
        ip=ip,
        event="try",
        window_seconds=settings.ADMIN_LOGIN_WINDOW_SECONDS,
    )
    if attempts >= int(settings.ADMIN_LOGIN_MAX_ATTEMPTS):
        await record_audit(db, LOGIN_ACTION, event="deny", payload={"reason": "rate_limited", "attempts": attempts}, **audit_fields)
        raise HTTPException(
            status_code=429,
            detail={"error": "rate_limited", "retry_after_minutes": int(settings.ADMIN_LOGIN_LOCK_MIN)},
        )

    await record_audit(db, LOGIN_ACTION, event="try", payload={"attempts": attempts + 1}, **audit_fields)

    if attempts >= int(settings.ADMIN_LOGIN_REQUIRE_CAPTCHA_AFTER):
        token = request.headers.get("x-captcha-token")
        if not await verify_captcha(token, ip):
            await record_audit(db, LOGIN_ACTION, event="deny", payload={"reason": "captcha_required"}, **audit_fields)
            raise HTTPException(status_code=403, detail="captcha_required")

    if not settings.ADMIN_SECRET:
        raise HTTPException(status_code=503, detail="admin_not_configured")

    payload = await read_payload(request)
    supplied = str(payload.get("secret") or "")
    if not hmac.compare_digest(supplied.encode("utf-8"), settings.ADMIN_SECRET.encode("utf-8")):
        await record_audit(db, LOGIN_ACTION, event="deny", payload={"reason": "invalid_secret"}, **audit_fields)
        raise HTTPException(status_code=401, detail="invalid_secret")

    await record_audit(db, LOGIN_ACTION, event="allow", **audit_fields)
    response.set_cookie(
        ADMIN_COOKIE_NAME,
        issue_admin_marker(),
        max_age=int(settings.ADMIN_COOKIE_HOURS) * 3600,
        httponly=True,
        samesite="lax",
        secure=not settings.SITE_URL.startswith("http://"),
        path="/",
    )
    logger.info("Admin login from %s", ip)
    return {"ok": True}


@router.post("/logout")
async def admin_logout(response: Response, _admin: AdminContext = Depends(require_admin)):
    response.delete_cookie(ADMIN_COOKIE_NAME, path="/")
    return {"ok": True}
