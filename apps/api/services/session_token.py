"""Signed JWTs for user sessions and single-purpose links (storage downloads)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "g360_session"


class TokenError(ValueError):
    """Token could not be decoded or does not match the expected use."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def _epoch(value: datetime) -> int:
    return int(value.timestamp())


def _decode(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise TokenError("token_invalid") from exc


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
    tenant_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Issue a session JWT; `expires_at` is returned alongside for cookie max-age."""
    now = datetime.now(timezone.utc)
    ttl_hours = max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1)
    expires_at = now + timedelta(hours=ttl_hours)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": _epoch(now),
        "exp": _epoch(expires_at),
    }
    if email:
        claims["email"] = email
    if tenant_code:
        claims["tenant"] = tenant_code
    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": _epoch(expires_at),
        "max_age": ttl_hours * 3600,
    }


def decode_session_token(token: str) -> Dict[str, Any]:
    payload = _decode(token)
    if str(payload.get("type", "")).strip() != SESSION_TOKEN_TYPE:
        raise TokenError("token_type_invalid")
    if not str(payload.get("sub", "")).strip():
        raise TokenError("token_subject_missing")
    return payload


def create_purpose_token(purpose: str, subject: str, ttl_seconds: int, **claims: Any) -> str:
    """Short-lived token bound to one purpose; a session token never passes as one."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(claims)
    payload.update(
        {
            "purpose": purpose,
            "sub": subject,
            "iat": _epoch(now),
            "exp": _epoch(now + timedelta(seconds=max(int(ttl_seconds), 1))),
        }
    )
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_purpose_token(token: str, purpose: str) -> Dict[str, Any]:
    payload = _decode(token)
    if payload.get("purpose") != purpose or payload.get("type") == SESSION_TOKEN_TYPE:
        raise TokenError("token_purpose_mismatch")
    return payload
