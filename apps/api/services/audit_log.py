"""Audit-log writers and window counters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def add_audit(
    db: AsyncSession,
    action: str,
    *,
    event: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    actor_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction."""
    row = AuditLog(
        action=action,
        event=event,
        resource_type=resource_type,
        resource_id=resource_id,
        actor_role=actor_role,
        actor_id=actor_id,
        tenant_id=tenant_id,
        ip=ip,
        user_agent=(user_agent or "")[:512] or None,
        payload=payload,
        metadata_json=metadata,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    return row


async def record_audit(db: AsyncSession, action: str, **fields: Any) -> bool:
    """Write and commit one audit row. Failures are logged, never raised."""
    try:
        add_audit(db, action, **fields)
        await db.commit()
        return True
    except SQLAlchemyError as exc:
        logger.warning("Audit insert failed for %s: %s", action, exc)
        await db.rollback()
        return False


async def count_recent(
    db: AsyncSession,
    action: str,
    *,
    ip: Optional[str] = None,
    event: Optional[str] = None,
    window_seconds: int = 600,
    now: Optional[datetime] = None,
) -> int:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=max(int(window_seconds), 1))
    query = select(func.count(AuditLog.id)).where(AuditLog.action == action, AuditLog.created_at >= cutoff)
    if ip is not None:
        query = query.where(AuditLog.ip == ip)
    if event is not None:
        query = query.where(AuditLog.event == event)
    result = await db.execute(query)
    return int(result.scalar() or 0)
