"""
Health and readiness probes.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.tenant_scope import get_tenant
from services.notification_queue import NOTIFICATION_QUEUE_NAME
from services.paytr import credentials_for
from services.tenant import TenantContext

logger = logging.getLogger(__name__)

router = APIRouter()


def _configured(flag: Any) -> str:
    return "configured" if flag else "missing"


def _payment_providers(tenant_code: str) -> Dict[str, str]:
    if settings.PAYTR_MOCK:
        paytr = "mock"
    else:
        paytr = _configured(credentials_for(tenant_code).configured)
    return {
        "paytr": paytr,
        "paddle": _configured(settings.PADDLE_API_KEY and settings.PADDLE_WEBHOOK_SECRET),
    }


@router.get("/health")
async def health_check(
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """
    Overall health for the requesting tenant.
    Database and Redis failures degrade the status; missing providers only show up as `missing`.
    """
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "tenant": tenant.code,
        "database": "unknown",
        "redis": "unknown",
        "notification_queue": None,
        "mail": _configured(settings.RESEND_API_KEY),
        "openai": _configured(settings.OPENAI_API_KEY),
        "payments": _payment_providers(tenant.code),
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        logger.warning("Health check database probe failed: %s", e)
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    try:
        r = redis.from_url(settings.REDIS_URL)
        try:
            await r.ping()
            health_status["notification_queue"] = int(await r.llen(f"rq:queue:{NOTIFICATION_QUEUE_NAME}"))
        finally:
            await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"
        if settings.SLA_USE_QUEUE:
            health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check(tenant: TenantContext = Depends(get_tenant)):
    """Ready once auth, admin access and one payment provider for this tenant are set up."""
    missing: List[str] = []
    if not settings.SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if not settings.ADMIN_SECRET:
        missing.append("ADMIN_SECRET")
    if "configured" not in _payment_providers(tenant.code).values() and not settings.PAYTR_MOCK:
        missing.append("PAYMENT_PROVIDER")
    if settings.SLA_USE_QUEUE and not settings.REDIS_URL:
        missing.append("REDIS_URL")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "tenant": tenant.code, "missing": missing},
        )
    return {"ready": True, "tenant": tenant.code}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
