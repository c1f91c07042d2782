"""Scheduler-facing endpoints guarded by CRON_SECRET."""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services.notification_queue import enqueue_sla_sweep
from services.sla import run_sla_reminders

router = APIRouter()
logger = logging.getLogger(__name__)


def require_cron_secret(request: Request) -> None:
    expected = (settings.CRON_SECRET or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="cron_not_configured")
    supplied = request.query_params.get("key") or request.headers.get("x-cron-secret") or ""
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="unauthorized")


@router.api_route("/sla-reminders", methods=["GET", "POST"])
async def sla_reminders(
    _secret: None = Depends(require_cron_secret),
    db: AsyncSession = Depends(get_db),
):
    """Run the SLA reminder sweep now, or hand it to the notification worker."""
    if settings.SLA_USE_QUEUE:
        try:
            job = enqueue_sla_sweep()
        except RedisError as exc:
            logger.error("Could not enqueue SLA sweep: %s", exc)
            raise HTTPException(status_code=503, detail="queue_unavailable") from exc
        return {"ok": True, "queued": True, "job_id": job.id}
    return await run_sla_reminders(db)
