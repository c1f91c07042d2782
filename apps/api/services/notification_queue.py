"""Durable notification job queue helpers (Redis/RQ)."""

from __future__ import annotations

from datetime import datetime, timezone

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from config import settings


NOTIFICATION_QUEUE_NAME = "notification_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_notification_queue() -> Queue:
    """Return the configured notification queue."""
    return Queue(
        name=NOTIFICATION_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=600,
    )


def enqueue_sla_sweep() -> Job:
    """Enqueue one SLA reminder sweep; one job per minute at most."""
    queue = get_notification_queue()
    minute_key = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    return queue.enqueue(
        "services.sla.process_sla_reminders_job",
        job_id=f"sla-sweep:{minute_key}",
        retry=Retry(max=3, interval=[15, 60, 180]),
        job_timeout=600,
        result_ttl=86400,
        failure_ttl=86400,
    )
