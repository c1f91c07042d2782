"""Fixed-window rate limiting backed by Redis, with an in-process fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings
from services.audit_log import client_ip

logger = logging.getLogger(__name__)

_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def _window_key(prefix: str, client_id: str, window_seconds: int, now: float) -> Tuple[str, int]:
    bucket = int(now // window_seconds)
    reset_in = int((bucket + 1) * window_seconds - now) + 1
    return f"g360:rate:{prefix}:{client_id}:{bucket}", reset_in


async def _consume_local_quota(key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
    now = time.time() if now is None else now
    async with _local_lock:
        # Keys carry the window bucket, so finished windows are dropped here.
        for stale_key in [name for name, (_, reset_at) in _local_counters.items() if reset_at <= now]:
            del _local_counters[stale_key]
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count = 0
            reset_at = now + window_seconds
        count += 1
        _local_counters[key] = (count, reset_at)
        return count <= limit


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> bool:
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        current = await redis_client.incr(key)
        if current == 1:
            await redis_client.expire(key, window_seconds)
    finally:
        await redis_client.aclose()
    return current <= limit


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[[Request], object]:
    """Return a FastAPI dependency that enforces per-client request quotas."""

    async def _dependency(request: Request):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key, reset_in = _window_key(prefix, client_ip(request), window_seconds, time.time())
        try:
            allowed = await _consume_redis_quota(key, limit, window_seconds)
        except (RedisError, OSError) as exc:
            logger.debug("Redis rate limiter unavailable, using local counters: %s", exc)
            allowed = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            raise HTTPException(
                status_code=429,
                detail="rate_limited",
                headers={"Retry-After": str(reset_in)},
            )

    return _dependency
