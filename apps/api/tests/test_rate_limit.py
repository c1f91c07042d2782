import pytest
from fastapi import HTTPException
from starlette.requests import Request

from main import app
from routers import rate_limit


@pytest.mark.asyncio
async def test_local_counters_drop_finished_windows():
    start = 1_700_000_000.0
    for second in range(1000):
        now = start + second
        key, _ = rate_limit._window_key("contact", "10.0.0.9", 1, now)
        assert await rate_limit._consume_local_quota(key, 5, 1, now=now)

    assert len(rate_limit._local_counters) <= 2


@pytest.mark.asyncio
async def test_local_counter_enforces_limit_within_window():
    now = 1_700_000_000.0
    key, _ = rate_limit._window_key("login", "10.0.0.8", 60, now)
    results = [await rate_limit._consume_local_quota(key, 3, 60, now=now + offset) for offset in range(4)]
    assert results == [True, True, True, False]


@pytest.mark.asyncio
async def test_dependency_falls_back_to_local_counters(monkeypatch):
    async def redis_down(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", redis_down)
    monkeypatch.setattr(app.state, "disable_rate_limits", False)
    request = Request(
        {
            "type": "http",
            "app": app,
            "method": "POST",
            "path": "/contact",
            "headers": [(b"x-forwarded-for", b"10.0.0.7")],
            "client": ("127.0.0.1", 5000),
        }
    )
    dependency = rate_limit.rate_limit("contact", 1, 3600)

    await dependency(request)
    with pytest.raises(HTTPException) as blocked:
        await dependency(request)
    assert blocked.value.status_code == 429
    assert blocked.value.detail == "rate_limited"
    assert int(blocked.value.headers["Retry-After"]) > 0
