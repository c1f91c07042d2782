from dataclasses import dataclass
from typing import Dict, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from models.profile import Profile
from routers import rate_limit
from services.session_token import create_session_token


@dataclass
class ApiHarness:
    client: AsyncClient
    session_maker: async_sessionmaker

    async def add_profile(
        self,
        user_id: str,
        role: str = "user",
        email: Optional[str] = None,
        tenant_key: Optional[str] = "tr",
    ) -> Profile:
        async with self.session_maker() as session:
            profile = Profile(
                id=user_id,
                email=email or f"{user_id}@local.invalid",
                full_name=user_id.replace("-", " ").title(),
                role=role,
                tenant_key=tenant_key,
            )
            session.add(profile)
            await session.commit()
            return profile

    def headers(self, user_id: str) -> Dict[str, str]:
        return auth_header(user_id)


def auth_header(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user_id, f'{user_id}@local.invalid')['token']}"}


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def isolated_external_services(monkeypatch, tmp_path):
    """No outbound mail, OpenAI or provider calls; storage under tmp."""
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(settings, "ADMIN_NOTIFY_EMAILS", "")
    monkeypatch.setattr(settings, "ADMIN_EMAILS", "")
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "")
    monkeypatch.setattr(settings, "STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setattr(settings, "TENANT_HOST_MAP", "")
    monkeypatch.setattr(settings, "DEFAULT_TENANT_CODE", "tr")


@pytest_asyncio.fixture
async def api(tmp_path):
    db_path = tmp_path / "api.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield ApiHarness(client=client, session_maker=session_maker)

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(tmp_path):
    db_path = tmp_path / "service.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as session:
        yield session

    await engine.dispose()
