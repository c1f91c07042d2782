import pytest

from config import settings


@pytest.mark.asyncio
async def test_liveness(api):
    response = await api.client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"alive": True}


@pytest.mark.asyncio
async def test_readiness_lists_missing_configuration(api, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", "")
    monkeypatch.setattr(settings, "ADMIN_SECRET", "")
    monkeypatch.setattr(settings, "PAYTR_MOCK", False)
    monkeypatch.setattr(settings, "PAYTR_MERCHANT_ID", "")
    monkeypatch.setattr(settings, "PADDLE_API_KEY", "")
    monkeypatch.setattr(settings, "SLA_USE_QUEUE", False)

    response = await api.client.get("/health/ready")
    assert response.status_code == 503
    assert response.json() == {
        "ready": False,
        "tenant": "tr",
        "missing": ["SUPABASE_URL", "ADMIN_SECRET", "PAYMENT_PROVIDER"],
    }


@pytest.mark.asyncio
async def test_readiness_accepts_mock_payments(api, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://auth.example")
    monkeypatch.setattr(settings, "ADMIN_SECRET", "s3cret-admin")
    monkeypatch.setattr(settings, "PAYTR_MOCK", True)
    monkeypatch.setattr(settings, "SLA_USE_QUEUE", False)

    response = await api.client.get("/health/ready")
    assert response.status_code == 200
    assert response.json() == {"ready": True, "tenant": "tr"}
