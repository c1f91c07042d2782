import hashlib
import hmac
import json
from decimal import Decimal

import pytest
from sqlalchemy.future import select

from config import settings
from models.audit_log import AuditLog
from models.credit_ledger import CreditLedger
from models.order import Order, Payment
from models.pricing import CreditPriceTier
from services import paddle
from services.orders import create_order
from services.paytr import PaytrCredentials, callback_hash, merchant_oid_for, verify_paytr_callback


STORE = PaytrCredentials("100001", "merchant-key", "merchant-salt")


@pytest.fixture
def paytr_store(monkeypatch):
    monkeypatch.setattr(settings, "PAYTR_MERCHANT_ID", STORE.merchant_id)
    monkeypatch.setattr(settings, "PAYTR_MERCHANT_KEY", STORE.merchant_key)
    monkeypatch.setattr(settings, "PAYTR_MERCHANT_SALT", STORE.merchant_salt)
    monkeypatch.setattr(settings, "PAYTR_EN_MERCHANT_ID", "")
    monkeypatch.setattr(settings, "PAYTR_MOCK", True)
    return STORE


def _paytr_form(merchant_oid, status="success", total_amount="25000", credentials=STORE):
    return {
        "merchant_oid": merchant_oid,
        "status": status,
        "total_amount": total_amount,
        "hash": callback_hash(credentials, merchant_oid, status, total_amount),
        "payment_type": "card",
    }


def test_paytr_callback_hash_verification():
    expected = callback_hash(STORE, "abc123", "success", "1000")
    assert verify_paytr_callback("abc123", "success", "1000", expected, stores=[STORE])
    assert not verify_paytr_callback("abc123", "success", "1001", expected, stores=[STORE])
    assert not verify_paytr_callback("abc123", "success", "1000", expected, stores=[])
    other = PaytrCredentials("200002", "other-key", "other-salt")
    assert verify_paytr_callback("abc123", "success", "1000", expected, stores=[other, STORE])


def test_paddle_signature_uses_timestamp_prefix():
    body = b'{"event_type":"transaction.completed"}'
    digest = hmac.new(b"whsec", b"1700000000:" + body, hashlib.sha256).hexdigest()
    assert paddle.verify_paddle_signature(body, f"ts=1700000000;h1={digest}", secret="whsec")
    assert not paddle.verify_paddle_signature(body, f"ts=1700000001;h1={digest}", secret="whsec")
    assert not paddle.verify_paddle_signature(body, None, secret="whsec")
    assert paddle.parse_signature_header("ts=1, h1=ABC") == ("1", "abc")


def test_paddle_signature_rejects_non_ascii_header_and_binary_body():
    assert not paddle.verify_paddle_signature(b"{}", "ts=1;h1=\u00e9abc", secret="whsec")

    binary = b"\xff\xfe\x00not-utf8"
    digest = hmac.new(b"whsec", b"1:" + binary, hashlib.sha256).hexdigest()
    assert paddle.verify_paddle_signature(binary, f"ts=1;h1={digest}", secret="whsec")
    assert not paddle.verify_paddle_signature(binary, "ts=1;h1=00", secret="whsec")


@pytest.mark.asyncio
async def test_credit_checkout_then_duplicate_paytr_callbacks_credit_once(api, paytr_store):
    await api.add_profile("buyer-1", email="buyer@example.com")
    async with api.session_maker() as session:
        session.add(CreditPriceTier(scope_type="user", credits_range="[1,)", unit_price_lira=Decimal("2.5"), active=True))
        await session.commit()

    checkout = await api.client.post(
        "/payments/credits/checkout",
        headers=api.headers("buyer-1"),
        json={"credits": 100, "scope_type": "user", "provider": "paytr"},
    )
    assert checkout.status_code == 200
    body = checkout.json()
    assert body["mock"] is True
    order_id = body["order_id"]

    merchant_oid = merchant_oid_for(order_id)
    form = _paytr_form(merchant_oid, total_amount="25000")
    first = await api.client.post("/payments/paytr/webhook", data=form)
    second = await api.client.post("/payments/paytr/webhook", data=form)
    assert first.status_code == 200
    assert first.text == "OK"
    assert second.status_code == 200
    assert second.text == "OK"

    async with api.session_maker() as session:
        order = (await session.execute(select(Order).where(Order.id == order_id))).scalar_one()
        entries = (await session.execute(select(CreditLedger).where(CreditLedger.order_id == order_id))).scalars().all()
        payments = (await session.execute(select(Payment).where(Payment.order_id == order_id))).scalars().all()
    assert order.status == "paid"
    assert order.amount == 25000
    assert len(entries) == 1
    assert entries[0].change == Decimal("100")
    assert entries[0].reason == "credit_purchase"
    assert len(payments) == 1

    balance = await api.client.get("/dashboard/balance", headers=api.headers("buyer-1"))
    assert balance.json()["user_balance"] == 100


@pytest.mark.asyncio
async def test_paytr_webhook_rejects_bad_hash_and_amount_mismatch(api, paytr_store):
    await api.add_profile("buyer-1")
    async with api.session_maker() as session:
        order = await create_order(
            session,
            user_id="buyer-1",
            tenant_id=None,
            amount=10000,
            currency="TRY",
            provider="paytr",
            kind="credit_purchase",
            meta={"credits": 10, "scope_type": "user"},
        )
    merchant_oid = merchant_oid_for(order.id)

    tampered = _paytr_form(merchant_oid, total_amount="10000")
    tampered["hash"] = "not-a-valid-hash"
    response = await api.client.post("/payments/paytr/webhook", data=tampered)
    assert response.status_code == 400
    assert response.json()["detail"] == "signature_invalid"

    mismatch = await api.client.post("/payments/paytr/webhook", data=_paytr_form(merchant_oid, total_amount="9000"))
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "amount_mismatch"

    within_tolerance = await api.client.post("/payments/paytr/webhook", data=_paytr_form(merchant_oid, total_amount="10001"))
    assert within_tolerance.status_code == 200

    missing = await api.client.post("/payments/paytr/webhook", data={"merchant_oid": merchant_oid})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "invalid_payload"

    async with api.session_maker() as session:
        events = (
            await session.execute(select(AuditLog.event).where(AuditLog.action == "paytr.webhook"))
        ).scalars().all()
        stored = (await session.execute(select(Order).where(Order.id == order.id))).scalar_one()
    assert "signature_invalid" in events
    assert "amount_mismatch" in events
    assert stored.status == "paid"


@pytest.mark.asyncio
async def test_paytr_failed_status_closes_pending_order(api, paytr_store):
    await api.add_profile("buyer-1")
    async with api.session_maker() as session:
        order = await create_order(
            session,
            user_id="buyer-1",
            tenant_id=None,
            amount=5000,
            currency="TRY",
            provider="paytr",
            kind="credit_purchase",
            meta={"credits": 5, "scope_type": "user"},
        )

    response = await api.client.post(
        "/payments/paytr/webhook",
        data=_paytr_form(merchant_oid_for(order.id), status="failed", total_amount="5000"),
    )
    assert response.status_code == 200
    assert response.text == "OK"

    async with api.session_maker() as session:
        stored = (await session.execute(select(Order).where(Order.id == order.id))).scalar_one()
        entries = (await session.execute(select(CreditLedger))).scalars().all()
    assert stored.status == "failed"
    assert entries == []


@pytest.mark.asyncio
async def test_paddle_invalid_signature_is_acknowledged_without_changes(api, monkeypatch):
    monkeypatch.setattr(settings, "PADDLE_WEBHOOK_SECRET", "whsec")
    monkeypatch.setattr(settings, "ALLOW_UNVERIFIED_PADDLE_WEBHOOKS", False)
    await api.add_profile("buyer-1")
    async with api.session_maker() as session:
        order = await create_order(
            session,
            user_id="buyer-1",
            tenant_id=None,
            amount=1299,
            currency="USD",
            provider="paddle",
            kind="credit_purchase",
            meta={"credits": 50, "scope_type": "user"},
        )

    event = {"event_type": "transaction.completed", "data": {"id": "txn_1", "status": "completed", "custom_data": {"orderId": order.id}}}
    response = await api.client.post(
        "/paddle/webhooks",
        content=json.dumps(event),
        headers={"paddle-signature": "ts=1;h1=deadbeef", "content-type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    async with api.session_maker() as session:
        stored = (await session.execute(select(Order).where(Order.id == order.id))).scalar_one()
        audit = (
            await session.execute(select(AuditLog).where(AuditLog.action == "paddle.webhook"))
        ).scalars().all()
    assert stored.status == "pending"
    assert [item.event for item in audit] == ["signature_invalid"]


@pytest.mark.asyncio
async def test_paddle_signed_completion_marks_order_paid(api, monkeypatch):
    monkeypatch.setattr(settings, "PADDLE_WEBHOOK_SECRET", "whsec")
    await api.add_profile("buyer-1")
    async with api.session_maker() as session:
        order = await create_order(
            session,
            user_id="buyer-1",
            tenant_id=None,
            amount=1299,
            currency="USD",
            provider="paddle",
            kind="credit_purchase",
            meta={"credits": 50, "scope_type": "user"},
        )

    raw = json.dumps(
        {
            "event_type": "transaction.completed",
            "data": {
                "id": "txn_42",
                "status": "completed",
                "currency_code": "USD",
                "custom_data": {"orderId": order.id},
                "details": {"totals": {"grand_total": "1299"}},
            },
        }
    )
    signature = hmac.new(b"whsec", f"1700000000:{raw}".encode("utf-8"), hashlib.sha256).hexdigest()
    headers = {"paddle-signature": f"ts=1700000000;h1={signature}", "content-type": "application/json"}

    first = await api.client.post("/paddle/webhooks", content=raw, headers=headers)
    second = await api.client.post("/paddle/webhooks", content=raw, headers=headers)
    assert first.json()["noop"] is False
    assert second.json()["noop"] is True

    async with api.session_maker() as session:
        entries = (await session.execute(select(CreditLedger).where(CreditLedger.order_id == order.id))).scalars().all()
        payment = (await session.execute(select(Payment).where(Payment.order_id == order.id))).scalar_one()
    assert len(entries) == 1
    assert entries[0].change == Decimal("50")
    assert payment.provider_ref == "txn_42"
    assert payment.amount_cents == 1299


@pytest.mark.asyncio
async def test_mock_mark_paid_requires_flag_and_is_idempotent(api, monkeypatch):
    await api.add_profile("admin-1", role="admin")
    await api.add_profile("buyer-1")
    async with api.session_maker() as session:
        order = await create_order(
            session,
            user_id="buyer-1",
            tenant_id=None,
            amount=1000,
            currency="TRY",
            provider="paytr",
            kind="credit_purchase",
            meta={"credits": 4, "scope_type": "user"},
        )

    monkeypatch.setattr(settings, "PAYMENTS_MOCK_ENABLED", False)
    disabled = await api.client.post("/payments/mock/mark-paid", headers=api.headers("admin-1"), json={"orderId": order.id})
    assert disabled.status_code == 403
    assert disabled.json()["detail"] == "mock_payments_disabled"

    monkeypatch.setattr(settings, "PAYMENTS_MOCK_ENABLED", True)
    first = await api.client.post("/payments/mock/mark-paid", headers=api.headers("admin-1"), json={"orderId": order.id})
    second = await api.client.post("/payments/mock/mark-paid", headers=api.headers("admin-1"), json={"order_id": order.id})
    assert first.json() == {"ok": True, "data": {"order_id": order.id, "status": "paid"}}
    assert second.json() == {"ok": True, "data": {"order_id": order.id, "status": "paid", "noop": True}}

    mine = await api.client.get(f"/orders/{order.id}", headers=api.headers("buyer-1"))
    assert mine.status_code == 200
    assert mine.json()["order"]["status"] == "paid"

    await api.add_profile("someone-else")
    hidden = await api.client.get(f"/orders/{order.id}", headers=api.headers("someone-else"))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_paddle_webhook_with_latin1_signature_header_is_audited(api, monkeypatch):
    monkeypatch.setattr(settings, "PADDLE_WEBHOOK_SECRET", "whsec")
    monkeypatch.setattr(settings, "ALLOW_UNVERIFIED_PADDLE_WEBHOOKS", False)

    response = await api.client.post(
        "/paddle/webhooks",
        content=b"\xff\xfe{}",
        headers={"paddle-signature": "ts=1;h1=éabc".encode("latin-1"), "content-type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    async with api.session_maker() as session:
        audit = (
            await session.execute(select(AuditLog).where(AuditLog.action == "paddle.webhook"))
        ).scalars().all()
    assert [item.event for item in audit] == ["signature_invalid"]
