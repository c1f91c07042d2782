"""Checkout, provider callbacks and order lookup."""

import json
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.profile import Profile
from routers.auth_scope import AdminContext, AuthContext, get_auth_context, require_admin
from routers.payload import read_payload
from routers.rate_limit import rate_limit
from routers.tenant_scope import get_tenant
from services import paddle, paytr
from services.audit_log import client_ip, record_audit
from services.credits import as_number, resolve_org_for_user, to_decimal
from services.fx import FxError, fetch_fx_rate, round_half_up
from services.orders import (
    create_order,
    find_order_by_ref,
    find_pending_question_order,
    get_order,
    get_order_or_404,
    list_orders,
    mark_order_closed,
    mark_order_paid,
    notify_order_paid,
    serialize_order,
)
from services.pricing import get_subscription_settings, total_for_purchase
from services.questions import get_question_or_404, owned_question, question_price_tl, tl_to_kurus
from services.tenant import TenantContext

router = APIRouter()
logger = logging.getLogger(__name__)


class PaytrInitiateRequest(BaseModel):
    order_id: Optional[str] = None
    question_id: Optional[str] = None


class CreditCheckoutRequest(BaseModel):
    credits: int = Field(ge=1, le=1000000)
    scope_type: str = Field(default="user", pattern="^(user|org)$")
    provider: str = Field(default="paytr", pattern="^(paytr|paddle)$")


async def _profile(db: AsyncSession, user_id: str) -> Optional[Profile]:
    return (await db.execute(select(Profile).where(Profile.id == user_id))).scalar_one_or_none()


def _paytr_currency(currency: str) -> str:
    return "TL" if currency in ("TRY", "TL") else currency


def _checkout_urls(tenant: TenantContext, order_id: str, provider: str) -> dict:
    base = tenant.base_url.rstrip("/")
    if provider == "paytr":
        return {
            "ok_url": f"{base}/checkout/{order_id}/return?status=success",
            "fail_url": f"{base}/checkout/{order_id}/return?status=failed",
        }
    return {
        "ok_url": f"{base}/checkout/{order_id}/return",
        "fail_url": f"{base}/checkout/{order_id}/cancel",
    }


async def _start_paytr(
    db: AsyncSession,
    request: Request,
    tenant: TenantContext,
    order,
    profile: Optional[Profile],
    basket_label: str,
) -> dict:
    merchant_oid = paytr.merchant_oid_for(order.id)
    urls = _checkout_urls(tenant, order.id, "paytr")
    email = (profile.email if profile else None) or "customer@invalid.local"
    result = await paytr.paytr_initiate(
        paytr.credentials_for(tenant.code),
        merchant_oid=merchant_oid,
        email=email,
        payment_amount=int(order.amount or 0),
        user_ip=client_ip(request),
        user_name=(profile.full_name if profile else None) or email,
        user_address=(profile.address if profile else None) or "-",
        user_phone=(profile.phone if profile else None) or "-",
        basket=[[basket_label, f"{(order.amount or 0) / 100:.2f}", 1]],
        ok_url=urls["ok_url"],
        fail_url=urls["fail_url"],
        lang=tenant.lang,
        currency=_paytr_currency(order.currency),
    )
    order.provider_ref = merchant_oid
    await db.commit()
    return {
        "ok": True,
        "order_id": order.id,
        "provider": "paytr",
        "token": result["token"],
        "iframe_url": result["iframe_url"],
        "mock": result["mock"],
    }


@router.post("/payments/paytr/initiate")
async def paytr_initiate(
    body: PaytrInitiateRequest,
    request: Request,
    _rate_limit: None = Depends(rate_limit("paytr_initiate", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Start (or resume) a PayTR iframe payment for an order or a question."""
    if body.order_id:
        order = await get_order_or_404(db, body.order_id)
        if order.user_id != auth.user_id:
            raise HTTPException(status_code=403, detail="forbidden")
        if order.status != "pending":
            raise HTTPException(status_code=409, detail="order_not_pending")
        label = "Gümrük360 kredi" if (order.meta or {}).get("kind") == "credit_purchase" else "Gümrük360 danışmanlık"
    elif body.question_id:
        question = owned_question(await get_question_or_404(db, body.question_id), auth.user_id)
        if question.status not in ("draft", "submitted"):
            raise HTTPException(status_code=409, detail="question_not_payable")
        amount = tl_to_kurus(question_price_tl(question))
        if amount <= 0:
            raise HTTPException(status_code=400, detail="invalid_amount")
        order = await find_pending_question_order(db, question.id, auth.user_id, "paytr")
        if order is None or order.amount != amount:
            order = await create_order(
                db,
                user_id=auth.user_id,
                tenant_id=tenant.tenant_id,
                amount=amount,
                currency="TRY",
                provider="paytr",
                kind="question_payment",
                question_id=question.id,
                meta={"question_id": question.id, "lang": tenant.lang},
            )
        label = question.title[:60] or "Gümrük360 danışmanlık"
    else:
        raise HTTPException(status_code=400, detail="order_or_question_required")

    if not order.amount or order.amount <= 0:
        raise HTTPException(status_code=400, detail="invalid_amount")
    return await _start_paytr(db, request, tenant, order, await _profile(db, auth.user_id), label)


@router.post("/payments/paytr/webhook")
async def paytr_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """PayTR server callback. Answers plain `OK` once the event is handled."""
    form = await request.form()
    merchant_oid = str(form.get("merchant_oid") or "").strip()
    status = str(form.get("status") or "").strip()
    total_amount = str(form.get("total_amount") or "").strip()
    received_hash = str(form.get("hash") or "").strip()
    if not (merchant_oid and status and total_amount and received_hash):
        raise HTTPException(status_code=400, detail="invalid_payload")

    if not paytr.verify_paytr_callback(merchant_oid, status, total_amount, received_hash):
        await record_audit(db, "paytr.webhook", event="signature_invalid", resource_id=merchant_oid, ip=client_ip(request))
        raise HTTPException(status_code=400, detail="signature_invalid")

    order = await find_order_by_ref(db, merchant_oid)
    if order is None:
        await record_audit(db, "paytr.webhook", event="order_not_found", resource_id=merchant_oid)
        return PlainTextResponse("OK")

    if status != "success":
        closed = await mark_order_closed(db, order, "failed", reason=str(form.get("failed_reason_msg") or status))
        await record_audit(
            db,
            "paytr.webhook",
            event="failed",
            resource_type="order",
            resource_id=order.id,
            payload={"closed": closed, "reason_code": str(form.get("failed_reason_code") or "")},
        )
        return PlainTextResponse("OK")

    try:
        paid_amount = int(total_amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="invalid_payload") from exc

    if order.status == "pending":
        if not order.amount:
            order.amount = paid_amount
            await db.commit()
        elif abs(int(order.amount) - paid_amount) > 1:
            await record_audit(
                db,
                "paytr.webhook",
                event="amount_mismatch",
                resource_type="order",
                resource_id=order.id,
                payload={"expected": order.amount, "received": paid_amount},
            )
            raise HTTPException(status_code=400, detail="amount_mismatch")

    try:
        result = await mark_order_paid(
            db,
            order,
            provider="paytr",
            provider_ref=merchant_oid,
            amount_cents=paid_amount,
            currency=order.currency,
            payload={key: str(value) for key, value in form.items() if key != "hash"},
        )
    except HTTPException as exc:
        if exc.status_code != 409:
            raise
        await record_audit(db, "paytr.webhook", event="order_not_pending", resource_type="order", resource_id=order.id)
        return PlainTextResponse("OK")

    if not result["noop"]:
        await notify_order_paid(db, order.id)
    return PlainTextResponse("OK")


@router.post("/paddle/webhooks")
async def paddle_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Paddle notification. Always 200 so Paddle stops retrying unusable events."""
    raw_body = await request.body()
    if not paddle.verify_paddle_signature(raw_body, request.headers.get("paddle-signature")):
        await record_audit(db, "paddle.webhook", event="signature_invalid", ip=client_ip(request))
        return {"ok": True}

    try:
        event = json.loads(raw_body.decode("utf-8") or "{}")
    except ValueError:
        await record_audit(db, "paddle.webhook", event="invalid_json")
        return {"ok": True}
    if not isinstance(event, dict):
        await record_audit(db, "paddle.webhook", event="invalid_json")
        return {"ok": True}

    event_type = str(event.get("event_type") or "")
    order_id = paddle.extract_order_id(event)
    if not order_id:
        await record_audit(db, "paddle.webhook", event="missing_order_id", payload={"event_type": event_type})
        return {"ok": True}

    order = await get_order(db, order_id)
    if order is None:
        await record_audit(db, "paddle.webhook", event="order_not_found", resource_id=order_id)
        return {"ok": True}

    data = event.get("data") or {}
    if paddle.is_completed(event):
        try:
            result = await mark_order_paid(
                db,
                order,
                provider="paddle",
                provider_ref=str(data.get("id") or order.provider_ref or "") or None,
                amount_cents=paddle.event_amount_cents(event),
                currency=str(data.get("currency_code") or order.currency),
                payload=event,
            )
        except HTTPException as exc:
            if exc.status_code != 409:
                raise
            await record_audit(db, "paddle.webhook", event="order_not_pending", resource_type="order", resource_id=order.id)
            return {"ok": True}
        if not result["noop"]:
            await notify_order_paid(db, order.id)
        return {"ok": True, "order_id": order.id, "status": "paid", "noop": result["noop"]}

    if paddle.is_canceled(event):
        closed = await mark_order_closed(db, order, "canceled", reason=event_type)
        return {"ok": True, "order_id": order.id, "status": "canceled" if closed else order.status}

    await record_audit(db, "paddle.webhook", event="ignored", resource_id=order.id, payload={"event_type": event_type})
    return {"ok": True}


@router.post("/payments/credits/checkout")
async def credits_checkout(
    body: CreditCheckoutRequest,
    request: Request,
    _rate_limit: None = Depends(rate_limit("credits_checkout", limit=20, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create a pending credit-purchase order and start the provider flow."""
    subscription = await get_subscription_settings(db)
    minimum = subscription.min_org_purchase_credits if body.scope_type == "org" else subscription.min_user_purchase_credits
    if minimum and body.credits < int(minimum):
        raise HTTPException(status_code=400, detail={"error": "below_min_purchase", "min_credits": int(minimum)})

    org_id = None
    if body.scope_type == "org":
        org_id = await resolve_org_for_user(db, auth.user_id)
        if not org_id:
            raise HTTPException(status_code=400, detail="org_not_found")

    totals = await total_for_purchase(db, body.scope_type, body.credits)
    meta = {
        "credits": body.credits,
        "scope_type": body.scope_type,
        "unit_price_lira": as_number(totals["unit_price_lira"]),
        "lang": tenant.lang,
    }
    if org_id:
        meta["org_id"] = org_id
    profile = await _profile(db, auth.user_id)

    if body.provider == "paytr":
        amount = int(round_half_up(to_decimal(totals["total_lira"]) * 100))
        order = await create_order(
            db,
            user_id=auth.user_id,
            tenant_id=tenant.tenant_id,
            amount=amount,
            currency="TRY",
            provider="paytr",
            kind="credit_purchase",
            meta=meta,
        )
        return await _start_paytr(db, request, tenant, order, profile, f"{body.credits} kredi")

    try:
        fx = await fetch_fx_rate("USD")
    except FxError as exc:
        raise HTTPException(status_code=502, detail=f"pricing_failed: {exc.code}") from exc
    total_usd = round_half_up(
        to_decimal(totals["total_lira"]) / to_decimal(fx["rate"]) * Decimal(str(tenant.pricing_multiplier)),
        2,
    )
    amount_cents = int(total_usd * 100)
    if amount_cents <= 0:
        raise HTTPException(status_code=400, detail="invalid_amount")
    meta["fx_rate"] = as_number(fx["rate"])
    order = await create_order(
        db,
        user_id=auth.user_id,
        tenant_id=tenant.tenant_id,
        amount=amount_cents,
        currency="USD",
        provider="paddle",
        kind="credit_purchase",
        meta=meta,
    )
    urls = _checkout_urls(tenant, order.id, "paddle")
    transaction = await paddle.create_transaction(
        order_id=order.id,
        amount_cents=amount_cents,
        currency="USD",
        quantity=1,
        email=profile.email if profile else None,
        description=f"{body.credits} credits",
        success_url=urls["ok_url"],
        cancel_url=urls["fail_url"],
        metadata={"scope_type": body.scope_type, "credits": body.credits},
    )
    order.provider_ref = transaction["transaction_id"]
    await db.commit()
    return {
        "ok": True,
        "order_id": order.id,
        "provider": "paddle",
        "transaction_id": transaction["transaction_id"],
        "amount_cents": amount_cents,
        "currency": "USD",
    }


@router.post("/payments/mock/mark-paid")
async def mock_mark_paid(
    request: Request,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Development helper: settle an order without a provider."""
    if not settings.PAYMENTS_MOCK_ENABLED:
        raise HTTPException(status_code=403, detail="mock_payments_disabled")
    payload = await read_payload(request)
    order_id = str(payload.get("orderId") or payload.get("order_id") or "").strip()
    if not order_id:
        raise HTTPException(status_code=400, detail="order_id_required")

    order = await get_order_or_404(db, order_id)
    result = await mark_order_paid(db, order, provider="mock", provider_ref=f"mock-{order.id}")
    if not result["noop"]:
        await notify_order_paid(db, order.id)
    data = {"order_id": order.id, "status": "paid"}
    if result["noop"]:
        data["noop"] = True
    return {"ok": True, "data": data}


@router.get("/orders")
async def my_orders(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    orders = await list_orders(db, user_id=auth.user_id, status=status, limit=limit)
    return {"ok": True, "orders": [serialize_order(order) for order in orders]}


@router.get("/orders/{order_id}")
async def my_order(
    order_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    order = await get_order_or_404(db, order_id)
    if order.user_id != auth.user_id:
        raise HTTPException(status_code=404, detail="order_not_found")
    return {"ok": True, "order": serialize_order(order)}
