"""Order lifecycle: creation, exactly-once payment settlement and notifications."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import admin_notify_emails
from models.order import Order, Payment
from models.profile import Profile
from models.question import Question
from services.credits import add_entry, as_number, to_decimal
from services.mailer import payment_receipt_message, send_and_log
from services.questions import approve_question, as_utc, notify_assignee

logger = logging.getLogger(__name__)

_HEX32 = re.compile(r"^[0-9a-fA-F]{32}$")


def order_ref_candidates(ref: str) -> List[str]:
    """Raw reference plus its UUID form when it is 32 hex characters."""
    value = (ref or "").strip()
    candidates = [value] if value else []
    if _HEX32.match(value):
        lowered = value.lower()
        candidates.append(f"{lowered[:8]}-{lowered[8:12]}-{lowered[12:16]}-{lowered[16:20]}-{lowered[20:]}")
    return candidates


async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
    return (await db.execute(select(Order).where(Order.id == order_id))).scalar_one_or_none()


async def get_order_or_404(db: AsyncSession, order_id: str) -> Order:
    order = await get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order_not_found")
    return order


async def find_order_by_ref(db: AsyncSession, ref: str) -> Optional[Order]:
    """Look up by provider_ref first, then by id (re-hyphenating PayTR oids)."""
    candidates = order_ref_candidates(ref)
    if not candidates:
        return None
    by_ref = (
        await db.execute(select(Order).where(Order.provider_ref.in_(candidates)).order_by(Order.created_at.desc()))
    ).scalars().first()
    if by_ref is not None:
        return by_ref
    return (await db.execute(select(Order).where(Order.id.in_(candidates)))).scalars().first()


async def create_order(
    db: AsyncSession,
    *,
    user_id: str,
    tenant_id: Optional[str],
    amount: Optional[int],
    currency: str,
    provider: str,
    kind: str,
    meta: Optional[Dict[str, Any]] = None,
    question_id: Optional[str] = None,
) -> Order:
    order = Order(
        user_id=user_id,
        tenant_id=tenant_id,
        question_id=question_id,
        amount=amount,
        currency=currency,
        status="pending",
        provider=provider,
        meta={**(meta or {}), "kind": kind},
        created_at=datetime.now(timezone.utc),
    )
    db.add(order)
    await db.commit()
    return order


async def find_pending_question_order(db: AsyncSession, question_id: str, user_id: str, provider: str) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .where(
            Order.question_id == question_id,
            Order.user_id == user_id,
            Order.provider == provider,
            Order.status == "pending",
        )
        .order_by(Order.created_at.desc())
    )
    return result.scalars().first()


async def _payment_exists(db: AsyncSession, provider: str, provider_ref: Optional[str]) -> bool:
    if not provider_ref:
        return False
    result = await db.execute(
        select(Payment.id).where(Payment.provider == provider, Payment.provider_ref == provider_ref)
    )
    return result.first() is not None


async def _apply_paid_side_effects(db: AsyncSession, order: Order, now: datetime) -> Dict[str, Any]:
    meta = dict(order.meta or {})
    kind = meta.get("kind")
    effects: Dict[str, Any] = {"kind": kind}

    if kind == "credit_purchase":
        credits = to_decimal(meta.get("credits"))
        scope_type = "org" if meta.get("scope_type") == "org" else "user"
        scope_id = meta.get("org_id") if scope_type == "org" else order.user_id
        if credits > 0 and scope_id:
            add_entry(
                db,
                scope_type=scope_type,
                scope_id=scope_id,
                change=credits,
                reason="credit_purchase",
                order_id=order.id,
                meta={"provider": order.provider, "amount": order.amount, "currency": order.currency},
            )
            effects["credits_granted"] = as_number(credits)
        else:
            logger.warning("Paid credit order %s has no usable credits/scope in meta", order.id)

    question_id = order.question_id or meta.get("question_id")
    if kind == "question_payment" and question_id:
        question = (await db.execute(select(Question).where(Question.id == question_id))).scalar_one_or_none()
        if question is not None and approve_question(question, now):
            effects["question_approved"] = question.id
    return effects


async def mark_order_paid(
    db: AsyncSession,
    order: Order,
    *,
    provider: str,
    provider_ref: Optional[str] = None,
    amount_cents: Optional[int] = None,
    currency: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Settle an order exactly once.

    The pending -> paid update is conditional on the current status, so
    concurrent deliveries race on one row and only the winner records the
    payment and applies the ledger credit or question approval. Everything
    commits together; later callers get `noop: True`.
    """
    if order.status == "paid":
        return {"order_id": order.id, "status": "paid", "noop": True}
    if order.status != "pending":
        raise HTTPException(status_code=409, detail="order_not_pending")

    now = datetime.now(timezone.utc)
    values: Dict[str, Any] = {"status": "paid", "paid_at": now, "provider": provider}
    if provider_ref:
        values["provider_ref"] = provider_ref
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == "pending")
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        await db.rollback()
        current = await get_order(db, order.id)
        if current is not None and current.status == "paid":
            return {"order_id": order.id, "status": "paid", "noop": True}
        raise HTTPException(status_code=409, detail="order_not_pending")

    try:
        if not await _payment_exists(db, provider, provider_ref):
            db.add(
                Payment(
                    order_id=order.id,
                    question_id=order.question_id,
                    tenant_id=order.tenant_id,
                    provider=provider,
                    provider_ref=provider_ref,
                    amount_cents=amount_cents if amount_cents is not None else order.amount,
                    currency=currency or order.currency,
                    status="paid",
                    raw_payload=payload,
                    created_at=now,
                )
            )
        effects = await _apply_paid_side_effects(db, order, now)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("Order %s marked paid via %s (%s)", order.id, provider, provider_ref)
    return {"order_id": order.id, "status": "paid", "noop": False, **effects}


async def mark_order_closed(db: AsyncSession, order: Order, status: str, reason: Optional[str] = None) -> bool:
    """pending -> failed|canceled. Paid orders never move back."""
    if status not in ("failed", "canceled"):
        raise ValueError(f"Unsupported close status: {status}")
    meta = dict(order.meta or {})
    if reason:
        meta["close_reason"] = reason
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == "pending")
        .values(status=status, meta=meta)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return result.rowcount > 0


async def notify_order_paid(db: AsyncSession, order_id: str, lang: str = "tr") -> None:
    """Receipt to the buyer and admins, plus the consultant for question payments. Best effort."""
    order = await get_order(db, order_id)
    if order is None:
        return
    lang = (order.meta or {}).get("lang") or lang
    buyer = None
    if order.user_id:
        buyer = (await db.execute(select(Profile).where(Profile.id == order.user_id))).scalar_one_or_none()

    message = payment_receipt_message(lang, order.id, order.amount, order.currency)
    recipients = [buyer.email] if buyer and buyer.email else []
    for email in admin_notify_emails():
        if email not in recipients:
            recipients.append(email)
    if recipients:
        await send_and_log(
            db,
            "order.paid.receipt",
            recipients,
            message["subject"],
            message["text"],
            lang=lang,
            template="payment_receipt",
            tenant_id=order.tenant_id,
            entity_type="order",
            entity_id=order.id,
        )
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Receipt log insert failed for order %s: %s", order.id, exc)
            await db.rollback()

    question_id = order.question_id or (order.meta or {}).get("question_id")
    if (order.meta or {}).get("kind") == "question_payment" and question_id:
        question = (await db.execute(select(Question).where(Question.id == question_id))).scalar_one_or_none()
        if question is not None:
            await notify_assignee(db, question, lang)


def serialize_order(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "tenant_id": order.tenant_id,
        "question_id": order.question_id,
        "amount": order.amount,
        "currency": order.currency,
        "status": order.status,
        "provider": order.provider,
        "provider_ref": order.provider_ref,
        "meta": order.meta,
        "paid_at": as_utc(order.paid_at).isoformat() if order.paid_at else None,
        "created_at": as_utc(order.created_at).isoformat() if order.created_at else None,
    }


def serialize_payment(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "provider": payment.provider,
        "provider_ref": payment.provider_ref,
        "amount_cents": payment.amount_cents,
        "currency": payment.currency,
        "status": payment.status,
        "created_at": as_utc(payment.created_at).isoformat() if payment.created_at else None,
    }


async def list_orders(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    provider: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Order]:
    query = select(Order)
    if user_id:
        query = query.where(Order.user_id == user_id)
    if status:
        query = query.where(Order.status == status)
    if provider:
        query = query.where(Order.provider == provider)
    if search:
        query = query.where(or_(Order.id == search, Order.provider_ref == search, Order.question_id == search))
    result = await db.execute(query.order_by(Order.created_at.desc(), Order.id.asc()).offset(offset).limit(limit))
    return list(result.scalars().all())
