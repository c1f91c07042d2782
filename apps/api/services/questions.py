"""Question workflow: status transitions, pricing and credit payment."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import admin_notify_emails, settings
from models.profile import Profile
from models.question import Question, QuestionRevision
from services.credits import as_number, debit_for_question, get_balance, resolve_org_for_user, to_decimal
from services.fx import FxError, parse_tcmb_number
from services.mailer import send_and_log, worker_assignment_message
from services.pricing import get_subscription_settings, required_credits

logger = logging.getLogger(__name__)

ALLOWED_STATUS_TRANSITIONS = {
    "draft": {"submitted", "rejected"},
    "submitted": {"approved", "rejected"},
    "approved": {"completed", "rejected"},
    "completed": set(),
    "rejected": {"submitted"},
}
ANSWER_STATUS_VALUES = ("drafting", "ready", "sent", "revision_requested")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_transition(current: Optional[str], target: str) -> None:
    if target not in ALLOWED_STATUS_TRANSITIONS.get(current or "draft", set()):
        raise HTTPException(status_code=409, detail="invalid_status_transition")


def question_price_tl(question: Question) -> Decimal:
    for value in (question.price_final_tl, question.price_tl):
        if value is not None and to_decimal(value) > 0:
            return to_decimal(value)
    return to_decimal(settings.DEFAULT_QUESTION_PRICE_TL)


def tl_to_kurus(value: Any) -> int:
    """TL amount (number or `1.234,50` style text) in kuruş."""
    if isinstance(value, str):
        try:
            amount = parse_tcmb_number(value)
        except FxError as exc:
            raise HTTPException(status_code=400, detail="invalid_price") from exc
    else:
        amount = to_decimal(value)
    return int((amount * 100).quantize(Decimal("1")))


def serialize_question(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "user_id": question.user_id,
        "tenant_id": question.tenant_id,
        "title": question.title,
        "description": question.description,
        "status": question.status,
        "answer_status": question.answer_status,
        "price_tl": as_number(question.price_tl) if question.price_tl is not None else None,
        "price_final_tl": as_number(question.price_final_tl) if question.price_final_tl is not None else None,
        "sla_due_at": as_utc(question.sla_due_at).isoformat() if question.sla_due_at else None,
        "assigned_to": question.assigned_to,
        "approved_at": as_utc(question.approved_at).isoformat() if question.approved_at else None,
        "created_at": as_utc(question.created_at).isoformat() if question.created_at else None,
    }


async def get_question_or_404(db: AsyncSession, question_id: str) -> Question:
    question = (await db.execute(select(Question).where(Question.id == question_id))).scalar_one_or_none()
    if question is None:
        raise HTTPException(status_code=404, detail="question_not_found")
    return question


def owned_question(question: Question, user_id: str) -> Question:
    if question.user_id != user_id:
        raise HTTPException(status_code=403, detail="forbidden")
    return question


def new_question(
    *,
    user_id: str,
    tenant_id: Optional[str],
    title: str,
    description: Optional[str],
    price_tl: Any = None,
    sla_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Question:
    current = now or datetime.now(timezone.utc)
    hours = int(sla_hours or settings.DEFAULT_SLA_HOURS)
    return Question(
        user_id=user_id,
        tenant_id=tenant_id,
        title=title.strip(),
        description=description,
        status="submitted",
        price_tl=to_decimal(price_tl) if price_tl not in (None, "") else None,
        sla_due_at=current + timedelta(hours=max(hours, 1)),
        created_at=current,
    )


def approve_question(question: Question, now: Optional[datetime] = None) -> bool:
    """Move a submitted (or draft) question to approved. Returns False when already past that."""
    if question.status not in ("draft", "submitted"):
        return False
    question.status = "approved"
    question.approved_at = now or datetime.now(timezone.utc)
    return True


async def next_revision_no(db: AsyncSession, question_id: str) -> int:
    result = await db.execute(
        select(func.coalesce(func.max(QuestionRevision.revision_no), 0)).where(QuestionRevision.question_id == question_id)
    )
    return int(result.scalar() or 0) + 1


async def add_revision(
    db: AsyncSession,
    question: Question,
    content: str,
    *,
    source: str = "manual",
    created_by: Optional[str] = None,
) -> QuestionRevision:
    """Append a revision and commit."""
    if not (content or "").strip():
        raise HTTPException(status_code=400, detail="content_required")
    revision = QuestionRevision(
        question_id=question.id,
        revision_no=await next_revision_no(db, question.id),
        content=content,
        source=source,
        created_by=created_by,
        created_at=datetime.now(timezone.utc),
    )
    db.add(revision)
    if question.answer_status in (None, "revision_requested"):
        question.answer_status = "drafting"
    await db.commit()
    return revision


def serialize_revision(revision: QuestionRevision) -> Dict[str, Any]:
    return {
        "id": revision.id,
        "question_id": revision.question_id,
        "revision_no": revision.revision_no,
        "content": revision.content,
        "source": revision.source,
        "created_by": revision.created_by,
        "created_at": as_utc(revision.created_at).isoformat() if revision.created_at else None,
    }


async def notify_assignee(db: AsyncSession, question: Question, lang: str = "tr") -> Optional[Dict[str, Any]]:
    """E-mail the assigned consultant (admins when unassigned). Best effort."""
    recipients = []
    if question.assigned_to:
        worker = (await db.execute(select(Profile).where(Profile.id == question.assigned_to))).scalar_one_or_none()
        if worker and worker.email:
            recipients = [worker.email]
    if not recipients:
        recipients = admin_notify_emails()
    if not recipients:
        return None

    message = worker_assignment_message(lang, question.title, f"{settings.SITE_URL.rstrip('/')}/worker/questions/{question.id}")
    result = await send_and_log(
        db,
        "question.approved.notify",
        recipients,
        message["subject"],
        message["text"],
        lang=lang,
        template="worker_assignment",
        tenant_id=question.tenant_id,
        entity_type="question",
        entity_id=question.id,
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        logger.warning("Notification log insert failed for question %s: %s", question.id, exc)
        await db.rollback()
    return result


async def credit_options(
    db: AsyncSession,
    question: Question,
    user_id: str,
    multiplier: Any = 1,
) -> Dict[str, Any]:
    """Credits required from the user and their organization, with balances."""
    subscription = await get_subscription_settings(db)
    price = question_price_tl(question)
    credit_price = subscription.credit_price_lira
    required_user = required_credits(price, credit_price, subscription.credit_discount_user or 0, multiplier)
    required_org = required_credits(price, credit_price, subscription.credit_discount_org or 0, multiplier)

    user_balance = await get_balance(db, "user", user_id)
    org_id = await resolve_org_for_user(db, user_id)
    org_balance = await get_balance(db, "org", org_id) if org_id else None

    return {
        "ok": True,
        "question_id": question.id,
        "price_tl": as_number(price),
        "required_credits": required_org if org_id else required_user,
        "required_user_credits": required_user,
        "required_org_credits": required_org,
        "user_balance": as_number(user_balance),
        "can_user_pay": required_user > 0 and user_balance >= required_user,
        "org": {"id": org_id} if org_id else None,
        "org_balance": as_number(org_balance) if org_balance is not None else None,
        "can_org_pay": bool(org_id) and required_org > 0 and org_balance is not None and org_balance >= required_org,
    }


async def pay_with_credits(
    db: AsyncSession,
    question: Question,
    user_id: str,
    *,
    scope_type: str = "user",
    multiplier: Any = 1,
    lang: str = "tr",
) -> Dict[str, Any]:
    """Debit the scope and approve the question in one commit."""
    owned_question(question, user_id)
    if question.status not in ("draft", "submitted"):
        raise HTTPException(status_code=409, detail="question_not_payable")

    options = await credit_options(db, question, user_id, multiplier)
    if scope_type == "org":
        org_id = (options.get("org") or {}).get("id")
        if not org_id:
            raise HTTPException(status_code=400, detail="org_not_found")
        scope_id, required = org_id, options["required_org_credits"]
    else:
        scope_id, required = user_id, options["required_user_credits"]

    if required <= 0:
        raise HTTPException(status_code=400, detail="invalid_required_credits")

    # Claim the question first; a concurrent payment loses here instead of debiting twice.
    now = datetime.now(timezone.utc)
    claimed = await db.execute(
        update(Question)
        .where(Question.id == question.id, Question.status.in_(("draft", "submitted")))
        .values(status="approved", approved_at=now, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if claimed.rowcount == 0:
        await db.rollback()
        raise HTTPException(status_code=409, detail="question_not_payable")

    try:
        entry = await debit_for_question(
            db,
            scope_type=scope_type,
            scope_id=scope_id,
            required=required,
            question_id=question.id,
            actor_id=user_id,
        )
        await db.commit()
    except (HTTPException, SQLAlchemyError):
        await db.rollback()
        raise
    logger.info("Question %s paid with %s credits from %s:%s", question.id, required, scope_type, scope_id)

    await notify_assignee(db, question, lang)
    balance_after = await get_balance(db, scope_type, scope_id)
    return {
        "ok": True,
        "question_id": question.id,
        "status": question.status,
        "debited": required,
        "ledger_id": entry.id,
        "balance_after": as_number(balance_after),
    }
