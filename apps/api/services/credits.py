"""Credit ledger and balance helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_ledger import CreditLedger
from models.organization import ORG_ROLE_RANK, OrganizationMember
from models.question import Question

logger = logging.getLogger(__name__)

SCOPE_TYPES = ("user", "org")
BALANCE_ROW_LIMIT = 50000
PURCHASE_REASONS = ("purchase", "credit_purchase")
Number = Union[int, float, Decimal, str]


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def as_number(value: Any) -> Union[int, float]:
    """JSON-friendly number: integral decimals become int."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def ensure_scope_type(scope_type: Optional[str]) -> str:
    normalized = (scope_type or "").strip().lower()
    if normalized not in SCOPE_TYPES:
        raise HTTPException(status_code=400, detail="invalid_scope_type")
    return normalized


async def get_balance(db: AsyncSession, scope_type: str, scope_id: str) -> Decimal:
    """Sum of `change` over the scope's rows (first BALANCE_ROW_LIMIT rows)."""
    rows = (
        select(CreditLedger.change)
        .where(CreditLedger.scope_type == scope_type, CreditLedger.scope_id == scope_id)
        .order_by(CreditLedger.created_at.asc(), CreditLedger.id.asc())
        .limit(BALANCE_ROW_LIMIT)
        .subquery()
    )
    result = await db.execute(select(func.coalesce(func.sum(rows.c.change), 0)))
    return to_decimal(result.scalar())


def add_entry(
    db: AsyncSession,
    *,
    scope_type: str,
    scope_id: str,
    change: Number,
    reason: str,
    question_id: Optional[str] = None,
    order_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> CreditLedger:
    """Stage a ledger row in the caller's transaction. Rows are never updated."""
    entry = CreditLedger(
        scope_type=ensure_scope_type(scope_type),
        scope_id=scope_id,
        change=to_decimal(change),
        reason=reason,
        question_id=question_id,
        order_id=order_id,
        meta=meta,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


async def resolve_org_for_user(
    db: AsyncSession,
    user_id: str,
    *,
    active_only: bool = True,
) -> Optional[str]:
    """Org id of the user's highest-ranked membership (owner, then admin, then member)."""
    query = select(OrganizationMember).where(OrganizationMember.user_id == user_id)
    if active_only:
        query = query.where(OrganizationMember.status == "active")
    memberships = (await db.execute(query.order_by(OrganizationMember.created_at.asc()))).scalars().all()
    if not memberships:
        return None
    best = min(memberships, key=lambda member: ORG_ROLE_RANK.get(member.org_role or "member", 99))
    return best.org_id


async def debit_for_question(
    db: AsyncSession,
    *,
    scope_type: str,
    scope_id: str,
    required: Number,
    question_id: str,
    actor_id: Optional[str] = None,
) -> CreditLedger:
    """Stage a question debit after checking the scope's balance covers it."""
    amount = to_decimal(required)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="invalid_required_credits")
    balance = await get_balance(db, scope_type, scope_id)
    if balance < amount:
        raise HTTPException(status_code=400, detail="insufficient_credits")
    return add_entry(
        db,
        scope_type=scope_type,
        scope_id=scope_id,
        change=-amount,
        reason="question_debit",
        question_id=question_id,
        meta={"paid_by": actor_id, "required": as_number(amount)},
    )


async def manual_adjust(
    db: AsyncSession,
    *,
    scope_type: str,
    scope_id: Optional[str],
    amount: Number,
    negate: bool,
    adjusted_by: Optional[str],
    member_user_id: Optional[str] = None,
) -> CreditLedger:
    """Admin correction. Balances may go negative here."""
    normalized_scope = ensure_scope_type(scope_type)
    target_id = (scope_id or "").strip() or None
    if normalized_scope == "org" and not target_id and member_user_id:
        target_id = await resolve_org_for_user(db, member_user_id, active_only=False)
    if not target_id:
        raise HTTPException(status_code=400, detail="missing_scope")

    credits = to_decimal(amount)
    if credits <= 0:
        raise HTTPException(status_code=400, detail="amount_must_be_positive")

    entry = add_entry(
        db,
        scope_type=normalized_scope,
        scope_id=target_id,
        change=-credits if negate else credits,
        reason="manual_adjust",
        meta={
            "kind": "manual_decrease" if negate else "manual_increase",
            "credits": as_number(credits),
            "adjusted_by": adjusted_by,
            "source": "admin_panel",
        },
    )
    await db.commit()
    logger.info("Manual credit adjust %s:%s by %s (%s)", normalized_scope, target_id, as_number(entry.change), adjusted_by)
    return entry


def serialize_entry(entry: CreditLedger, question_title: Optional[str] = None) -> Dict[str, Any]:
    payload = {
        "id": entry.id,
        "scope_type": entry.scope_type,
        "scope_id": entry.scope_id,
        "change": as_number(entry.change),
        "reason": entry.reason,
        "question_id": entry.question_id,
        "order_id": entry.order_id,
        "meta": entry.meta,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
    if question_title is not None:
        payload["question_title"] = question_title
    return payload


async def _scope_filters(db: AsyncSession, user_id: str) -> List[Any]:
    org_id = await resolve_org_for_user(db, user_id)
    filters = [(CreditLedger.scope_type == "user") & (CreditLedger.scope_id == user_id)]
    if org_id:
        filters.append((CreditLedger.scope_type == "org") & (CreditLedger.scope_id == org_id))
    return filters


async def get_credit_activity(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """Latest purchases and usages for the user and their organization."""
    scope = or_(*(await _scope_filters(db, user_id)))
    purchases = (
        await db.execute(
            select(CreditLedger)
            .where(scope, CreditLedger.change > 0, CreditLedger.reason.in_(PURCHASE_REASONS))
            .order_by(CreditLedger.created_at.desc())
            .limit(3)
        )
    ).scalars().all()
    usages = (
        await db.execute(
            select(CreditLedger)
            .where(scope, CreditLedger.change < 0)
            .order_by(CreditLedger.created_at.desc())
            .limit(20)
        )
    ).scalars().all()

    question_ids = {entry.question_id for entry in usages if entry.question_id}
    titles: Dict[str, str] = {}
    if question_ids:
        rows = await db.execute(select(Question.id, Question.title).where(Question.id.in_(question_ids)))
        titles = {row.id: row.title for row in rows}

    return {
        "ok": True,
        "purchases": [serialize_entry(entry) for entry in purchases],
        "usages": [serialize_entry(entry, titles.get(entry.question_id or "", "")) for entry in usages],
    }


async def list_user_ledger(db: AsyncSession, user_id: str, limit: int = 1000) -> List[CreditLedger]:
    scope = or_(*(await _scope_filters(db, user_id)))
    result = await db.execute(
        select(CreditLedger).where(scope).order_by(CreditLedger.created_at.desc(), CreditLedger.id.asc()).limit(limit)
    )
    return list(result.scalars().all())
