"""Admin credit, pricing, order and payment tooling."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.credit_ledger import CreditLedger
from models.order import Order, Payment
from models.question import Question
from routers.auth_scope import AdminContext, require_admin
from routers.payload import as_bool, read_payload
from services.audit_log import add_audit, record_audit
from services.credits import as_number, manual_adjust, serialize_entry
from services.orders import get_order_or_404, list_orders, serialize_order, serialize_payment
from services.pricing import (
    get_subscription_settings,
    list_tiers,
    replace_tiers,
    serialize_settings,
    serialize_tier,
    update_subscription_settings,
    validate_tiers,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class BulkDeleteRequest(BaseModel):
    ids: List[str]


@router.post("/credits/adjust")
async def adjust_credits(
    request: Request,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Manual top-up or deduction from the admin panel."""
    payload = await read_payload(request)
    entry = await manual_adjust(
        db,
        scope_type=str(payload.get("scope_type") or "user"),
        scope_id=payload.get("scope_id"),
        amount=payload.get("amount"),
        negate=as_bool(payload.get("negate")),
        adjusted_by=admin.actor_id or admin.via,
        member_user_id=payload.get("member_user_id"),
    )
    await record_audit(
        db,
        "credits.adjust",
        resource_type="credit_ledger",
        resource_id=entry.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"scope_type": entry.scope_type, "scope_id": entry.scope_id, "change": as_number(entry.change)},
    )
    return {"ok": True, "entry": serialize_entry(entry)}


@router.delete("/credits/ledger/{entry_id}")
async def delete_ledger_entry(
    entry_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hard delete for correcting mistaken rows. No reversal entry is written."""
    entry = (await db.execute(select(CreditLedger).where(CreditLedger.id == entry_id))).scalar_one_or_none()
    if entry is None:
        raise HTTPException(status_code=404, detail="ledger_entry_not_found")
    snapshot = serialize_entry(entry)
    await db.delete(entry)
    add_audit(
        db,
        "credits.ledger.delete",
        resource_type="credit_ledger",
        resource_id=entry_id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload=snapshot,
    )
    await db.commit()
    logger.warning("Ledger entry %s deleted by %s", entry_id, admin.actor_id or admin.via)
    return {"ok": True, "deleted": entry_id}


@router.get("/subscription-settings")
async def get_settings(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    settings_row = await get_subscription_settings(db)
    tiers_user = await list_tiers(db, "user")
    tiers_org = await list_tiers(db, "org")
    return {
        "ok": True,
        "settings": serialize_settings(settings_row),
        "tiers_user": [serialize_tier(tier) for tier in tiers_user],
        "tiers_org": [serialize_tier(tier) for tier in tiers_org],
        "warnings": validate_tiers(tiers_user) + validate_tiers(tiers_org),
    }


@router.post("/subscription-settings")
async def save_settings(
    request: Request,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update settings fields and replace tier lists that are present in the body."""
    payload = await read_payload(request)
    settings_row = await update_subscription_settings(db, payload.get("settings") or payload)

    warnings = []
    for scope_type in ("user", "org"):
        key = f"tiers_{scope_type}"
        if key not in payload:
            continue
        rows = payload[key] or []
        if not isinstance(rows, list):
            raise HTTPException(status_code=400, detail=f"{key}_must_be_list")
        tiers = await replace_tiers(db, scope_type, rows)
        warnings.extend(f"{scope_type}:{warning}" for warning in validate_tiers(tiers))

    add_audit(db, "subscription_settings.update", resource_type="subscription_settings", actor_role="admin", actor_id=admin.actor_id)
    await db.commit()
    return {"ok": True, "settings": serialize_settings(settings_row), "warnings": warnings}


@router.get("/orders/{order_id}")
async def get_order_detail(
    order_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await get_order_or_404(db, order_id)
    payments = (
        await db.execute(select(Payment).where(Payment.order_id == order.id).order_by(Payment.created_at.asc()))
    ).scalars().all()
    return {"ok": True, "order": serialize_order(order), "payments": [serialize_payment(item) for item in payments]}


@router.get("/payments")
async def list_payments(
    status: Optional[str] = Query(default=None),
    provider: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=128),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders = await list_orders(db, status=status, provider=provider, search=q, limit=limit, offset=offset)
    return {"ok": True, "orders": [serialize_order(order) for order in orders], "limit": limit, "offset": offset}


@router.post("/payments/bulk-delete")
async def bulk_delete_payments(
    body: BulkDeleteRequest,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete orders and their payment rows. Ledger entries are left alone."""
    ids = [item for item in dict.fromkeys(body.ids) if item]
    if not ids:
        raise HTTPException(status_code=400, detail="ids_required")
    await db.execute(delete(Payment).where(Payment.order_id.in_(ids)))
    result = await db.execute(delete(Order).where(Order.id.in_(ids)))
    add_audit(db, "payments.bulk_delete", resource_type="order", actor_role="admin", actor_id=admin.actor_id, payload={"ids": ids})
    await db.commit()
    return {"ok": True, "deleted": int(result.rowcount or 0)}


@router.get("/stats")
async def admin_stats(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Question counts by status, paid orders and credits sold/spent."""
    status_rows = await db.execute(select(Question.status, func.count(Question.id)).group_by(Question.status))
    paid_orders = await db.execute(select(func.count(Order.id)).where(Order.status == "paid"))
    sold = await db.execute(select(func.coalesce(func.sum(CreditLedger.change), 0)).where(CreditLedger.change > 0))
    spent = await db.execute(select(func.coalesce(func.sum(CreditLedger.change), 0)).where(CreditLedger.change < 0))
    return {
        "ok": True,
        "questions_by_status": {status: int(count) for status, count in status_rows.all()},
        "paid_orders": int(paid_orders.scalar() or 0),
        "credits_sold": as_number(sold.scalar() or 0),
        "credits_spent": as_number(-(spent.scalar() or 0)),
    }
