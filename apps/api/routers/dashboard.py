"""Customer dashboard: balances, credit activity and ledger export."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.credits import as_number, get_balance, get_credit_activity, list_user_ledger, resolve_org_for_user
from services.exports import ledger_csv

router = APIRouter()


@router.get("/balance")
async def balance(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user_balance = await get_balance(db, "user", auth.user_id)
    org_id = await resolve_org_for_user(db, auth.user_id, active_only=False)
    org_balance = await get_balance(db, "org", org_id) if org_id else None
    return {
        "ok": True,
        "user_balance": as_number(user_balance),
        "org_balance": as_number(org_balance) if org_balance is not None else None,
        "org_id": org_id,
    }


@router.get("/credits")
async def credits(
    format: Optional[str] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    if (format or "").lower() == "csv":
        entries = await list_user_ledger(db, auth.user_id, limit=1000)
        return Response(
            content=ledger_csv(entries),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="credit_ledger.csv"'},
        )
    return await get_credit_activity(db, auth.user_id)
