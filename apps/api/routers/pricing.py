"""Public pricing and exchange-rate endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_optional_auth_context
from routers.tenant_scope import get_tenant
from services.credits import as_number, ensure_scope_type, to_decimal
from services.fx import FxError, fetch_fx_rate, round_half_up
from services.pricing import get_subscription_settings, total_for_purchase
from services.tenant import TenantContext, resolve_tenant_currency

router = APIRouter()
logger = logging.getLogger(__name__)


async def quote_price(
    db: AsyncSession,
    scope_type: str,
    credits: float,
    *,
    currency: str = "TRY",
) -> dict:
    """TRY tier price with an optional conversion into `currency` at the TCMB rate."""
    normalized = ensure_scope_type(scope_type)
    if credits <= 0:
        subscription = await get_subscription_settings(db)
        base_price = subscription.credit_price_lira
        return {
            "ok": True,
            "scope_type": normalized,
            "credits": credits,
            "credit_price_lira": as_number(base_price) if base_price is not None else None,
            "currency": "TRY",
        }

    totals = await total_for_purchase(db, normalized, credits)
    result = {
        "ok": True,
        "scope_type": normalized,
        "credits": credits,
        "unit_price_lira": as_number(totals["unit_price_lira"]),
        "total_lira": as_number(totals["total_lira"]),
        "currency": currency,
        "unit_price_ccy": None,
        "total_ccy": None,
    }
    if currency == "TRY":
        result["unit_price_ccy"] = result["unit_price_lira"]
        result["total_ccy"] = result["total_lira"]
        return result

    try:
        fx = await fetch_fx_rate(currency)
    except FxError as exc:
        logger.warning("FX lookup for %s failed: %s", currency, exc.code)
        result["fx_error"] = exc.code
        return result
    rate = to_decimal(fx["rate"])
    result["fx_rate"] = as_number(rate)
    result["fx_asof"] = fx.get("asof")
    result["unit_price_ccy"] = float(round_half_up(totals["unit_price_lira"] / rate, 1))
    result["total_ccy"] = float(round_half_up(totals["total_lira"] / rate, 1))
    return result


@router.get("/pricing/price")
async def price(
    scope_type: str = Query(default="user"),
    credits: float = Query(default=0, allow_inf_nan=False),
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    currency_info = await resolve_tenant_currency(db, auth.user_id if auth else None, tenant.host)
    return await quote_price(db, scope_type, credits, currency=currency_info["currency"])


@router.get("/fx/tcmb")
async def tcmb_rate(base: str = Query(default="USD")):
    try:
        fx = await fetch_fx_rate(base)
    except FxError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
    return {
        "ok": True,
        "base": fx["base"],
        "quote": "TRY",
        "rate": as_number(fx["rate"]),
        "asof": fx.get("asof"),
        "source": fx.get("source"),
    }
