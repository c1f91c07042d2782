"""Credit price tiers, subscription settings and credit requirements."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.pricing import CreditPriceTier, SubscriptionSettings
from services.credits import as_number, ensure_scope_type, to_decimal
from services.fx import round_half_up

logger = logging.getLogger(__name__)

_NUMRANGE = re.compile(r"^\s*([\[\(])([^,]*),([^\]\)]*)([\]\)])\s*$")
SETTINGS_ID = "default"
SETTINGS_FIELDS = (
    "credits_per_point",
    "credit_price_lira",
    "credit_discount_user",
    "credit_discount_org",
    "low_balance_threshold_user",
    "low_balance_threshold_org",
    "min_user_purchase_credits",
    "min_org_purchase_credits",
    "notify_emails",
)


def _parse_endpoint(raw: str) -> Optional[Decimal]:
    text = raw.strip().strip('"')
    if text == "" or text.lower() in ("infinity", "-infinity", "+infinity"):
        return None
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid range endpoint: {raw!r}") from exc


def _format_endpoint(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return str(as_number(value))


@dataclass(frozen=True)
class CreditRange:
    """Credit-count range; `None` endpoints are unbounded. Canonical form is `[min,max)`."""

    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    min_inclusive: bool = True
    max_inclusive: bool = False

    @classmethod
    def parse(cls, text: Optional[str]) -> "CreditRange":
        match = _NUMRANGE.match(text or "")
        if not match:
            raise ValueError(f"Invalid numrange: {text!r}")
        lower_bracket, lower, upper, upper_bracket = match.groups()
        return cls(
            min=_parse_endpoint(lower),
            max=_parse_endpoint(upper),
            min_inclusive=lower_bracket == "[",
            max_inclusive=upper_bracket == "]",
        )

    @classmethod
    def from_bounds(cls, min_value: Any = None, max_value: Any = None) -> "CreditRange":
        lower = None if min_value in (None, "") else to_decimal(min_value)
        upper = None if max_value in (None, "") else to_decimal(max_value)
        if lower is not None and upper is not None and upper <= lower:
            raise ValueError("Range max must be greater than min.")
        return cls(min=lower, max=upper)

    def __str__(self) -> str:
        left = "[" if self.min_inclusive else "("
        right = "]" if self.max_inclusive else ")"
        return f"{left}{_format_endpoint(self.min)},{_format_endpoint(self.max)}{right}"

    def contains(self, credits: Any) -> bool:
        value = to_decimal(credits)
        if self.min is not None:
            if value < self.min or (value == self.min and not self.min_inclusive):
                return False
        if self.max is not None:
            if value > self.max or (value == self.max and not self.max_inclusive):
                return False
        return True

    def sort_key(self) -> Decimal:
        return self.min if self.min is not None else Decimal("-Infinity")


def tier_range(tier: CreditPriceTier) -> CreditRange:
    return CreditRange.parse(tier.credits_range)


def resolve_tier(tiers: Iterable[CreditPriceTier], credits: Any) -> Optional[CreditPriceTier]:
    """Active tier containing `credits`; the lowest min wins when tiers overlap."""
    matches = []
    for tier in tiers:
        if not tier.active:
            continue
        try:
            credit_range = tier_range(tier)
        except ValueError:
            logger.warning("Skipping tier %s with unparsable range %r", tier.id, tier.credits_range)
            continue
        if credit_range.contains(credits):
            matches.append((credit_range.sort_key(), str(tier.id), tier))
    if not matches:
        return None
    matches.sort(key=lambda item: (item[0], item[1]))
    return matches[0][2]


def validate_tiers(tiers: Sequence[CreditPriceTier]) -> List[str]:
    """Operator warnings for gaps and overlaps between active tiers of one scope."""
    ranges = []
    for tier in tiers:
        if not tier.active:
            continue
        try:
            ranges.append(tier_range(tier))
        except ValueError:
            ranges.append(None)
    warnings: List[str] = []
    if any(item is None for item in ranges):
        warnings.append("unparsable_range")
    ordered = sorted((item for item in ranges if item is not None), key=lambda item: item.sort_key())
    for previous, current in zip(ordered, ordered[1:]):
        if previous.max is None or (current.min is not None and current.min < previous.max):
            warnings.append(f"overlap:{previous}:{current}")
        elif current.min is None or current.min > previous.max:
            warnings.append(f"gap:{previous}:{current}")
    return warnings


async def list_tiers(db: AsyncSession, scope_type: str, active_only: bool = False) -> List[CreditPriceTier]:
    query = select(CreditPriceTier).where(CreditPriceTier.scope_type == scope_type)
    if active_only:
        query = query.where(CreditPriceTier.active.is_(True))
    result = await db.execute(query.order_by(CreditPriceTier.created_at.asc(), CreditPriceTier.id.asc()))
    return list(result.scalars().all())


async def total_for_purchase(db: AsyncSession, scope_type: str, credits: Any) -> Dict[str, Any]:
    """Tier unit price and `unit_price * credits` in TRY."""
    normalized = ensure_scope_type(scope_type)
    amount = to_decimal(credits)
    tier = resolve_tier(await list_tiers(db, normalized, active_only=True), amount)
    if tier is None:
        raise HTTPException(status_code=422, detail="price_tier_not_found")
    unit_price = to_decimal(tier.unit_price_lira)
    return {
        "tier_id": tier.id,
        "unit_price_lira": unit_price,
        "total_lira": unit_price * amount,
    }


def serialize_tier(tier: CreditPriceTier) -> Dict[str, Any]:
    try:
        credit_range = tier_range(tier)
        bounds = {
            "min": as_number(credit_range.min) if credit_range.min is not None else None,
            "max": as_number(credit_range.max) if credit_range.max is not None else None,
        }
    except ValueError:
        bounds = {"min": None, "max": None}
    return {
        "id": tier.id,
        **bounds,
        "unit_price_lira": as_number(tier.unit_price_lira),
        "active": bool(tier.active),
    }


async def replace_tiers(db: AsyncSession, scope_type: str, rows: Iterable[Dict[str, Any]]) -> List[CreditPriceTier]:
    """Delete-then-insert every tier of a scope; caller commits."""
    normalized = ensure_scope_type(scope_type)
    new_tiers: List[CreditPriceTier] = []
    for row in rows:
        try:
            credit_range = CreditRange.from_bounds(row.get("min"), row.get("max"))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"invalid_tier_range: {exc}") from exc
        unit_price = to_decimal(row.get("unit_price_lira"), default=Decimal("-1"))
        if unit_price < 0:
            raise HTTPException(status_code=400, detail="invalid_unit_price")
        new_tiers.append(
            CreditPriceTier(
                scope_type=normalized,
                credits_range=str(credit_range),
                unit_price_lira=unit_price,
                active=bool(row.get("active", True)),
            )
        )
    await db.execute(delete(CreditPriceTier).where(CreditPriceTier.scope_type == normalized))
    db.add_all(new_tiers)
    return new_tiers


async def get_subscription_settings(db: AsyncSession) -> SubscriptionSettings:
    row = (
        await db.execute(select(SubscriptionSettings).where(SubscriptionSettings.id == SETTINGS_ID))
    ).scalar_one_or_none()
    return row or SubscriptionSettings(id=SETTINGS_ID)


def serialize_settings(row: SubscriptionSettings) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for field in SETTINGS_FIELDS:
        value = getattr(row, field)
        if field == "notify_emails":
            payload[field] = value
        else:
            payload[field] = as_number(value) if value is not None else None
    payload["updated_at"] = row.updated_at.isoformat() if row.updated_at else None
    return payload


async def update_subscription_settings(db: AsyncSession, values: Dict[str, Any]) -> SubscriptionSettings:
    """Update the known fields present in `values`; caller commits."""
    row = await get_subscription_settings(db)
    for field in SETTINGS_FIELDS:
        if field not in values:
            continue
        value = values[field]
        if field == "notify_emails":
            row.notify_emails = (str(value).strip() or None) if value is not None else None
        elif value in (None, ""):
            setattr(row, field, None)
        elif field.startswith(("low_balance", "min_")):
            setattr(row, field, int(to_decimal(value)))
        else:
            setattr(row, field, to_decimal(value))
    row.updated_at = datetime.now(timezone.utc)
    db.add(row)
    return row


def normalize_discount(discount: Any) -> Decimal:
    """A discount above 1 is a percentage (15 -> 0.15)."""
    value = to_decimal(discount)
    if value > 1:
        value = value / 100
    return max(Decimal("0"), min(Decimal("1"), value))


def required_credits(price: Any, credit_price: Any, discount: Any = 0, multiplier: Any = 1) -> int:
    """Credits needed to pay a TRY price at the given credit price, discount and tenant multiplier."""
    unit = to_decimal(credit_price)
    if unit <= 0:
        unit = Decimal("1")
    factor = to_decimal(multiplier, default=Decimal("1"))
    if factor <= 0:
        factor = Decimal("1")
    base = to_decimal(price) * (1 - normalize_discount(discount)) / unit
    return int(round_half_up(base * factor))
