"""Paddle Billing: transaction creation and webhook signature checks."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional, Tuple, Union

import httpx
from fastapi import HTTPException

from config import settings

logger = logging.getLogger(__name__)

COMPLETED_EVENT_TYPES = {
    "transaction.completed",
    "transaction.paid",
    "payment.succeeded",
    "payment.completed",
}
CANCELED_EVENT_TYPES = {"transaction.canceled", "transaction.cancelled"}


def api_base() -> str:
    if (settings.PADDLE_ENV or "sandbox").strip().lower() == "live":
        return "https://api.paddle.com"
    return "https://sandbox-api.paddle.com"


async def create_transaction(
    *,
    order_id: str,
    amount_cents: int,
    currency: str = "USD",
    quantity: int = 1,
    email: Optional[str] = None,
    description: str = "Buy Credits",
    success_url: str,
    cancel_url: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a transaction with an inline price. Returns {transaction_id}."""
    if not settings.PADDLE_API_KEY or not settings.PADDLE_PRODUCT_ID:
        raise HTTPException(status_code=503, detail="paddle_not_configured")
    if quantity <= 0 or amount_cents <= 0:
        raise HTTPException(status_code=400, detail="invalid_amount")

    per_unit = max(1, int(round(amount_cents / quantity)))
    body: Dict[str, Any] = {
        "items": [
            {
                "price": {
                    "description": description,
                    "unit_price": {"amount": str(per_unit), "currency_code": currency},
                    "product_id": settings.PADDLE_PRODUCT_ID,
                },
                "quantity": quantity,
            }
        ],
        "custom_data": {"orderId": order_id},
        "metadata": {**(metadata or {}), "orderId": order_id},
        "currency_code": currency,
        "collection_mode": "automatic",
        "checkout": {"success_url": success_url, "cancel_url": cancel_url},
    }
    if email:
        body["customer"] = {"email": email}

    headers = {
        "Authorization": f"Bearer {settings.PADDLE_API_KEY}",
        "Paddle-Version": "1",
        "Accept": "application/json",
    }
    try:
        async with httpx.AsyncClient(timeout=20.0) as client:
            response = await client.post(f"{api_base()}/transactions", json=body, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Paddle transaction request failed for %s: %s", order_id, exc)
        raise HTTPException(status_code=502, detail="paddle_unreachable") from exc

    if response.status_code >= 400:
        logger.warning("Paddle rejected order %s: %s %s", order_id, response.status_code, response.text[:500])
        raise HTTPException(status_code=502, detail=f"paddle_http_{response.status_code}")
    try:
        payload = response.json()
    except ValueError as exc:
        raise HTTPException(status_code=502, detail="paddle_invalid_response") from exc
    return {"transaction_id": (payload.get("data") or {}).get("id")}


def parse_signature_header(header: Optional[str]) -> Tuple[str, str]:
    """`ts=...;h1=...` (commas accepted as separators) -> (ts, h1)."""
    parts: Dict[str, str] = {}
    for segment in (header or "").replace(",", ";").split(";"):
        key, sep, value = segment.partition("=")
        if sep and key.strip() and value.strip():
            parts[key.strip().lower()] = value.strip()
    timestamp = parts.get("ts") or parts.get("t") or ""
    signature = (parts.get("h1") or parts.get("signature") or "").lower()
    return timestamp, signature


def verify_paddle_signature(raw_body: Union[bytes, str], header: Optional[str], secret: Optional[str] = None) -> bool:
    """HMAC-SHA256 hex over `ts:rawBody` (raw body alone when no ts is sent)."""
    if settings.ALLOW_UNVERIFIED_PADDLE_WEBHOOKS:
        return True
    key = secret if secret is not None else settings.PADDLE_WEBHOOK_SECRET
    if not key or not header:
        return False
    timestamp, signature = parse_signature_header(header)
    if not signature:
        return False
    body = raw_body if isinstance(raw_body, bytes) else raw_body.encode("utf-8")
    message = timestamp.encode("utf-8", "ignore") + b":" + body if timestamp else body
    expected = hmac.new(key.encode("utf-8"), message, hashlib.sha256).hexdigest()
    # Header text is untrusted; compare bytes so non-ASCII input fails instead of raising.
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", "ignore"))


def extract_order_id(event: Dict[str, Any]) -> Optional[str]:
    data = event.get("data") or {}
    for container in (data.get("custom_data"), data.get("metadata"), event.get("custom_data")):
        if isinstance(container, dict):
            value = container.get("orderId") or container.get("order_id")
            if value:
                return str(value)
    return None


def is_completed(event: Dict[str, Any]) -> bool:
    status = str((event.get("data") or {}).get("status") or "").lower()
    return status == "completed" or str(event.get("event_type") or "") in COMPLETED_EVENT_TYPES


def is_canceled(event: Dict[str, Any]) -> bool:
    status = str((event.get("data") or {}).get("status") or "").lower()
    return status == "canceled" or str(event.get("event_type") or "") in CANCELED_EVENT_TYPES


def event_amount_cents(event: Dict[str, Any]) -> Optional[int]:
    totals = ((event.get("data") or {}).get("details") or {}).get("totals") or {}
    value = totals.get("grand_total") or totals.get("total")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
