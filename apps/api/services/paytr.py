"""PayTR iframe API: token generation, initiation and callback verification."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from fastapi import HTTPException

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class PaytrCredentials:
    merchant_id: str
    merchant_key: str
    merchant_salt: str

    @property
    def configured(self) -> bool:
        return bool(self.merchant_id and self.merchant_key and self.merchant_salt)


def credentials_for(tenant_code: str) -> PaytrCredentials:
    """EN tenant uses its own store when configured, otherwise the TR store."""
    if tenant_code == "en" and settings.PAYTR_EN_MERCHANT_ID:
        return PaytrCredentials(
            settings.PAYTR_EN_MERCHANT_ID,
            settings.PAYTR_EN_MERCHANT_KEY,
            settings.PAYTR_EN_MERCHANT_SALT,
        )
    return PaytrCredentials(settings.PAYTR_MERCHANT_ID, settings.PAYTR_MERCHANT_KEY, settings.PAYTR_MERCHANT_SALT)


def all_credentials() -> List[PaytrCredentials]:
    stores = [credentials_for("tr")]
    en_store = credentials_for("en")
    if en_store.merchant_id != stores[0].merchant_id:
        stores.append(en_store)
    return [store for store in stores if store.configured]


def _sign(key: str, message: str) -> str:
    digest = hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def encode_basket(items: Sequence[Sequence[Any]]) -> str:
    """Base64 JSON basket of [name, unit price string, quantity] rows."""
    return base64.b64encode(json.dumps([list(item) for item in items], ensure_ascii=False).encode("utf-8")).decode("ascii")


def merchant_oid_for(order_id: str) -> str:
    """PayTR accepts alphanumeric order ids only."""
    return order_id.replace("-", "")


def paytr_token(
    credentials: PaytrCredentials,
    *,
    user_ip: str,
    merchant_oid: str,
    email: str,
    payment_amount: int,
    user_basket: str,
    no_installment: int = 0,
    max_installment: int = 0,
    currency: str = "TL",
    test_mode: int = 0,
) -> str:
    hash_str = (
        f"{credentials.merchant_id}{user_ip}{merchant_oid}{email}{payment_amount}{user_basket}"
        f"{no_installment}{max_installment}{currency}{test_mode}"
    )
    return _sign(credentials.merchant_key, hash_str + credentials.merchant_salt)


def callback_hash(credentials: PaytrCredentials, merchant_oid: str, status: str, total_amount: str) -> str:
    return _sign(credentials.merchant_key, f"{merchant_oid}{credentials.merchant_salt}{status}{total_amount}")


def verify_paytr_callback(
    merchant_oid: str,
    status: str,
    total_amount: str,
    received_hash: str,
    stores: Optional[Iterable[PaytrCredentials]] = None,
) -> bool:
    """Constant-time check against every configured store."""
    candidates = list(stores) if stores is not None else all_credentials()
    for credentials in candidates:
        expected = callback_hash(credentials, merchant_oid, status, total_amount)
        if hmac.compare_digest(expected.encode("ascii"), (received_hash or "").encode("ascii", "ignore")):
            return True
    return False


async def paytr_initiate(
    credentials: PaytrCredentials,
    *,
    merchant_oid: str,
    email: str,
    payment_amount: int,
    user_ip: str,
    user_name: str,
    user_address: str,
    user_phone: str,
    basket: Sequence[Sequence[Any]],
    ok_url: str,
    fail_url: str,
    lang: str = "tr",
    currency: str = "TL",
) -> Dict[str, Any]:
    """Request an iframe token. Returns {token, iframe_url, mock}."""
    if settings.PAYTR_MOCK:
        token = f"mock-{merchant_oid}"
        return {"token": token, "iframe_url": f"{settings.PAYTR_IFRAME_URL}{token}", "mock": True}
    if not credentials.configured:
        raise HTTPException(status_code=503, detail="paytr_not_configured")

    user_basket = encode_basket(basket)
    test_mode = 1 if settings.PAYTR_TEST_MODE else 0
    token = paytr_token(
        credentials,
        user_ip=user_ip,
        merchant_oid=merchant_oid,
        email=email,
        payment_amount=payment_amount,
        user_basket=user_basket,
        currency=currency,
        test_mode=test_mode,
    )
    form = {
        "merchant_id": credentials.merchant_id,
        "user_ip": user_ip,
        "merchant_oid": merchant_oid,
        "email": email,
        "payment_amount": str(payment_amount),
        "paytr_token": token,
        "user_basket": user_basket,
        "debug_on": "1" if test_mode else "0",
        "no_installment": "0",
        "max_installment": "0",
        "user_name": user_name or email,
        "user_address": user_address or "-",
        "user_phone": user_phone or "-",
        "merchant_ok_url": ok_url,
        "merchant_fail_url": fail_url,
        "timeout_limit": "30",
        "currency": currency,
        "test_mode": str(test_mode),
        "lang": "en" if lang == "en" else "tr",
    }
    try:
        async with httpx.AsyncClient(timeout=20.0) as client:
            response = await client.post(settings.PAYTR_API_URL, data=form)
            response.raise_for_status()
            body = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("PayTR token request failed for %s: %s", merchant_oid, exc)
        raise HTTPException(status_code=502, detail="paytr_unreachable") from exc

    if body.get("status") != "success" or not body.get("token"):
        logger.warning("PayTR rejected %s: %s", merchant_oid, body.get("reason"))
        raise HTTPException(status_code=502, detail=f"paytr_init_failed: {body.get('reason') or 'unknown'}")
    return {"token": body["token"], "iframe_url": f"{settings.PAYTR_IFRAME_URL}{body['token']}", "mock": False}
