"""TCMB exchange-rate lookup and TRY price locking."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
import re
from typing import Any, Dict, Optional, Tuple, Union

import httpx

from config import settings

logger = logging.getLogger(__name__)

_DATE_PATTERN = re.compile(r'<Tarih_Date[^>]*\sDate="([^"]+)"', re.IGNORECASE)
_FOREX_SELLING_PATTERN = re.compile(r"<ForexSelling>\s*([\d.,]+)\s*</ForexSelling>", re.IGNORECASE)


class FxError(Exception):
    """Rate lookup failure with a machine-readable code and HTTP status."""

    def __init__(self, code: str, status_code: int = 502):
        super().__init__(code)
        self.code = code
        self.status_code = status_code


def round_half_up(value: Union[Decimal, float, int], places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def parse_tcmb_number(raw: str) -> Decimal:
    """
    Parse a TCMB decimal string.

    When both separators appear the right-most one is the decimal mark
    (`1.234,56` and `1,234.56` both give 1234.56). A lone comma is a
    decimal mark (`48,4575`).
    """
    text = (raw or "").strip()
    if not text:
        raise FxError("invalid_rate")
    has_comma = "," in text
    has_dot = "." in text
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        text = text.replace(",", ".")
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise FxError("invalid_rate") from exc


def parse_tcmb_rate(xml: str, base: str) -> Tuple[Decimal, Optional[str]]:
    """ForexSelling rate (TRY per unit of base) and the bulletin date."""
    code = (base or "").strip().upper()
    date_match = _DATE_PATTERN.search(xml or "")
    asof = date_match.group(1) if date_match else None

    block_match = re.search(
        rf'<Currency[^>]*CurrencyCode="{re.escape(code)}"[^>]*>[\s\S]*?</Currency>',
        xml or "",
        re.IGNORECASE,
    )
    if not block_match:
        raise FxError(f"currency_block_not_found:{code}", status_code=404)

    selling = _FOREX_SELLING_PATTERN.search(block_match.group(0))
    if not selling:
        raise FxError("forex_selling_not_found")

    rate = parse_tcmb_number(selling.group(1))
    if not rate.is_finite() or rate <= 0:
        raise FxError("invalid_rate")
    return rate, asof


async def fetch_fx_rate(base: str) -> Dict[str, Any]:
    """TRY value of one unit of `base` from today's TCMB bulletin."""
    code = (base or "TRY").strip().upper()
    if code == "TRY":
        return {"base": "TRY", "quote": "TRY", "rate": Decimal("1"), "asof": None, "source": "identity"}

    try:
        async with httpx.AsyncClient(timeout=settings.FX_TIMEOUT_SECONDS) as client:
            response = await client.get(settings.TCMB_TODAY_URL, headers={"Cache-Control": "no-cache"})
            response.raise_for_status()
            xml = response.text
    except httpx.HTTPError as exc:
        logger.warning("TCMB fetch failed: %s", exc)
        raise FxError("tcmb_fetch_failed") from exc

    rate, asof = parse_tcmb_rate(xml, code)
    return {"base": code, "quote": "TRY", "rate": rate, "asof": asof, "source": "tcmb"}


def compute_locked_from_try(
    try_amount: Union[Decimal, float, int],
    base_currency: str,
    rate: Union[Decimal, float, int, None] = None,
    multiplier: Union[Decimal, float, int, None] = 1,
) -> int:
    """Integer amount in `base_currency` for a TRY amount, scaled by the tenant multiplier."""
    base = (base_currency or "TRY").strip().upper()
    factor = Decimal(str(multiplier)) if multiplier not in (None, "") else Decimal("1")
    if factor <= 0:
        factor = Decimal("1")
    amount = Decimal(str(try_amount))
    if base == "TRY":
        return int(round_half_up(amount * factor))
    fx = Decimal(str(rate)) if rate not in (None, "") else Decimal("0")
    if fx <= 0:
        raise FxError("invalid_rate")
    return int(round_half_up(amount / fx * factor))
