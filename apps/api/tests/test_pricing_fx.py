from decimal import Decimal

import pytest

from models.pricing import CreditPriceTier
from services.fx import FxError, compute_locked_from_try, parse_tcmb_number, parse_tcmb_rate
from services.pricing import CreditRange, required_credits, resolve_tier, validate_tiers


TCMB_SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<Tarih_Date Tarih="17.10.2026" Date="10/17/2026" Bulten_No="2026/198">
  <Currency CrossOrder="0" Kod="USD" CurrencyCode="USD">
    <Unit>1</Unit>
    <ForexBuying>41,7810</ForexBuying>
    <ForexSelling>41,8563</ForexSelling>
  </Currency>
  <Currency CrossOrder="9" Kod="EUR" CurrencyCode="EUR">
    <Unit>1</Unit>
    <ForexBuying>48.7002</ForexBuying>
    <ForexSelling></ForexSelling>
  </Currency>
</Tarih_Date>
"""


def _tier(credits_range, price, active=True, tier_id=None):
    return CreditPriceTier(
        id=tier_id or credits_range,
        scope_type="user",
        credits_range=credits_range,
        unit_price_lira=Decimal(str(price)),
        active=active,
    )


def test_credit_range_parse_and_format():
    parsed = CreditRange.parse("[100,500)")
    assert parsed.min == Decimal("100")
    assert parsed.max == Decimal("500")
    assert str(parsed) == "[100,500)"
    assert parsed.contains(100)
    assert parsed.contains(499.5)
    assert not parsed.contains(500)

    unbounded = CreditRange.parse("(1000,)")
    assert unbounded.max is None
    assert not unbounded.contains(1000)
    assert unbounded.contains(10 ** 9)

    with pytest.raises(ValueError):
        CreditRange.parse("100-500")
    with pytest.raises(ValueError):
        CreditRange.from_bounds(50, 10)


def test_resolve_tier_lowest_min_wins_on_overlap():
    tiers = [
        _tier("[100,1000)", 8),
        _tier("[0,200)", 10),
        _tier("[150,300)", 9, active=False),
    ]
    assert resolve_tier(tiers, 150).unit_price_lira == Decimal("10")
    assert resolve_tier(tiers, 250).unit_price_lira == Decimal("8")
    assert resolve_tier(tiers, 5000) is None


def test_validate_tiers_reports_gaps_and_overlaps():
    warnings = validate_tiers([_tier("[0,100)", 10), _tier("[150,300)", 9), _tier("[250,)", 8)])
    assert any(item.startswith("gap:[0,100)") for item in warnings)
    assert any(item.startswith("overlap:[150,300)") for item in warnings)
    assert validate_tiers([_tier("[0,100)", 10), _tier("[100,)", 9)]) == []


def test_required_credits_applies_discount_and_multiplier():
    assert required_credits(1000, 10) == 100
    assert required_credits(1000, 10, discount=15) == 85
    assert required_credits(1000, 10, discount=Decimal("0.15"), multiplier=2) == 170
    assert required_credits(105, 10) == 11
    assert required_credits(100, 0) == 100


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("41,8563", Decimal("41.8563")),
        ("48.7002", Decimal("48.7002")),
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
    ],
)
def test_parse_tcmb_number_formats(raw, expected):
    assert parse_tcmb_number(raw) == expected


def test_parse_tcmb_rate_reads_forex_selling_and_date():
    rate, asof = parse_tcmb_rate(TCMB_SAMPLE, "usd")
    assert rate == Decimal("41.8563")
    assert asof == "10/17/2026"

    with pytest.raises(FxError) as missing_block:
        parse_tcmb_rate(TCMB_SAMPLE, "GBP")
    assert missing_block.value.code == "currency_block_not_found:GBP"
    assert missing_block.value.status_code == 404

    with pytest.raises(FxError) as missing_selling:
        parse_tcmb_rate(TCMB_SAMPLE, "EUR")
    assert missing_selling.value.code == "forex_selling_not_found"


def test_compute_locked_from_try_rounds_half_up():
    assert compute_locked_from_try(1000, "TRY") == 1000
    assert compute_locked_from_try(1000, "TRY", multiplier="1.25") == 1250
    assert compute_locked_from_try(105, "USD", rate=10) == 11
    with pytest.raises(FxError):
        compute_locked_from_try(100, "USD", rate=0)


@pytest.mark.asyncio
async def test_price_endpoint_without_tiers_is_unprocessable(api):
    response = await api.client.get("/pricing/price", params={"scope_type": "user", "credits": 50})
    assert response.status_code == 422
    assert response.json()["detail"] == "price_tier_not_found"


@pytest.mark.asyncio
async def test_price_endpoint_returns_tier_totals(api):
    async with api.session_maker() as session:
        session.add(_tier("[0,100)", "12.5", tier_id="tier-small"))
        session.add(_tier("[100,)", 10, tier_id="tier-large"))
        await session.commit()

    response = await api.client.get("/pricing/price", params={"scope_type": "user", "credits": 120})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["currency"] == "TRY"
    assert body["unit_price_lira"] == 10
    assert body["total_lira"] == 1200
    assert body["total_ccy"] == 1200


@pytest.mark.asyncio
async def test_price_endpoint_rejects_non_finite_credits(api):
    async with api.session_maker() as session:
        session.add(_tier("[0,)", 10, tier_id="tier-open"))
        await session.commit()

    for value in ("nan", "inf", "-inf"):
        response = await api.client.get("/pricing/price", params={"scope_type": "user", "credits": value})
        assert response.status_code == 422
        assert isinstance(response.json()["detail"], list)
