import pytest

from models.tenant import Tenant, TenantDomain
from services.tenant import normalize_host, parse_tenant_map, resolve_tenant, resolve_tenant_code


def test_normalize_host_strips_port_www_and_forwarded_list():
    assert normalize_host("WWW.Gumruk360.com:443") == "gumruk360.com"
    assert normalize_host("easycustoms360.com, proxy.internal") == "easycustoms360.com"
    assert normalize_host("[::1]:3000") == "::1"
    assert normalize_host("example.com.") == "example.com"
    assert normalize_host(None) == ""


def test_parse_tenant_map_normalizes_hosts_and_codes():
    mapping = parse_tenant_map("www.gumruk360.com:tr, easycustoms360.com:en-GB ,broken,localhost:3000:en")
    assert mapping == {
        "gumruk360.com": "tr",
        "easycustoms360.com": "en",
        "localhost": "en",
    }


def test_resolve_tenant_code_uses_localhost_mirror_and_default():
    mapping = {"127.0.0.1": "en"}
    assert resolve_tenant_code("localhost:3000", mapping) == "en"
    assert resolve_tenant_code("unknown.example", mapping) == "tr"


@pytest.mark.asyncio
async def test_resolve_tenant_prefers_tenant_domain_row(db_session):
    tenant = Tenant(
        code="en",
        name="EasyCustoms360",
        default_lang="en-GB",
        primary_domain="easycustoms360.com",
        currency="usd",
        pricing_multiplier=1.5,
    )
    db_session.add(tenant)
    await db_session.flush()
    db_session.add(TenantDomain(tenant_id=tenant.id, host="easycustoms360.com"))
    await db_session.commit()

    context = await resolve_tenant(db_session, "www.easycustoms360.com", "https")
    assert context.tenant_id == tenant.id
    assert context.code == "en"
    assert context.lang == "en"
    assert context.currency == "USD"
    assert context.pricing_multiplier == 1.5
    assert context.base_url == "https://easycustoms360.com"
    assert context.primary_base_url == "https://easycustoms360.com"


@pytest.mark.asyncio
async def test_resolve_tenant_falls_back_to_host_map(db_session, monkeypatch):
    monkeypatch.setattr("services.tenant.settings.TENANT_HOST_MAP", "gumruk360.com:tr,localhost:en")

    context = await resolve_tenant(db_session, "localhost:3000")
    assert context.tenant_id is None
    assert context.code == "en"
    assert context.locale == "en-GB"
    assert context.base_url == "http://localhost"
