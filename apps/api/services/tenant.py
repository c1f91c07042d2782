"""Tenant resolution from inbound hostnames."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.profile import Profile
from models.tenant import Tenant, TenantDomain

logger = logging.getLogger(__name__)

ALLOWED_CURRENCIES = ("TRY", "USD", "EUR", "GBP", "AED")
_PORT_SUFFIX = re.compile(r":\d+$")
_LOCAL_HOSTS = {"localhost", "127.0.0.1"}


@dataclass
class TenantContext:
    code: str
    locale: str
    host: str
    base_url: str
    primary_base_url: str
    tenant_id: Optional[str] = None
    currency: str = "TRY"
    pricing_multiplier: float = 1.0

    @property
    def lang(self) -> str:
        return "en" if self.code == "en" else "tr"


def normalize_host(raw: Optional[str]) -> str:
    """Canonical host: lowercase, first forwarded value, no port, no www., no trailing dot."""
    host = (raw or "").strip().lower()
    if not host:
        return ""
    host = host.split(",")[0].strip()
    if host.startswith("["):
        closing = host.find("]")
        if closing > 0:
            host = host[1:closing]
    else:
        host = _PORT_SUFFIX.sub("", host)
    if host.startswith("www."):
        host = host[4:]
    return host.rstrip(".")


def _code_from_text(value: str) -> str:
    return "en" if value.strip().lower().startswith("en") else "tr"


def parse_tenant_map(raw: Optional[str] = None) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    source = settings.TENANT_HOST_MAP if raw is None else raw
    for pair in (source or "").split(","):
        host, sep, code = pair.strip().rpartition(":")
        if not sep or not host.strip():
            continue
        mapping[normalize_host(host)] = _code_from_text(code)
    return mapping


def default_tenant_code() -> str:
    return _code_from_text(settings.DEFAULT_TENANT_CODE or "tr")


def resolve_tenant_code(host: Optional[str], mapping: Optional[Dict[str, str]] = None) -> str:
    """Map host to tenant code via TENANT_HOST_MAP with a localhost/127.0.0.1 mirror."""
    table = parse_tenant_map() if mapping is None else mapping
    normalized = normalize_host(host)
    if normalized in table:
        return table[normalized]
    if normalized in _LOCAL_HOSTS:
        mirror = "127.0.0.1" if normalized == "localhost" else "localhost"
        if mirror in table:
            return table[mirror]
    return default_tenant_code()


def is_local_host(host: str) -> bool:
    return host in _LOCAL_HOSTS or host.endswith(".local")


def _base_url(host: str, proto: Optional[str]) -> str:
    if not host:
        return settings.SITE_URL.rstrip("/")
    scheme = "http" if is_local_host(host) else ((proto or "https").split(",")[0].strip() or "https")
    return f"{scheme}://{host}"


def default_locale(code: str) -> str:
    return "en-GB" if code == "en" else "tr-TR"


def sanitize_currency(value: Any) -> str:
    currency = str(value or "").strip().upper()
    return currency if currency in ALLOWED_CURRENCIES else "TRY"


def sanitize_multiplier(value: Any) -> float:
    try:
        multiplier = float(value)
    except (TypeError, ValueError):
        return 1.0
    return multiplier if multiplier > 0 else 1.0


async def resolve_tenant(
    db: AsyncSession,
    raw_host: Optional[str],
    proto: Optional[str] = None,
) -> TenantContext:
    """Resolve tenant row by tenant_domains.host, falling back to the env host map."""
    host = normalize_host(raw_host)
    tenant: Optional[Tenant] = None
    if host:
        result = await db.execute(
            select(Tenant).join(TenantDomain, TenantDomain.tenant_id == Tenant.id).where(TenantDomain.host == host)
        )
        tenant = result.scalars().first()

    base_url = _base_url(host, proto)
    if tenant is None:
        code = resolve_tenant_code(host)
        return TenantContext(
            code=code,
            locale=default_locale(code),
            host=host,
            base_url=base_url,
            primary_base_url=base_url,
        )

    code = _code_from_text(tenant.code)
    primary_base_url = f"https://{tenant.primary_domain}" if tenant.primary_domain else base_url
    return TenantContext(
        code=code,
        locale=tenant.default_lang or default_locale(code),
        host=host,
        base_url=base_url,
        primary_base_url=primary_base_url,
        tenant_id=tenant.id,
        currency=sanitize_currency(tenant.currency),
        pricing_multiplier=sanitize_multiplier(tenant.pricing_multiplier),
    )


async def resolve_tenant_currency(
    db: AsyncSession,
    user_id: Optional[str] = None,
    host: Optional[str] = None,
) -> Dict[str, Any]:
    """Pricing currency for a caller: profile tenant_key first, then host primary domain."""
    tenant: Optional[Tenant] = None
    if user_id:
        profile = (await db.execute(select(Profile).where(Profile.id == user_id))).scalar_one_or_none()
        if profile and profile.tenant_key:
            tenant = (
                await db.execute(select(Tenant).where(Tenant.code == profile.tenant_key))
            ).scalar_one_or_none()

    normalized = normalize_host(host)
    if tenant is None and normalized:
        tenant = (
            await db.execute(select(Tenant).where(Tenant.primary_domain == normalized))
        ).scalars().first()

    if tenant is None:
        return {"tenant_code": None, "currency": "TRY", "multiplier": 1.0}
    return {
        "tenant_code": tenant.code,
        "currency": sanitize_currency(tenant.currency),
        "multiplier": sanitize_multiplier(tenant.pricing_multiplier),
    }
