"""Tenant dependency resolved from the request host."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.tenant import TenantContext, resolve_tenant


async def get_tenant(request: Request, db: AsyncSession = Depends(get_db)) -> TenantContext:
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.hostname
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    return await resolve_tenant(db, host, proto)
