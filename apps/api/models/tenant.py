"""Tenant and tenant-domain models."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Tenant(Base):
    """A brand partition (Gümrük360 / EasyCustoms360) selected by hostname."""

    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    default_lang = Column(String, nullable=True)
    primary_domain = Column(String, nullable=True, index=True)
    currency = Column(String, nullable=False, default="TRY")
    pricing_multiplier = Column(Numeric(10, 4), nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    domains = relationship("TenantDomain", back_populates="tenant", cascade="all, delete-orphan")


class TenantDomain(Base):
    """Hostname bound to a tenant."""

    __tablename__ = "tenant_domains"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    host = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant", back_populates="domains")
