"""Credit price tiers and subscription settings."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from database import Base


class CreditPriceTier(Base):
    """Unit price for a half-open credit-count range, stored as numrange text."""

    __tablename__ = "credit_price_tiers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    scope_type = Column(String, nullable=False, index=True)
    credits_range = Column(String, nullable=False)
    unit_price_lira = Column(Numeric(12, 4), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SubscriptionSettings(Base):
    """Singleton row (id='default') of credit pricing knobs."""

    __tablename__ = "subscription_settings"

    id = Column(String, primary_key=True, default="default")
    credits_per_point = Column(Numeric(12, 4), nullable=True)
    credit_price_lira = Column(Numeric(12, 4), nullable=True)
    credit_discount_user = Column(Numeric(8, 4), nullable=True)
    credit_discount_org = Column(Numeric(8, 4), nullable=True)
    low_balance_threshold_user = Column(Integer, nullable=True)
    low_balance_threshold_org = Column(Integer, nullable=True)
    min_user_purchase_credits = Column(Integer, nullable=True)
    min_org_purchase_credits = Column(Integer, nullable=True)
    notify_emails = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
