"""Order and payment models."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.sql import func

from database import Base


ORDER_STATUSES = ("pending", "paid", "failed", "canceled")


class Order(Base):
    """Checkout order. Created pending; `paid` is terminal."""

    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    tenant_id = Column(String, nullable=True, index=True)
    question_id = Column(String, nullable=True, index=True)
    amount = Column(Integer, nullable=True)
    currency = Column(String, nullable=False, default="TRY")
    status = Column(String, nullable=False, default="pending", index=True)
    provider = Column(String, nullable=True)
    provider_ref = Column(String, nullable=True, index=True)
    meta = Column(JSON, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class Payment(Base):
    """Provider confirmation recorded against an order."""

    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    question_id = Column(String, nullable=True, index=True)
    tenant_id = Column(String, nullable=True)
    provider = Column(String, nullable=False)
    provider_ref = Column(String, nullable=True, index=True)
    amount_cents = Column(Integer, nullable=True)
    currency = Column(String, nullable=True)
    status = Column(String, nullable=False, default="paid")
    raw_payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
