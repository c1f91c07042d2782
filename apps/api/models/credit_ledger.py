"""CreditLedger model for user and organization credit balances."""

import uuid

from sqlalchemy import Column, DateTime, Index, JSON, Numeric, String
from sqlalchemy.sql import func

from database import Base


class CreditLedger(Base):
    """Immutable credit ledger entry; a scope's balance is the sum of `change`."""

    __tablename__ = "credit_ledger"
    __table_args__ = (Index("ix_credit_ledger_scope", "scope_type", "scope_id"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    scope_type = Column(String, nullable=False)
    scope_id = Column(String, nullable=False)
    change = Column(Numeric(14, 4), nullable=False)
    reason = Column(String, nullable=False)
    question_id = Column(String, nullable=True, index=True)
    order_id = Column(String, nullable=True, index=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
