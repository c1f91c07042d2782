"""Contact ticket model."""

import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from database import Base


CONTACT_STATUSES = ("open", "answered", "closed")


class ContactTicket(Base):
    """Message submitted through the public contact form."""

    __tablename__ = "contact_tickets"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True, index=True)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    locale = Column(String, nullable=True)
    reference = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="open", index=True)
    spam_score = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
