"""Audit log and notification log models."""

import uuid

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    """Append-only record of security and business events."""

    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    action = Column(String, nullable=False, index=True)
    event = Column(String, nullable=True, index=True)
    resource_type = Column(String, nullable=True, index=True)
    resource_id = Column(String, nullable=True)
    actor_role = Column(String, nullable=True)
    actor_id = Column(String, nullable=True)
    tenant_id = Column(String, nullable=True)
    ip = Column(String, nullable=True, index=True)
    user_agent = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class NotificationLog(Base):
    """Outbound e-mail attempt; also the de-duplication key for reminders."""

    __tablename__ = "notification_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, nullable=True)
    event = Column(String, nullable=False, index=True)
    to_email = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    template = Column(String, nullable=True)
    provider = Column(String, nullable=True)
    provider_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="queued")
    error = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    entity_type = Column(String, nullable=True)
    entity_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
