"""SLA reminder rule model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.sql import func

from database import Base


DEFAULT_SLA_SUBJECT = "SLA hatırlatma"
DEFAULT_SLA_BODY = (
    "“{{title}}” başlıklı soru için SLA süresinin dolmasına yaklaşık {{minutes}} dakika kaldı."
)


class SlaReminderRule(Base):
    """Admin-configured reminder sent ahead of a question's SLA deadline."""

    __tablename__ = "sla_reminder_rules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    tenant_id = Column(String, nullable=True, index=True)
    minutes_before_sla = Column(Integer, nullable=False)
    send_to_assignee = Column(Boolean, nullable=False, default=True)
    send_to_admins = Column(Boolean, nullable=False, default=False)
    allowed_question_statuses = Column(JSON, nullable=False, default=lambda: ["approved"])
    allowed_answer_statuses = Column(JSON, nullable=False, default=list)
    include_null_answer_status = Column(Boolean, nullable=False, default=True)
    subject_template = Column(String, nullable=False, default=DEFAULT_SLA_SUBJECT)
    body_template = Column(Text, nullable=False, default=DEFAULT_SLA_BODY)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
