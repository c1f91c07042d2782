"""Question, revision and assignment-request models."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


QUESTION_STATUSES = ("draft", "submitted", "approved", "completed", "rejected")
ANSWER_STATUSES = ("drafting", "ready", "sent", "revision_requested")


class Question(Base):
    """Customer question moving through the consulting workflow."""

    __tablename__ = "questions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    tenant_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="submitted", index=True)
    answer_status = Column(String, nullable=True)
    price_tl = Column(Numeric(12, 2), nullable=True)
    price_final_tl = Column(Numeric(12, 2), nullable=True)
    sla_due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    assigned_to = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class QuestionRevision(Base):
    """Append-only answer revision."""

    __tablename__ = "question_revisions"
    __table_args__ = (UniqueConstraint("question_id", "revision_no", name="uq_question_revisions_no"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    question_id = Column(String, ForeignKey("questions.id"), nullable=False, index=True)
    revision_no = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="manual")
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AssignmentRequest(Base):
    """Consultant request to take an approved question."""

    __tablename__ = "assignment_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    question_id = Column(String, ForeignKey("questions.id"), nullable=False, index=True)
    worker_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    note = Column(Text, nullable=True)
    decided_by = Column(String, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
