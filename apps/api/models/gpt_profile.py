"""GPT answer profile model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text
from sqlalchemy.sql import func

from database import Base


class GptAnswerProfile(Base):
    """Prompt configuration used when drafting answers; at most one is active."""

    __tablename__ = "gpt_answer_profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    model = Column(String, nullable=True)
    system_prompt = Column(Text, nullable=False)
    temperature = Column(Float, nullable=False, default=0.2)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
