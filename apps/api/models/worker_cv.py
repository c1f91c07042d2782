"""Consultant CV models."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.sql import func

from database import Base


class WorkerCvProfile(Base):
    """Public CV header for a consultant."""

    __tablename__ = "worker_cv_profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    worker_user_id = Column(String, ForeignKey("profiles.id"), unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    title = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    languages = Column(JSON, nullable=True)
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    photo_object_path = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WorkerCvBlock(Base):
    """Ordered CV section (experience, education, ...)."""

    __tablename__ = "worker_cv_blocks"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    worker_user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    block_type = Column(String, nullable=False)
    title = Column(String, nullable=True)
    body = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CvBlockType(Base):
    """Admin-managed catalogue of CV block kinds."""

    __tablename__ = "cv_block_types"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    key = Column(String, unique=True, nullable=False)
    label_tr = Column(String, nullable=False)
    label_en = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
