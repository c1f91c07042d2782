"""Blog post and news item models."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, JSON, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class BlogPost(Base):
    """Blog article; visible to every tenant when tenant_id is null."""

    __tablename__ = "blog_posts"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_blog_posts_tenant_slug"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, nullable=True, index=True)
    slug = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="draft", index=True)
    author_id = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class NewsItem(Base):
    """Short news entry shown on the marketing site."""

    __tablename__ = "news_items"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_news_items_tenant_slug"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, nullable=True, index=True)
    slug = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    lang = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
