"""Blog post and news helpers shared by public and admin routes."""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.content import BlogPost, NewsItem
from services.questions import as_utc

BLOG_STATUSES = ("draft", "in_review", "published")
_TURKISH_FOLD = str.maketrans({"ı": "i", "İ": "i", "ş": "s", "Ş": "s", "ğ": "g", "Ğ": "g", "ç": "c", "Ç": "c", "ö": "o", "Ö": "o", "ü": "u", "Ü": "u"})
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(value: str, max_length: int = 80) -> str:
    """`Gümrük Rejimleri 2024` -> `gumruk-rejimleri-2024`."""
    folded = unicodedata.normalize("NFKD", (value or "").translate(_TURKISH_FOLD))
    ascii_text = folded.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_SLUG.sub("-", ascii_text).strip("-")
    return slug[:max_length].rstrip("-") or "post"


async def unique_slug(db: AsyncSession, model, tenant_id: Optional[str], base: str, exclude_id: Optional[str] = None) -> str:
    """First free `base`, `base-2`, `base-3`... within the tenant."""
    candidate = base
    suffix = 2
    while True:
        query = select(model.id).where(model.slug == candidate)
        query = query.where(model.tenant_id.is_(None) if tenant_id is None else model.tenant_id == tenant_id)
        if exclude_id:
            query = query.where(model.id != exclude_id)
        if (await db.execute(query)).first() is None:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def _iso(value: Optional[datetime]) -> Optional[str]:
    moment = as_utc(value)
    return moment.isoformat() if moment else None


def clean_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    tags = []
    for item in value or []:
        tag = str(item).strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def serialize_post(post: BlogPost, include_content: bool = True) -> Dict[str, Any]:
    data = {
        "id": post.id,
        "tenant_id": post.tenant_id,
        "slug": post.slug,
        "title": post.title,
        "summary": post.summary,
        "tags": list(post.tags or []),
        "status": post.status,
        "author_id": post.author_id,
        "published_at": _iso(post.published_at),
        "updated_at": _iso(post.updated_at),
    }
    if include_content:
        data["content"] = post.content
    return data


def serialize_news(item: NewsItem, include_body: bool = True) -> Dict[str, Any]:
    data = {
        "id": item.id,
        "tenant_id": item.tenant_id,
        "slug": item.slug,
        "title": item.title,
        "summary": item.summary,
        "lang": item.lang,
        "is_published": bool(item.is_published),
        "published_at": _iso(item.published_at),
    }
    if include_body:
        data["body"] = item.body
    return data


async def get_post_or_404(db: AsyncSession, post_id: str) -> BlogPost:
    post = (await db.execute(select(BlogPost).where(BlogPost.id == post_id))).scalar_one_or_none()
    if post is None:
        raise HTTPException(status_code=404, detail="post_not_found")
    return post


async def get_news_or_404(db: AsyncSession, news_id: str) -> NewsItem:
    item = (await db.execute(select(NewsItem).where(NewsItem.id == news_id))).scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="news_not_found")
    return item


def touch_post(post: BlogPost, now: Optional[datetime] = None) -> None:
    post.updated_at = now or datetime.now(timezone.utc)


def publish_post(post: BlogPost, now: Optional[datetime] = None) -> None:
    current = now or datetime.now(timezone.utc)
    post.status = "published"
    if post.published_at is None:
        post.published_at = current
    touch_post(post, current)


def set_news_published(item: NewsItem, published: bool, now: Optional[datetime] = None) -> None:
    item.is_published = published
    if published and item.published_at is None:
        item.published_at = now or datetime.now(timezone.utc)
