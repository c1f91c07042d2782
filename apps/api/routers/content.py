"""Blog authoring, public blog/news, feeds, CV preview and signed storage downloads."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.content import BlogPost, NewsItem
from models.profile import Profile
from routers.auth_scope import AuthContext, get_auth_context
from routers.tenant_scope import get_tenant
from services.content import (
    clean_tags,
    get_post_or_404,
    serialize_news,
    serialize_post,
    slugify,
    touch_post,
    unique_slug,
)
from services.feeds import (
    build_blog_rss,
    build_blog_sitemap,
    build_news_rss,
    build_sitemap,
    published_news,
    published_posts,
)
from services.storage import resolve_signed_object
from services.tenant import TenantContext
from services.worker_cv import get_cv_profile, list_blocks, photo_signed_url, serialize_block, serialize_cv_profile

router = APIRouter()

XML_MEDIA_TYPE = "application/xml; charset=utf-8"


class BlogDraftBody(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=300)
    summary: Optional[str] = Field(default=None, max_length=2000)
    content: Optional[str] = Field(default=None, max_length=500000)
    tags: Optional[List[str]] = None
    slug: Optional[str] = Field(default=None, max_length=120)


def _visible_to(column, tenant: TenantContext):
    if tenant.tenant_id:
        return or_(column.is_(None), column == tenant.tenant_id)
    return column.is_(None)


async def _own_draft(db: AsyncSession, post_id: str, auth: AuthContext) -> BlogPost:
    post = await get_post_or_404(db, post_id)
    if post.author_id != auth.user_id and auth.role != "admin":
        raise HTTPException(status_code=403, detail="forbidden")
    if post.status == "published":
        raise HTTPException(status_code=409, detail="post_already_published")
    return post


# Authoring

@router.post("/blog/drafts")
async def create_blog_draft(
    body: BlogDraftBody,
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    if not body.title:
        raise HTTPException(status_code=400, detail="title_required")
    post = BlogPost(
        tenant_id=tenant.tenant_id,
        slug=await unique_slug(db, BlogPost, tenant.tenant_id, slugify(body.slug or body.title)),
        title=body.title.strip(),
        summary=body.summary,
        content=body.content,
        tags=clean_tags(body.tags),
        status="draft",
        author_id=auth.user_id,
    )
    touch_post(post)
    db.add(post)
    await db.commit()
    return {"ok": True, "post": serialize_post(post)}


@router.patch("/blog/drafts/{post_id}")
async def update_blog_draft(
    post_id: str,
    body: BlogDraftBody,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    post = await _own_draft(db, post_id, auth)
    values = body.model_dump(exclude_unset=True)
    if values.get("title"):
        post.title = values["title"].strip()
    for field in ("summary", "content"):
        if field in values:
            setattr(post, field, values[field])
    if "tags" in values:
        post.tags = clean_tags(values["tags"])
    if values.get("slug"):
        post.slug = await unique_slug(db, BlogPost, post.tenant_id, slugify(values["slug"]), exclude_id=post.id)
    touch_post(post)
    await db.commit()
    return {"ok": True, "post": serialize_post(post)}


@router.post("/blog/drafts/{post_id}/submit")
async def submit_blog_draft(
    post_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    post = await _own_draft(db, post_id, auth)
    post.status = "in_review"
    touch_post(post)
    await db.commit()
    return {"ok": True, "post": serialize_post(post, include_content=False)}


# Feeds. Declared before the slug routes so `/news/rss.xml` is not read as a slug.

@router.get("/rss.xml")
async def blog_rss(tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    posts = await published_posts(db, tenant)
    return Response(content=build_blog_rss(posts, tenant), media_type="application/rss+xml; charset=utf-8")


@router.get("/news/rss.xml")
async def news_rss(tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    news = await published_news(db, tenant)
    return Response(content=build_news_rss(news, tenant), media_type="application/rss+xml; charset=utf-8")


@router.get("/sitemap-blog.xml")
async def blog_sitemap(tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    posts = await published_posts(db, tenant, limit=5000)
    return Response(content=build_blog_sitemap(posts, tenant), media_type=XML_MEDIA_TYPE)


@router.get("/sitemap.xml")
async def sitemap(tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    posts = await published_posts(db, tenant, limit=5000)
    news = await published_news(db, tenant, limit=5000)
    return Response(content=build_sitemap(posts, news, tenant), media_type=XML_MEDIA_TYPE)


# Public reading

@router.get("/blog")
async def list_blog(
    tag: Optional[str] = Query(default=None, max_length=64),
    limit: int = Query(default=20, ge=1, le=100),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    posts = await published_posts(db, tenant, limit=500 if tag else limit)
    if tag:
        wanted = tag.strip().lower()
        posts = [post for post in posts if wanted in (post.tags or [])][:limit]
    return {"ok": True, "posts": [serialize_post(post, include_content=False) for post in posts]}


@router.get("/blog/{slug}")
async def get_blog_post(slug: str, tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(BlogPost)
        .where(BlogPost.slug == slug, BlogPost.status == "published", _visible_to(BlogPost.tenant_id, tenant))
        .order_by(BlogPost.tenant_id.desc())
    )
    post = result.scalars().first()
    if post is None:
        raise HTTPException(status_code=404, detail="post_not_found")
    return {"ok": True, "post": serialize_post(post)}


@router.get("/news")
async def list_news(
    limit: int = Query(default=20, ge=1, le=100),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    news = await published_news(db, tenant, limit=limit)
    return {"ok": True, "news": [serialize_news(item, include_body=False) for item in news]}


@router.get("/news/{slug}")
async def get_news_item(slug: str, tenant: TenantContext = Depends(get_tenant), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(NewsItem)
        .where(NewsItem.slug == slug, NewsItem.is_published.is_(True), _visible_to(NewsItem.tenant_id, tenant))
        .order_by(NewsItem.tenant_id.desc())
    )
    item = result.scalars().first()
    if item is None:
        raise HTTPException(status_code=404, detail="news_not_found")
    return {"ok": True, "news": serialize_news(item)}


@router.get("/cv/preview/{worker_id}")
async def cv_preview(worker_id: str, db: AsyncSession = Depends(get_db)):
    """Public consultant CV with a short-lived photo link."""
    worker = (await db.execute(select(Profile).where(Profile.id == worker_id))).scalar_one_or_none()
    if worker is None or worker.role not in ("worker", "admin"):
        raise HTTPException(status_code=404, detail="consultant_not_found")
    profile = await get_cv_profile(db, worker_id)
    blocks = await list_blocks(db, worker_id)
    photo = await photo_signed_url(db, worker_id)
    return {
        "ok": True,
        "profile": serialize_cv_profile(profile, worker_id),
        "blocks": [serialize_block(block) for block in blocks],
        "photo_url": photo.get("url"),
    }


@router.get("/storage/{bucket}/{path:path}")
async def download_object(bucket: str, path: str, token: str = Query(..., min_length=10)):
    target = resolve_signed_object(bucket, path, token)
    return FileResponse(target)
