"""RSS and sitemap XML for published blog posts and news."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Iterable, List, Optional, Sequence
from xml.sax.saxutils import escape

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.content import BlogPost, NewsItem
from services.questions import as_utc
from services.tenant import TenantContext

FEED_LIMIT = 50
STATIC_PAGES = ("", "/about", "/pricing", "/contact", "/blog", "/news", "/ask")


def _cdata(value: Optional[str]) -> str:
    return "<![CDATA[" + (value or "").replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _rfc822(value: Optional[datetime]) -> str:
    moment = as_utc(value) or datetime(1970, 1, 1, tzinfo=timezone.utc)
    return format_datetime(moment, usegmt=True)


def _iso(value: Optional[datetime]) -> Optional[str]:
    moment = as_utc(value)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ") if moment else None


def _tenant_filter(column, tenant: TenantContext):
    if tenant.tenant_id:
        return or_(column.is_(None), column == tenant.tenant_id)
    return column.is_(None)


async def published_posts(db: AsyncSession, tenant: TenantContext, limit: int = FEED_LIMIT) -> List[BlogPost]:
    result = await db.execute(
        select(BlogPost)
        .where(
            BlogPost.status == "published",
            BlogPost.published_at.is_not(None),
            _tenant_filter(BlogPost.tenant_id, tenant),
        )
        .order_by(BlogPost.published_at.desc(), BlogPost.slug.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def published_news(db: AsyncSession, tenant: TenantContext, limit: int = FEED_LIMIT) -> List[NewsItem]:
    result = await db.execute(
        select(NewsItem)
        .where(
            NewsItem.is_published.is_(True),
            NewsItem.published_at.is_not(None),
            _tenant_filter(NewsItem.tenant_id, tenant),
        )
        .order_by(NewsItem.published_at.desc(), NewsItem.slug.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


def _rss(title: str, link: str, description: str, language: str, items: Iterable[str], last_build: Optional[datetime]) -> str:
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{escape(title)}</title>",
        f"<link>{escape(link)}</link>",
        f"<description>{escape(description)}</description>",
        f"<language>{escape(language)}</language>",
    ]
    if last_build is not None:
        parts.append(f"<lastBuildDate>{_rfc822(last_build)}</lastBuildDate>")
    parts.extend(items)
    parts.extend(["</channel>", "</rss>"])
    return "\n".join(parts) + "\n"


def _rss_item(title: str, url: str, description: Optional[str], published_at: Optional[datetime]) -> str:
    return (
        "<item>"
        f"<title>{_cdata(title)}</title>"
        f"<link>{escape(url)}</link>"
        f'<guid isPermaLink="true">{escape(url)}</guid>'
        f"<description>{_cdata(description)}</description>"
        f"<pubDate>{_rfc822(published_at)}</pubDate>"
        "</item>"
    )


def build_blog_rss(posts: Sequence[BlogPost], tenant: TenantContext) -> str:
    """RSS 2.0 for blog posts; output depends only on the rows and tenant."""
    base = tenant.base_url.rstrip("/")
    brand = "EasyCustoms360" if tenant.code == "en" else "Gümrük360"
    items = [_rss_item(post.title, f"{base}/blog/{post.slug}", post.summary, post.published_at) for post in posts]
    return _rss(
        f"{brand} Blog",
        f"{base}/blog",
        "Customs consulting articles" if tenant.code == "en" else "Gümrük danışmanlığı yazıları",
        tenant.locale,
        items,
        posts[0].published_at if posts else None,
    )


def build_news_rss(news: Sequence[NewsItem], tenant: TenantContext) -> str:
    base = tenant.base_url.rstrip("/")
    brand = "EasyCustoms360" if tenant.code == "en" else "Gümrük360"
    items = [_rss_item(item.title, f"{base}/news/{item.slug}", item.summary, item.published_at) for item in news]
    return _rss(
        f"{brand} News",
        f"{base}/news",
        "Customs news" if tenant.code == "en" else "Gümrük haberleri",
        tenant.locale,
        items,
        news[0].published_at if news else None,
    )


def _url_entry(loc: str, lastmod: Optional[str], changefreq: str, priority: str) -> str:
    parts = [f"<url><loc>{escape(loc)}</loc>"]
    if lastmod:
        parts.append(f"<lastmod>{lastmod}</lastmod>")
    parts.append(f"<changefreq>{changefreq}</changefreq><priority>{priority}</priority></url>")
    return "".join(parts)


def _urlset(entries: Iterable[str]) -> str:
    body = "\n".join(entries)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}\n"
        "</urlset>\n"
    )


def build_blog_sitemap(posts: Sequence[BlogPost], tenant: TenantContext) -> str:
    base = tenant.base_url.rstrip("/")
    return _urlset(
        _url_entry(f"{base}/blog/{post.slug}", _iso(post.updated_at or post.published_at), "weekly", "0.6")
        for post in posts
    )


def build_sitemap(posts: Sequence[BlogPost], news: Sequence[NewsItem], tenant: TenantContext) -> str:
    base = tenant.base_url.rstrip("/")
    entries = [_url_entry(f"{base}{path}", None, "monthly", "1.0" if not path else "0.8") for path in STATIC_PAGES]
    entries.extend(
        _url_entry(f"{base}/blog/{post.slug}", _iso(post.updated_at or post.published_at), "weekly", "0.6")
        for post in posts
    )
    entries.extend(
        _url_entry(f"{base}/news/{item.slug}", _iso(item.published_at), "weekly", "0.5") for item in news
    )
    return _urlset(entries)
