from datetime import datetime, timezone

import pytest

from models.content import BlogPost, NewsItem
from services.feeds import build_blog_rss, build_sitemap
from services.tenant import TenantContext


TR_TENANT = TenantContext(
    code="tr",
    locale="tr-TR",
    host="gumruk360.com",
    base_url="https://gumruk360.com",
    primary_base_url="https://gumruk360.com",
)


def _post(slug, title, published_at, tenant_id=None, status="published", summary=None):
    return BlogPost(
        slug=slug,
        title=title,
        summary=summary,
        content="Body",
        status=status,
        tenant_id=tenant_id,
        published_at=published_at,
        updated_at=published_at,
    )


def test_blog_rss_is_deterministic_and_escapes_content():
    posts = [
        _post(
            "ihracat-rejimi",
            "İhracat & <Rejim>",
            datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc),
            summary="Contains ]]> marker",
        ),
        _post("transit", "Transit", datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)),
    ]

    first = build_blog_rss(posts, TR_TENANT)
    second = build_blog_rss(posts, TR_TENANT)
    assert first == second
    assert first.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<title>Gümrük360 Blog</title>" in first
    assert "<language>tr-TR</language>" in first
    assert "<lastBuildDate>Mon, 02 Mar 2026 09:30:00 GMT</lastBuildDate>" in first
    assert "<title><![CDATA[İhracat & <Rejim>]]></title>" in first
    assert "<![CDATA[Contains ]]]]><![CDATA[> marker]]>" in first
    assert '<guid isPermaLink="true">https://gumruk360.com/blog/ihracat-rejimi</guid>' in first
    assert first.index("/blog/ihracat-rejimi") < first.index("/blog/transit")


def test_sitemap_lists_static_pages_posts_and_news():
    posts = [_post("transit", "Transit", datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc))]
    news = [
        NewsItem(
            slug="yeni-tebligat",
            title="Yeni tebliğ",
            is_published=True,
            published_at=datetime(2026, 4, 5, 8, 0, tzinfo=timezone.utc),
        )
    ]
    xml = build_sitemap(posts, news, TR_TENANT)

    assert "<url><loc>https://gumruk360.com</loc><changefreq>monthly</changefreq><priority>1.0</priority></url>" in xml
    assert "<loc>https://gumruk360.com/pricing</loc>" in xml
    assert "<loc>https://gumruk360.com/blog/transit</loc><lastmod>2026-02-01T12:00:00Z</lastmod>" in xml
    assert "<loc>https://gumruk360.com/news/yeni-tebligat</loc><lastmod>2026-04-05T08:00:00Z</lastmod>" in xml
    assert xml.endswith("</urlset>\n")


@pytest.mark.asyncio
async def test_feed_endpoints_only_show_published_rows_for_tenant(api):
    async with api.session_maker() as session:
        session.add_all(
            [
                _post("shared-post", "Shared", datetime(2026, 5, 1, tzinfo=timezone.utc)),
                _post("other-tenant", "Other", datetime(2026, 5, 2, tzinfo=timezone.utc), tenant_id="tenant-en"),
                _post("still-draft", "Draft", None, status="draft"),
                NewsItem(
                    slug="shared-news",
                    title="Shared news",
                    is_published=True,
                    published_at=datetime(2026, 5, 3, tzinfo=timezone.utc),
                ),
                NewsItem(slug="hidden-news", title="Hidden", is_published=False),
            ]
        )
        await session.commit()

    rss = await api.client.get("/rss.xml")
    assert rss.status_code == 200
    assert rss.headers["content-type"].startswith("application/rss+xml")
    assert "/blog/shared-post" in rss.text
    assert "/blog/other-tenant" not in rss.text
    assert "/blog/still-draft" not in rss.text

    news_rss = await api.client.get("/news/rss.xml")
    assert "/news/shared-news" in news_rss.text
    assert "/news/hidden-news" not in news_rss.text

    sitemap = await api.client.get("/sitemap.xml")
    assert sitemap.headers["content-type"].startswith("application/xml")
    assert "/blog/shared-post" in sitemap.text
    assert "/news/shared-news" in sitemap.text
    assert "/blog/other-tenant" not in sitemap.text

    blog_sitemap = await api.client.get("/sitemap-blog.xml")
    assert "/blog/shared-post" in blog_sitemap.text
    assert "/news/shared-news" not in blog_sitemap.text
