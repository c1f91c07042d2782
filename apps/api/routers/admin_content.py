"""Admin news/blog publishing, contact tickets, RAG documents and SLA rules."""

import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.contact import CONTACT_STATUSES, ContactTicket
from models.content import BlogPost, NewsItem
from models.sla_rule import SlaReminderRule
from routers.auth_scope import AdminContext, require_admin
from routers.payload import as_bool, read_payload
from services.audit_log import add_audit
from services.content import (
    get_news_or_404,
    get_post_or_404,
    publish_post,
    serialize_news,
    serialize_post,
    set_news_published,
    slugify,
    unique_slug,
)
from services.questions import as_utc
from services.rag import RagIngestError, delete_document, ingest_text, list_documents
from services.sla import build_rule, serialize_rule
from services.storage import put_object

router = APIRouter()
logger = logging.getLogger(__name__)

RAG_UPLOAD_EXTENSIONS = (".txt", ".md", ".markdown", ".csv")


class NewsBody(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=300)
    summary: Optional[str] = Field(default=None, max_length=2000)
    body: Optional[str] = Field(default=None, max_length=200000)
    lang: Optional[str] = Field(default=None, max_length=8)
    slug: Optional[str] = Field(default=None, max_length=120)
    tenant_id: Optional[str] = None
    is_published: Optional[bool] = None


class ContactStatusBody(BaseModel):
    status: str


class RagIngestBody(BaseModel):
    title: Optional[str] = Field(default=None, max_length=256)
    text: Optional[str] = None
    source: str = Field(default="manual", max_length=64)
    url: Optional[str] = Field(default=None, max_length=2000)
    chunk_size: Optional[int] = Field(default=None, ge=200, le=8000)
    overlap: Optional[int] = Field(default=None, ge=0, le=2000)


def serialize_ticket(ticket: ContactTicket) -> dict:
    return {
        "id": ticket.id,
        "tenant_id": ticket.tenant_id,
        "user_id": ticket.user_id,
        "email": ticket.email,
        "phone": ticket.phone,
        "subject": ticket.subject,
        "message": ticket.message,
        "locale": ticket.locale,
        "reference": ticket.reference,
        "status": ticket.status,
        "spam_score": ticket.spam_score,
        "created_at": as_utc(ticket.created_at).isoformat() if ticket.created_at else None,
    }


def _rag_failure(exc: RagIngestError) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={"error": exc.reason, "document_id": exc.document_id, "inserted": exc.inserted},
    )


# Blog and news

@router.get("/blog")
async def list_posts_for_review(
    status: Optional[str] = Query(default="in_review"),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(BlogPost)
    if status:
        query = query.where(BlogPost.status == status)
    result = await db.execute(query.order_by(BlogPost.updated_at.desc(), BlogPost.id.asc()).limit(200))
    return {"ok": True, "posts": [serialize_post(post, include_content=False) for post in result.scalars().all()]}


@router.post("/blog/{post_id}/publish")
async def publish_blog_post(
    post_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    publish_post(post)
    add_audit(db, "blog.publish", resource_type="blog_post", resource_id=post.id, actor_role="admin", actor_id=admin.actor_id)
    await db.commit()
    return {"ok": True, "post": serialize_post(post, include_content=False)}


@router.post("/news")
async def create_news(
    body: NewsBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not body.title:
        raise HTTPException(status_code=400, detail="title_required")
    item = NewsItem(
        tenant_id=body.tenant_id,
        slug=await unique_slug(db, NewsItem, body.tenant_id, slugify(body.slug or body.title)),
        title=body.title.strip(),
        summary=body.summary,
        body=body.body,
        lang=body.lang,
        is_published=False,
        created_at=datetime.now(timezone.utc),
    )
    set_news_published(item, bool(body.is_published))
    db.add(item)
    add_audit(db, "news.create", resource_type="news_item", resource_id=item.slug, actor_role="admin", actor_id=admin.actor_id)
    await db.commit()
    return {"ok": True, "news": serialize_news(item)}


@router.patch("/news/{news_id}")
async def update_news(
    news_id: str,
    body: NewsBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    item = await get_news_or_404(db, news_id)
    values = body.model_dump(exclude_unset=True)
    if values.get("title"):
        item.title = values["title"].strip()
    for field in ("summary", "body", "lang"):
        if field in values:
            setattr(item, field, values[field])
    if values.get("slug"):
        item.slug = await unique_slug(db, NewsItem, item.tenant_id, slugify(values["slug"]), exclude_id=item.id)
    if values.get("is_published") is not None:
        set_news_published(item, values["is_published"])
    await db.commit()
    return {"ok": True, "news": serialize_news(item)}


@router.delete("/news/{news_id}")
async def delete_news(
    news_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    item = await get_news_or_404(db, news_id)
    await db.delete(item)
    add_audit(db, "news.delete", resource_type="news_item", resource_id=news_id, actor_role="admin", actor_id=admin.actor_id)
    await db.commit()
    return {"ok": True}


# Contact tickets

@router.get("/contact")
async def list_contact_tickets(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(ContactTicket)
    if status:
        query = query.where(ContactTicket.status == status)
    result = await db.execute(query.order_by(ContactTicket.created_at.desc(), ContactTicket.id.asc()).offset(offset).limit(limit))
    return {"ok": True, "tickets": [serialize_ticket(item) for item in result.scalars().all()]}


@router.get("/contact/{ticket_id}")
async def get_contact_ticket(
    ticket_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket = (await db.execute(select(ContactTicket).where(ContactTicket.id == ticket_id))).scalar_one_or_none()
    if ticket is None:
        raise HTTPException(status_code=404, detail="ticket_not_found")
    return {"ok": True, "ticket": serialize_ticket(ticket)}


@router.patch("/contact/{ticket_id}")
async def update_contact_ticket(
    ticket_id: str,
    body: ContactStatusBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if body.status not in CONTACT_STATUSES:
        raise HTTPException(status_code=400, detail="invalid_status")
    ticket = (await db.execute(select(ContactTicket).where(ContactTicket.id == ticket_id))).scalar_one_or_none()
    if ticket is None:
        raise HTTPException(status_code=404, detail="ticket_not_found")
    ticket.status = body.status
    await db.commit()
    return {"ok": True, "ticket": serialize_ticket(ticket)}


# RAG documents

@router.post("/rag/ingest")
async def rag_ingest(
    body: RagIngestBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not (body.text or "").strip():
        raise HTTPException(status_code=400, detail="text_required")
    try:
        return await ingest_text(
            db,
            title=body.title,
            text=body.text,
            source=body.source,
            url=body.url,
            chunk_size=body.chunk_size,
            overlap=body.overlap,
            actor_id=admin.actor_id,
        )
    except RagIngestError as exc:
        raise _rag_failure(exc) from exc


@router.post("/rag/upload")
async def rag_upload(
    file: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    source: str = Form(default="upload"),
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Ingest an uploaded UTF-8 text, markdown or CSV file."""
    filename = PurePosixPath(file.filename or "upload.txt").name
    if PurePosixPath(filename).suffix.lower() not in RAG_UPLOAD_EXTENSIONS:
        raise HTTPException(status_code=400, detail="unsupported_file_type")
    data = await file.read()
    if len(data) > int(settings.RAG_UPLOAD_MAX_MB) * 1024 * 1024:
        raise HTTPException(status_code=413, detail="file_too_large")
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="invalid_encoding") from exc
    if not text.strip():
        raise HTTPException(status_code=400, detail="text_required")

    stored_path = put_object("rag-uploads", f"{datetime.now(timezone.utc):%Y%m%d%H%M%S}-{filename}", data)
    try:
        return await ingest_text(
            db,
            title=title or filename,
            text=text,
            source=source,
            url=stored_path,
            actor_id=admin.actor_id,
        )
    except RagIngestError as exc:
        raise _rag_failure(exc) from exc


@router.get("/rag/docs")
async def rag_documents(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"ok": True, "documents": await list_documents(db, limit=limit, offset=offset)}


@router.delete("/rag/docs/{document_id}")
async def rag_delete_document(
    document_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_document(db, document_id):
        raise HTTPException(status_code=404, detail="document_not_found")
    return {"ok": True}


# SLA reminder rules

async def _rule_or_404(db: AsyncSession, rule_id: str) -> SlaReminderRule:
    rule = (await db.execute(select(SlaReminderRule).where(SlaReminderRule.id == rule_id))).scalar_one_or_none()
    if rule is None:
        raise HTTPException(status_code=404, detail="rule_not_found")
    return rule


@router.get("/sla-rules")
async def list_sla_rules(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(SlaReminderRule).order_by(SlaReminderRule.minutes_before_sla.asc(), SlaReminderRule.id.asc()))
    return {"ok": True, "rules": [serialize_rule(rule) for rule in result.scalars().all()]}


@router.post("/sla-rules")
async def create_sla_rule(
    request: Request,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = build_rule(await read_payload(request))
    rule.created_at = datetime.now(timezone.utc)
    db.add(rule)
    await db.commit()
    return {"ok": True, "rule": serialize_rule(rule)}


@router.patch("/sla-rules")
async def update_sla_rule(
    request: Request,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Only `is_active` and `name` can change; other edits go through delete and create."""
    payload = await read_payload(request)
    rule_id = str(payload.get("id") or "").strip()
    if not rule_id:
        raise HTTPException(status_code=400, detail="id_required")
    if "is_active" not in payload and "name" not in payload:
        raise HTTPException(status_code=400, detail="no_fields")
    rule = await _rule_or_404(db, rule_id)
    if "is_active" in payload:
        rule.is_active = as_bool(payload["is_active"])
    if "name" in payload:
        name = str(payload["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="name_required")
        rule.name = name
    await db.commit()
    return {"ok": True, "rule": serialize_rule(rule)}


@router.delete("/sla-rules")
async def delete_sla_rule(
    id: Optional[str] = Query(default=None),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not id:
        raise HTTPException(status_code=400, detail="id_required")
    rule = await _rule_or_404(db, id)
    await db.delete(rule)
    await db.commit()
    return {"ok": True}
