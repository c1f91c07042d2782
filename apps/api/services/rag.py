"""RAG ingestion: sentence-aware chunking and embedding storage."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import hashlib
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError
from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.rag import RagChunk, RagDocument
from services.audit_log import record_audit
from services.llm import embed_text, get_openai_client

logger = logging.getLogger(__name__)

SENTENCE_CUT_MIN_OFFSET = 300
_WHITESPACE_TRANSLATION = str.maketrans({"\r": " ", "\t": " ", "\u00a0": " "})


class RagIngestError(Exception):
    """Chunk embedding/insert failed after `inserted` chunks were stored."""

    def __init__(self, reason: str, document_id: str, inserted: int):
        super().__init__(reason)
        self.reason = reason
        self.document_id = document_id
        self.inserted = inserted


def normalize_text(text: str) -> str:
    return (text or "").translate(_WHITESPACE_TRANSLATION)


def chunk_text(text: str, target: int = 1200, overlap: int = 150) -> List[str]:
    """
    Split text into windows of at most `target` characters.

    A window is cut after its last "." when that period lies more than
    SENTENCE_CUT_MIN_OFFSET characters into the window. The next window
    starts `overlap` characters before the previous cut and always moves
    forward. Chunks are stripped and empty chunks dropped.
    """
    clean = normalize_text(text)
    size = max(int(target), 1)
    back = max(0, min(int(overlap), size - 1))
    length = len(clean)
    chunks: List[str] = []
    start = 0
    while start < length:
        end = min(start + size, length)
        if end < length:
            cut = clean.rfind(".", start, end)
            if cut > start + SENTENCE_CUT_MIN_OFFSET:
                end = cut + 1
        piece = clean[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= length:
            break
        start = max(end - back, start + 1)
    return chunks


def estimate_tokens(text: str) -> int:
    return max(1, len(text) // 4)


async def ingest_text(
    db: AsyncSession,
    *,
    title: Optional[str],
    text: str,
    source: str = "manual",
    url: Optional[str] = None,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
    actor_id: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> Dict[str, Any]:
    """
    Store a document and its embedded chunks.

    Each chunk is committed as soon as it is embedded. The first embedding
    or insert failure stops the run and raises RagIngestError; rows that
    were already written stay in place.
    """
    openai_client = client if client is not None else get_openai_client()
    clean_title = (title or "").strip()[:256] or None
    clean_source = (source or "manual").strip()[:64] or "manual"
    chunks = chunk_text(
        text,
        int(chunk_size or settings.RAG_CHUNK_SIZE),
        int(overlap if overlap is not None else settings.RAG_CHUNK_OVERLAP),
    )

    document = RagDocument(
        source=clean_source,
        title=clean_title,
        url=(url or "").strip() or None,
        jurisdiction="TR",
        hash=hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest(),
        created_at=datetime.now(timezone.utc),
    )
    db.add(document)
    await db.commit()

    inserted = 0
    model = settings.OPENAI_EMBEDDING_MODEL
    for index, content in enumerate(chunks):
        try:
            embedding = await asyncio.to_thread(embed_text, openai_client, content, model)
        except OpenAIError as exc:
            logger.warning("Embedding failed for document %s chunk %s: %s", document.id, index, exc)
            raise RagIngestError("embedding_failed", document.id, inserted) from exc
        try:
            db.add(
                RagChunk(
                    document_id=document.id,
                    idx=index,
                    content=content,
                    token_count=estimate_tokens(content),
                    embedding=embedding,
                    metadata_json={"source": clean_source, "title": clean_title, "embedding_model": model if embedding else None},
                )
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning("Chunk insert failed for document %s chunk %s: %s", document.id, index, exc)
            raise RagIngestError("chunk_insert_failed", document.id, inserted) from exc
        inserted += 1

    await record_audit(
        db,
        "rag.ingest.text",
        resource_type="rag_document",
        resource_id=document.id,
        actor_role="admin",
        actor_id=actor_id,
        payload={"title": clean_title, "source": clean_source, "chunks": inserted, "embedded": openai_client is not None},
    )
    return {"ok": True, "document_id": document.id, "chunks": inserted}


async def list_documents(db: AsyncSession, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
    counts = (
        select(RagChunk.document_id, func.count(RagChunk.id).label("chunk_count"))
        .group_by(RagChunk.document_id)
        .subquery()
    )
    result = await db.execute(
        select(RagDocument, func.coalesce(counts.c.chunk_count, 0))
        .outerjoin(counts, counts.c.document_id == RagDocument.id)
        .order_by(RagDocument.created_at.desc(), RagDocument.id.asc())
        .offset(offset)
        .limit(limit)
    )
    return [
        {
            "id": document.id,
            "title": document.title,
            "source": document.source,
            "url": document.url,
            "jurisdiction": document.jurisdiction,
            "chunks": int(chunk_count or 0),
            "created_at": document.created_at.isoformat() if document.created_at else None,
        }
        for document, chunk_count in result.all()
    ]


async def delete_document(db: AsyncSession, document_id: str) -> bool:
    document = (await db.execute(select(RagDocument).where(RagDocument.id == document_id))).scalar_one_or_none()
    if document is None:
        return False
    await db.execute(delete(RagChunk).where(RagChunk.document_id == document_id))
    await db.delete(document)
    await db.commit()
    return True
