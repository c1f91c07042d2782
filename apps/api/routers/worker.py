"""Consultant endpoints: question pool, assignment requests, revisions and CV."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.question import AssignmentRequest, Question, QuestionRevision
from routers.auth_scope import AuthContext, require_worker
from services.audit_log import record_audit
from services.questions import add_revision, get_question_or_404, serialize_question, serialize_revision
from services.worker_cv import (
    create_block,
    delete_block,
    get_cv_profile,
    get_owned_block,
    list_blocks,
    photo_signed_url,
    serialize_block,
    serialize_cv_profile,
    store_photo,
    update_block,
    upsert_cv_profile,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class AssignmentRequestBody(BaseModel):
    question_id: str
    note: Optional[str] = Field(default=None, max_length=2000)


class RevisionBody(BaseModel):
    content: str = Field(min_length=1, max_length=200000)


class CvProfileBody(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=200)
    title: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=20000)
    languages: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)


class CvBlockBody(BaseModel):
    block_type: Optional[str] = Field(default=None, max_length=64)
    title: Optional[str] = Field(default=None, max_length=300)
    body: Optional[str] = Field(default=None, max_length=20000)
    order_index: Optional[int] = None


def serialize_assignment_request(item: AssignmentRequest) -> dict:
    return {
        "id": item.id,
        "question_id": item.question_id,
        "worker_id": item.worker_id,
        "status": item.status,
        "note": item.note,
        "decided_by": item.decided_by,
        "decided_at": item.decided_at.isoformat() if item.decided_at else None,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


async def _assigned_question(db: AsyncSession, question_id: str, auth: AuthContext) -> Question:
    question = await get_question_or_404(db, question_id)
    if auth.role != "admin" and question.assigned_to != auth.user_id:
        raise HTTPException(status_code=403, detail="not_assigned")
    return question


@router.get("/pool")
async def question_pool(
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    """Approved questions nobody has taken yet."""
    result = await db.execute(
        select(Question)
        .where(Question.status == "approved", Question.assigned_to.is_(None))
        .order_by(Question.sla_due_at.asc(), Question.id.asc())
        .limit(200)
    )
    return {"ok": True, "questions": [serialize_question(item) for item in result.scalars().all()]}


@router.get("/questions")
async def my_assigned_questions(
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Question)
        .where(Question.assigned_to == auth.user_id)
        .order_by(Question.sla_due_at.asc(), Question.id.asc())
    )
    return {"ok": True, "questions": [serialize_question(item) for item in result.scalars().all()]}


@router.post("/assignment-requests")
async def request_assignment(
    body: AssignmentRequestBody,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, body.question_id)
    if question.status != "approved" or question.assigned_to:
        raise HTTPException(status_code=409, detail="question_not_available")

    existing = (
        await db.execute(
            select(AssignmentRequest).where(
                AssignmentRequest.question_id == question.id,
                AssignmentRequest.worker_id == auth.user_id,
                AssignmentRequest.status == "pending",
            )
        )
    ).scalar_one_or_none()
    if existing:
        return {"ok": True, "request": serialize_assignment_request(existing), "duplicate": True}

    item = AssignmentRequest(
        question_id=question.id,
        worker_id=auth.user_id,
        status="pending",
        note=body.note,
        created_at=datetime.now(timezone.utc),
    )
    db.add(item)
    await db.commit()
    await record_audit(
        db,
        "assignment.request",
        resource_type="question",
        resource_id=question.id,
        actor_role="worker",
        actor_id=auth.user_id,
    )
    return {"ok": True, "request": serialize_assignment_request(item)}


@router.get("/assignment-requests")
async def my_assignment_requests(
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(AssignmentRequest)
        .where(AssignmentRequest.worker_id == auth.user_id)
        .order_by(AssignmentRequest.created_at.desc())
    )
    return {"ok": True, "requests": [serialize_assignment_request(item) for item in result.scalars().all()]}


@router.get("/questions/{question_id}/revisions")
async def list_my_revisions(
    question_id: str,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    question = await _assigned_question(db, question_id, auth)
    result = await db.execute(
        select(QuestionRevision)
        .where(QuestionRevision.question_id == question.id)
        .order_by(QuestionRevision.revision_no.asc())
    )
    return {"ok": True, "revisions": [serialize_revision(item) for item in result.scalars().all()]}


@router.post("/questions/{question_id}/revisions")
async def add_my_revision(
    question_id: str,
    body: RevisionBody,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    question = await _assigned_question(db, question_id, auth)
    revision = await add_revision(db, question, body.content, source="manual", created_by=auth.user_id)
    return {"ok": True, "revision": serialize_revision(revision)}


# CV self-service

@router.get("/cv/profile")
async def get_my_cv(
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_cv_profile(db, auth.user_id)
    blocks = await list_blocks(db, auth.user_id)
    return {
        "ok": True,
        "profile": serialize_cv_profile(profile, auth.user_id),
        "blocks": [serialize_block(block) for block in blocks],
    }


@router.put("/cv/profile")
async def update_my_cv(
    body: CvProfileBody,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    profile = await upsert_cv_profile(db, auth.user_id, body.model_dump(exclude_unset=True))
    return {"ok": True, "profile": serialize_cv_profile(profile, auth.user_id)}


@router.post("/cv/blocks")
async def add_my_block(
    body: CvBlockBody,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    block = await create_block(db, auth.user_id, body.model_dump())
    return {"ok": True, "block": serialize_block(block)}


@router.patch("/cv/blocks/{block_id}")
async def edit_my_block(
    block_id: str,
    body: CvBlockBody,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    block = await get_owned_block(db, block_id, auth.user_id)
    block = await update_block(db, block, body.model_dump(exclude_unset=True))
    return {"ok": True, "block": serialize_block(block)}


@router.delete("/cv/blocks/{block_id}")
async def remove_my_block(
    block_id: str,
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    block = await get_owned_block(db, block_id, auth.user_id)
    await delete_block(db, block)
    return {"ok": True}


@router.post("/cv/photo")
async def upload_my_photo(
    file: UploadFile = File(...),
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    data = await file.read()
    path = await store_photo(db, auth.user_id, data, file.filename, file.content_type)
    logger.info("Stored CV photo for %s (%s bytes)", auth.user_id, len(data))
    return {"ok": True, "path": path}


@router.get("/cv/photo/url")
async def my_photo_url(
    auth: AuthContext = Depends(require_worker),
    db: AsyncSession = Depends(get_db),
):
    return await photo_signed_url(db, auth.user_id)
