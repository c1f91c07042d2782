"""Admin question workflow: assignment, statuses, revisions, drafts and GPT profiles."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.gpt_profile import GptAnswerProfile
from models.profile import Profile
from models.question import ANSWER_STATUSES, AssignmentRequest, Question, QuestionRevision
from routers.auth_scope import AdminContext, require_admin
from routers.worker import serialize_assignment_request
from services.audit_log import add_audit, record_audit
from services.drafts import activate_profile, generate_draft, serialize_profile
from services.mailer import send_and_log
from services.questions import (
    add_revision,
    ensure_transition,
    get_question_or_404,
    notify_assignee,
    serialize_question,
    serialize_revision,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class AssignBody(BaseModel):
    worker_id: str


class StatusBody(BaseModel):
    status: str


class AnswerStatusBody(BaseModel):
    answer_status: Optional[str] = None


class RevisionBody(BaseModel):
    content: str = Field(min_length=1, max_length=200000)


class DecisionBody(BaseModel):
    action: str = Field(pattern="^(approve|reject)$")


class BulkDeleteRequest(BaseModel):
    ids: List[str]


class GptProfileBody(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    model: Optional[str] = Field(default=None, max_length=100)
    system_prompt: str = Field(min_length=1, max_length=50000)
    temperature: float = Field(default=0.2, ge=0, le=2)
    is_active: bool = False


async def _worker_or_400(db: AsyncSession, worker_id: str) -> Profile:
    worker = (await db.execute(select(Profile).where(Profile.id == worker_id))).scalar_one_or_none()
    if worker is None or worker.role not in ("worker", "admin"):
        raise HTTPException(status_code=400, detail="worker_not_found")
    return worker


async def _revisions(db: AsyncSession, question_id: str) -> List[QuestionRevision]:
    result = await db.execute(
        select(QuestionRevision)
        .where(QuestionRevision.question_id == question_id)
        .order_by(QuestionRevision.revision_no.asc())
    )
    return list(result.scalars().all())


@router.get("/questions")
async def list_questions(
    status: Optional[str] = Query(default=None),
    assigned_to: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(Question)
    if status:
        query = query.where(Question.status == status)
    if assigned_to:
        query = query.where(Question.assigned_to == assigned_to)
    result = await db.execute(query.order_by(Question.created_at.desc(), Question.id.asc()).offset(offset).limit(limit))
    return {"ok": True, "questions": [serialize_question(item) for item in result.scalars().all()]}


@router.post("/questions/bulk-delete")
async def bulk_delete_questions(
    body: BulkDeleteRequest,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete questions together with their revisions and assignment requests."""
    ids = [item for item in dict.fromkeys(body.ids) if item]
    if not ids:
        raise HTTPException(status_code=400, detail="ids_required")
    await db.execute(delete(QuestionRevision).where(QuestionRevision.question_id.in_(ids)))
    await db.execute(delete(AssignmentRequest).where(AssignmentRequest.question_id.in_(ids)))
    result = await db.execute(delete(Question).where(Question.id.in_(ids)))
    add_audit(db, "questions.bulk_delete", resource_type="question", actor_role="admin", actor_id=admin.actor_id, payload={"ids": ids})
    await db.commit()
    return {"ok": True, "deleted": int(result.rowcount or 0)}


@router.post("/questions/{question_id}/assign")
async def assign_question(
    question_id: str,
    body: AssignBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    if question.status in ("completed", "rejected"):
        raise HTTPException(status_code=409, detail="question_closed")
    worker = await _worker_or_400(db, body.worker_id)
    question.assigned_to = worker.id
    add_audit(
        db,
        "question.assign",
        resource_type="question",
        resource_id=question.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"worker_id": worker.id},
    )
    await db.commit()
    await notify_assignee(db, question)
    return {"ok": True, "question": serialize_question(question)}


@router.post("/questions/{question_id}/status")
async def set_question_status(
    question_id: str,
    body: StatusBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    previous = question.status
    ensure_transition(previous, body.status)
    question.status = body.status
    if body.status == "approved" and question.approved_at is None:
        question.approved_at = datetime.now(timezone.utc)
    add_audit(
        db,
        "question.status",
        resource_type="question",
        resource_id=question.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"from": previous, "to": body.status},
    )
    await db.commit()
    return {"ok": True, "question": serialize_question(question)}


@router.post("/questions/{question_id}/answer-status")
async def set_answer_status(
    question_id: str,
    body: AnswerStatusBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if body.answer_status is not None and body.answer_status not in ANSWER_STATUSES:
        raise HTTPException(status_code=400, detail="invalid_answer_status")
    question = await get_question_or_404(db, question_id)
    question.answer_status = body.answer_status
    await db.commit()
    return {"ok": True, "question": serialize_question(question)}


@router.post("/questions/{question_id}/send")
async def send_answer(
    question_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Mark the latest revision as sent, complete the question and e-mail the owner."""
    question = await get_question_or_404(db, question_id)
    revisions = await _revisions(db, question.id)
    if not revisions:
        raise HTTPException(status_code=400, detail="answer_missing")
    ensure_transition(question.status, "completed")

    question.answer_status = "sent"
    question.status = "completed"
    add_audit(
        db,
        "question.send",
        resource_type="question",
        resource_id=question.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"revision_no": revisions[-1].revision_no},
    )
    await db.commit()

    owner = (await db.execute(select(Profile).where(Profile.id == question.user_id))).scalar_one_or_none()
    mail = None
    if owner and owner.email:
        lang = "en" if (owner.tenant_key or "").lower() == "en" else "tr"
        subject = "Your answer is ready" if lang == "en" else "Sorunuz yanıtlandı"
        mail = await send_and_log(
            db,
            "question.answer.sent",
            owner.email,
            f"{subject}: {question.title}",
            revisions[-1].content,
            lang=lang,
            template="answer_sent",
            tenant_id=question.tenant_id,
            entity_type="question",
            entity_id=question.id,
        )
        await db.commit()
    return {"ok": True, "question": serialize_question(question), "mail": mail}


@router.get("/questions/{question_id}/revisions")
async def list_revisions(
    question_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    return {"ok": True, "revisions": [serialize_revision(item) for item in await _revisions(db, question.id)]}


@router.post("/questions/{question_id}/revisions")
async def append_revision(
    question_id: str,
    body: RevisionBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    revision = await add_revision(db, question, body.content, source="manual", created_by=admin.actor_id)
    return {"ok": True, "revision": serialize_revision(revision)}


@router.post("/questions/{question_id}/revisions/{revision_id}/revert")
async def revert_revision(
    question_id: str,
    revision_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Append a copy of an earlier revision; history is never rewritten."""
    question = await get_question_or_404(db, question_id)
    source = (
        await db.execute(
            select(QuestionRevision).where(
                QuestionRevision.id == revision_id,
                QuestionRevision.question_id == question.id,
            )
        )
    ).scalar_one_or_none()
    if source is None:
        raise HTTPException(status_code=404, detail="revision_not_found")
    revision = await add_revision(db, question, source.content, source="revert", created_by=admin.actor_id)
    return {"ok": True, "revision": serialize_revision(revision), "reverted_from": source.revision_no}


@router.post("/questions/{question_id}/generate-draft")
async def generate_question_draft(
    question_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    revision = await generate_draft(db, question, actor_id=admin.actor_id)
    return {"ok": True, "revision": serialize_revision(revision)}


@router.get("/assignment-requests")
async def list_assignment_requests(
    status: Optional[str] = Query(default="pending"),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(AssignmentRequest)
    if status:
        query = query.where(AssignmentRequest.status == status)
    result = await db.execute(query.order_by(AssignmentRequest.created_at.asc()))
    return {"ok": True, "requests": [serialize_assignment_request(item) for item in result.scalars().all()]}


@router.post("/assignment-requests/{request_id}")
async def decide_assignment_request(
    request_id: str,
    body: DecisionBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    item = (await db.execute(select(AssignmentRequest).where(AssignmentRequest.id == request_id))).scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="request_not_found")
    if item.status != "pending":
        raise HTTPException(status_code=409, detail="request_already_decided")

    question = await get_question_or_404(db, item.question_id)
    now = datetime.now(timezone.utc)
    item.decided_by = admin.actor_id or admin.via
    item.decided_at = now
    if body.action == "approve":
        if question.assigned_to and question.assigned_to != item.worker_id:
            raise HTTPException(status_code=409, detail="question_already_assigned")
        item.status = "approved"
        question.assigned_to = item.worker_id
    else:
        item.status = "rejected"
    await db.commit()

    if body.action == "approve":
        await notify_assignee(db, question)
    await record_audit(
        db,
        f"assignment.{item.status}",
        resource_type="question",
        resource_id=question.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"worker_id": item.worker_id, "request_id": item.id},
    )
    return {"ok": True, "request": serialize_assignment_request(item)}


# GPT answer profiles

@router.get("/gpt-answers/profiles")
async def list_gpt_profiles(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(GptAnswerProfile).order_by(GptAnswerProfile.created_at.desc()))
    return {"ok": True, "profiles": [serialize_profile(item) for item in result.scalars().all()]}


@router.post("/gpt-answers/profiles")
async def create_gpt_profile(
    body: GptProfileBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = GptAnswerProfile(
        name=body.name.strip(),
        model=body.model,
        system_prompt=body.system_prompt,
        temperature=body.temperature,
        is_active=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(profile)
    await db.commit()
    if body.is_active:
        profile = await activate_profile(db, profile.id)
    return {"ok": True, "profile": serialize_profile(profile)}


@router.post("/gpt-answers/profiles/{profile_id}/activate")
async def activate_gpt_profile(
    profile_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await activate_profile(db, profile_id)
    return {"ok": True, "profile": serialize_profile(profile)}


@router.delete("/gpt-answers/profiles/{profile_id}")
async def delete_gpt_profile(
    profile_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = (await db.execute(select(GptAnswerProfile).where(GptAnswerProfile.id == profile_id))).scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=404, detail="profile_not_found")
    await db.delete(profile)
    await db.commit()
    return {"ok": True}
