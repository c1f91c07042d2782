"""Customer question endpoints: ask, list and pay with credits."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.question import Question
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from routers.tenant_scope import get_tenant
from services.audit_log import record_audit
from services.questions import (
    credit_options,
    get_question_or_404,
    new_question,
    owned_question,
    pay_with_credits,
    serialize_question,
)
from services.tenant import TenantContext

router = APIRouter()
logger = logging.getLogger(__name__)


class AskRequest(BaseModel):
    title: str = Field(min_length=3, max_length=300)
    description: Optional[str] = Field(default=None, max_length=20000)
    price_tl: Optional[float] = Field(default=None, ge=0)
    sla_hours: Optional[int] = Field(default=None, ge=1, le=24 * 60)


@router.post("")
async def ask_question(
    body: AskRequest,
    _rate_limit: None = Depends(rate_limit("ask", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    question = new_question(
        user_id=auth.user_id,
        tenant_id=tenant.tenant_id,
        title=body.title,
        description=body.description,
        price_tl=body.price_tl,
        sla_hours=body.sla_hours,
    )
    db.add(question)
    await db.commit()
    await record_audit(
        db,
        "question.create",
        resource_type="question",
        resource_id=question.id,
        actor_role="user",
        actor_id=auth.user_id,
        tenant_id=tenant.tenant_id,
    )
    logger.info("Question %s created by %s", question.id, auth.user_id)
    return {"ok": True, "question": serialize_question(question)}


@router.get("")
async def list_my_questions(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    query = select(Question).where(Question.user_id == auth.user_id)
    if status:
        query = query.where(Question.status == status)
    result = await db.execute(query.order_by(Question.created_at.desc(), Question.id.asc()).limit(limit))
    return {"ok": True, "questions": [serialize_question(item) for item in result.scalars().all()]}


@router.get("/{question_id}")
async def get_my_question(
    question_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    question = owned_question(await get_question_or_404(db, question_id), auth.user_id)
    return {"ok": True, "question": serialize_question(question)}


@router.get("/{question_id}/credit-options")
async def question_credit_options(
    question_id: str,
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Credits needed to pay for a question from the user or organization balance."""
    question = owned_question(await get_question_or_404(db, question_id), auth.user_id)
    return await credit_options(db, question, auth.user_id, tenant.pricing_multiplier)


@router.post("/{question_id}/pay-credit")
async def pay_question_with_user_credits(
    question_id: str,
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    return await pay_with_credits(
        db,
        question,
        auth.user_id,
        scope_type="user",
        multiplier=tenant.pricing_multiplier,
        lang=tenant.lang,
    )


@router.post("/{question_id}/pay-org-credit")
async def pay_question_with_org_credits(
    question_id: str,
    auth: AuthContext = Depends(get_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    question = await get_question_or_404(db, question_id)
    return await pay_with_credits(
        db,
        question,
        auth.user_id,
        scope_type="org",
        multiplier=tenant.pricing_multiplier,
        lang=tenant.lang,
    )
