"""GPT answer profiles and draft generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from openai import OpenAI, OpenAIError
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.gpt_profile import GptAnswerProfile
from models.question import Question, QuestionRevision
from services.llm import complete_chat, get_openai_client
from services.questions import add_revision

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "Sen Türk gümrük mevzuatı konusunda uzman bir danışmansın. "
    "Soruyu mevzuata dayanarak açık, maddeli ve uygulanabilir şekilde yanıtla."
)


async def get_active_profile(db: AsyncSession) -> Optional[GptAnswerProfile]:
    result = await db.execute(
        select(GptAnswerProfile).where(GptAnswerProfile.is_active.is_(True)).order_by(GptAnswerProfile.created_at.desc())
    )
    return result.scalars().first()


async def activate_profile(db: AsyncSession, profile_id: str) -> GptAnswerProfile:
    """Leave exactly one profile active."""
    profile = (await db.execute(select(GptAnswerProfile).where(GptAnswerProfile.id == profile_id))).scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=404, detail="profile_not_found")
    await db.execute(
        update(GptAnswerProfile)
        .where(GptAnswerProfile.id != profile_id)
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    profile.is_active = True
    await db.commit()
    return profile


def serialize_profile(profile: GptAnswerProfile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "name": profile.name,
        "model": profile.model,
        "system_prompt": profile.system_prompt,
        "temperature": profile.temperature,
        "is_active": bool(profile.is_active),
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
    }


def build_user_message(question: Question) -> str:
    parts = [f"Başlık: {question.title}"]
    if question.description:
        parts.append(f"Soru:\n{question.description}")
    return "\n\n".join(parts)


def _mock_draft(question: Question) -> str:
    return (
        f"Taslak yanıt: {question.title}\n\n"
        "1. Sorunun kapsamı ve ilgili mevzuat başlıkları\n"
        "2. Uygulanacak gümrük rejimi ve gerekli belgeler\n"
        "3. Önerilen adımlar\n\n"
        "(OpenAI anahtarı tanımlı olmadığından otomatik taslak üretildi.)"
    )


async def generate_draft(
    db: AsyncSession,
    question: Question,
    *,
    actor_id: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> QuestionRevision:
    """Draft an answer with the active profile and store it as a `gpt` revision."""
    profile = await get_active_profile(db)
    openai_client = client if client is not None else get_openai_client()
    if openai_client is None:
        logger.warning("OpenAI client not configured; using local draft for question %s", question.id)
        content = _mock_draft(question)
    else:
        try:
            content = await asyncio.to_thread(
                complete_chat,
                openai_client,
                system_prompt=profile.system_prompt if profile else DEFAULT_SYSTEM_PROMPT,
                user_message=build_user_message(question),
                model=profile.model if profile and profile.model else None,
                temperature=float(profile.temperature) if profile else 0.2,
            )
        except OpenAIError as exc:
            logger.warning("Draft generation failed for question %s: %s", question.id, exc)
            raise HTTPException(status_code=502, detail="draft_generation_failed") from exc
        if not content:
            raise HTTPException(status_code=502, detail="draft_generation_failed")

    return await add_revision(db, question, content, source="gpt", created_by=actor_id)
