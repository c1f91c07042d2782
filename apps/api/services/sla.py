"""SLA reminder rules: validation, matching and the reminder sweep."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import admin_notify_emails
from database import async_session_maker
from models.audit_log import NotificationLog
from models.profile import Profile
from models.question import Question
from models.sla_rule import DEFAULT_SLA_BODY, DEFAULT_SLA_SUBJECT, SlaReminderRule
from services.mailer import render_template, send_and_log
from services.questions import as_utc

logger = logging.getLogger(__name__)

SWEEP_QUESTION_LIMIT = 500


@dataclass
class SweepStats:
    processed: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    rules: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "rules": self.rules,
            "processed": self.processed,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors[:20],
        }


def _string_list(value: Any, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        value = [item for item in value.split(",")]
    return [str(item).strip() for item in value if str(item).strip()]


def build_rule(payload: Dict[str, Any]) -> SlaReminderRule:
    """Validated rule from an admin payload."""
    name = str(payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="name_required")
    try:
        minutes = int(payload.get("minutes_before_sla"))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="minutes_before_sla_invalid") from exc
    if minutes <= 0:
        raise HTTPException(status_code=400, detail="minutes_before_sla_invalid")

    return SlaReminderRule(
        name=name,
        tenant_id=(str(payload.get("tenant_id") or "").strip() or None),
        minutes_before_sla=minutes,
        send_to_assignee=bool(payload.get("send_to_assignee", True)),
        send_to_admins=bool(payload.get("send_to_admins", False)),
        allowed_question_statuses=_string_list(payload.get("allowed_question_statuses"), ["approved"]),
        allowed_answer_statuses=_string_list(payload.get("allowed_answer_statuses"), []),
        include_null_answer_status=bool(payload.get("include_null_answer_status", True)),
        subject_template=str(payload.get("subject_template") or DEFAULT_SLA_SUBJECT),
        body_template=str(payload.get("body_template") or DEFAULT_SLA_BODY),
        is_active=bool(payload.get("is_active", True)),
    )


def serialize_rule(rule: SlaReminderRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "tenant_id": rule.tenant_id,
        "minutes_before_sla": rule.minutes_before_sla,
        "send_to_assignee": bool(rule.send_to_assignee),
        "send_to_admins": bool(rule.send_to_admins),
        "allowed_question_statuses": list(rule.allowed_question_statuses or []),
        "allowed_answer_statuses": list(rule.allowed_answer_statuses or []),
        "include_null_answer_status": bool(rule.include_null_answer_status),
        "subject_template": rule.subject_template,
        "body_template": rule.body_template,
        "is_active": bool(rule.is_active),
        "created_at": as_utc(rule.created_at).isoformat() if rule.created_at else None,
    }


def rule_matches_question(rule: SlaReminderRule, question: Question, now: datetime) -> bool:
    statuses = _string_list(rule.allowed_question_statuses, ["approved"])
    if question.status not in statuses:
        return False

    due = as_utc(question.sla_due_at)
    if due is None:
        return False
    current = as_utc(now)
    if not (current < due <= current + timedelta(minutes=int(rule.minutes_before_sla))):
        return False

    if rule.tenant_id and question.tenant_id != rule.tenant_id:
        return False

    answer_statuses = _string_list(rule.allowed_answer_statuses, [])
    if question.answer_status is None:
        return bool(rule.include_null_answer_status)
    return not answer_statuses or question.answer_status in answer_statuses


def reminder_event(rule: SlaReminderRule, role: str) -> str:
    return f"sla.rule.{rule.id}.{role}"


async def _already_sent(db: AsyncSession, event: str, question_id: str) -> bool:
    result = await db.execute(
        select(NotificationLog.id).where(
            NotificationLog.event == event,
            NotificationLog.entity_id == question_id,
            NotificationLog.status.in_(("sent", "ok", "queued")),
        )
    )
    return result.first() is not None


async def _recipients_for(db: AsyncSession, rule: SlaReminderRule, question: Question) -> Dict[str, List[str]]:
    targets: Dict[str, List[str]] = {}
    if rule.send_to_assignee and question.assigned_to:
        worker = (await db.execute(select(Profile).where(Profile.id == question.assigned_to))).scalar_one_or_none()
        if worker and worker.email:
            targets["worker"] = [worker.email]
    if rule.send_to_admins:
        admins = admin_notify_emails()
        if admins:
            targets["admin"] = admins
    return targets


async def run_sla_reminders(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Send due reminders once per (rule, role, question)."""
    current = as_utc(now) if now else datetime.now(timezone.utc)
    stats = SweepStats()
    rules = (
        await db.execute(select(SlaReminderRule).where(SlaReminderRule.is_active.is_(True)).order_by(SlaReminderRule.created_at.asc()))
    ).scalars().all()
    stats.rules = len(rules)

    for rule in rules:
        horizon = current + timedelta(minutes=int(rule.minutes_before_sla))
        query = select(Question).where(
            Question.status.in_(_string_list(rule.allowed_question_statuses, ["approved"])),
            Question.sla_due_at > current,
            Question.sla_due_at <= horizon,
        )
        if rule.tenant_id:
            query = query.where(Question.tenant_id == rule.tenant_id)
        questions = (await db.execute(query.order_by(Question.sla_due_at.asc()).limit(SWEEP_QUESTION_LIMIT))).scalars().all()

        for question in questions:
            if not rule_matches_question(rule, question, current):
                continue
            stats.processed += 1
            due = as_utc(question.sla_due_at)
            minutes_left = max(int((due - current).total_seconds() // 60), 0)
            context = {
                "title": question.title,
                "minutes": minutes_left,
                "question_id": question.id,
                "due_at": due.isoformat(),
            }
            subject = render_template(rule.subject_template or DEFAULT_SLA_SUBJECT, context)
            body = render_template(rule.body_template or DEFAULT_SLA_BODY, context)

            targets = await _recipients_for(db, rule, question)
            if not targets:
                stats.skipped += 1
                continue
            for role, recipients in targets.items():
                event = reminder_event(rule, role)
                if await _already_sent(db, event, question.id):
                    stats.skipped += 1
                    continue
                result = await send_and_log(
                    db,
                    event,
                    recipients,
                    subject,
                    body,
                    template="sla_reminder",
                    tenant_id=question.tenant_id,
                    entity_type="question",
                    entity_id=question.id,
                )
                status = result.get("status")
                if status == "sent":
                    stats.sent += 1
                elif status == "skipped":
                    stats.skipped += 1
                else:
                    stats.failed += 1
                    stats.errors.append(f"{event}:{question.id}:{result.get('error')}")
                try:
                    await db.commit()
                except SQLAlchemyError as exc:
                    await db.rollback()
                    stats.failed += 1
                    stats.errors.append(f"{event}:{question.id}:log_failed")
                    logger.warning("SLA reminder log insert failed: %s", exc)

    logger.info(
        "SLA sweep: rules=%s processed=%s sent=%s skipped=%s failed=%s",
        stats.rules,
        stats.processed,
        stats.sent,
        stats.skipped,
        stats.failed,
    )
    return stats.as_dict()


async def run_sla_reminders_service() -> Dict[str, Any]:
    async with async_session_maker() as db:
        return await run_sla_reminders(db)


def process_sla_reminders_job() -> Dict[str, Any]:
    """RQ entrypoint."""
    return asyncio.run(run_sla_reminders_service())
