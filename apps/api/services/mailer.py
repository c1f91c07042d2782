"""Transactional e-mail delivery through the Resend HTTP API."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import html
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.audit_log import NotificationLog

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")


def render_template(template: str, context: Dict[str, Any]) -> str:
    """Replace `{{key}}` placeholders; unknown keys render empty."""

    def _replace(match: "re.Match[str]") -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template or "")


def sender_for(lang: str) -> str:
    if lang == "en" and settings.RESEND_FROM_EN:
        return settings.RESEND_FROM_EN
    if lang != "en" and settings.RESEND_FROM_TR:
        return settings.RESEND_FROM_TR
    return settings.MAIL_FROM


def text_to_html(text: str) -> str:
    return "<p>" + html.escape(text or "").replace("\n", "<br/>") + "</p>"


async def _post_to_resend(payload: Dict[str, Any]) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=settings.MAIL_TIMEOUT_SECONDS) as client:
        response = await client.post(
            settings.RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        )
        response.raise_for_status()
        return response.json()


async def send_email(
    to: Union[str, Iterable[str]],
    subject: str,
    html_body: str,
    *,
    text: Optional[str] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> Dict[str, Any]:
    """Send one message. Returns {status: sent|skipped|failed, ...}; never raises."""
    recipients: List[str] = [to] if isinstance(to, str) else [item for item in to if item]
    if not recipients:
        return {"status": "skipped", "error": "no_recipients"}
    if not settings.RESEND_API_KEY:
        logger.info("RESEND_API_KEY missing; skipping mail %r to %s", subject, recipients)
        return {"status": "skipped", "error": "mail_not_configured"}

    payload: Dict[str, Any] = {
        "from": from_address or settings.MAIL_FROM,
        "to": recipients,
        "subject": subject,
        "html": html_body,
    }
    if text:
        payload["text"] = text
    if reply_to:
        payload["reply_to"] = reply_to

    try:
        body = await asyncio.wait_for(_post_to_resend(payload), timeout=settings.MAIL_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Mail to %s timed out after %ss", recipients, settings.MAIL_TIMEOUT_SECONDS)
        return {"status": "failed", "error": "timeout"}
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Mail to %s failed: %s", recipients, exc)
        return {"status": "failed", "error": str(exc)[:500]}

    return {"status": "sent", "provider_id": body.get("id")}


def log_notification(
    db: AsyncSession,
    event: str,
    *,
    to_email: Optional[str],
    subject: Optional[str],
    result: Dict[str, Any],
    template: Optional[str] = None,
    tenant_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> NotificationLog:
    row = NotificationLog(
        tenant_id=tenant_id,
        event=event,
        to_email=to_email,
        subject=subject,
        template=template,
        provider="resend",
        provider_id=result.get("provider_id"),
        status=result.get("status", "failed"),
        error=result.get("error"),
        payload=payload,
        entity_type=entity_type,
        entity_id=entity_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    return row


async def send_and_log(
    db: AsyncSession,
    event: str,
    to: Union[str, Iterable[str]],
    subject: str,
    text: str,
    *,
    lang: str = "tr",
    template: Optional[str] = None,
    tenant_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a plain-text message and stage one notification_logs row per send."""
    result = await send_email(to, subject, text_to_html(text), text=text, from_address=sender_for(lang))
    recipients = [to] if isinstance(to, str) else list(to)
    log_notification(
        db,
        event,
        to_email=",".join(recipients) or None,
        subject=subject,
        result=result,
        template=template,
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    return result


def payment_receipt_message(lang: str, order_id: str, amount_minor: Optional[int], currency: str) -> Dict[str, str]:
    amount = f"{(amount_minor or 0) / 100:.2f} {currency}"
    if lang == "en":
        return {
            "subject": "Payment received",
            "text": f"We have received your payment of {amount}.\nOrder: {order_id}\nThank you.",
        }
    return {
        "subject": "Ödemeniz alındı",
        "text": f"{amount} tutarındaki ödemeniz alınmıştır.\nSipariş: {order_id}\nTeşekkür ederiz.",
    }


def worker_assignment_message(lang: str, question_title: str, question_url: str) -> Dict[str, str]:
    if lang == "en":
        return {
            "subject": "New question ready for you",
            "text": f"The question “{question_title}” has been approved and is ready.\n{question_url}",
        }
    return {
        "subject": "Yeni soru hazır",
        "text": f"“{question_title}” başlıklı soru onaylandı ve size hazır.\n{question_url}",
    }


def contact_ack_message(lang: str, reference: str, subject: str, message: str) -> Dict[str, str]:
    if lang == "en":
        return {
            "subject": f"[{reference}] {subject}",
            "text": f"Your message has been received. Reference: {reference}\n\n{message}",
        }
    return {
        "subject": f"[{reference}] {subject}",
        "text": f"Mesajınız alınmıştır. Referans: {reference}\n\n{message}",
    }
