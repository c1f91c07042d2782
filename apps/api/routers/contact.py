"""Public contact form."""

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import admin_notify_emails, settings
from database import get_db
from models.contact import ContactTicket
from routers.auth_scope import AuthContext, get_optional_auth_context
from routers.payload import read_payload
from routers.rate_limit import rate_limit
from routers.tenant_scope import get_tenant
from services.audit_log import client_ip, record_audit
from services.captcha import verify_captcha
from services.mailer import contact_ack_message, send_and_log
from services.spam import is_suspicious, score_text
from services.tenant import TenantContext

router = APIRouter()
logger = logging.getLogger(__name__)

ACK_MESSAGES = {
    "tr": "Mesajınız alındı. En kısa sürede dönüş yapacağız.",
    "en": "Your message has been received. We will get back to you shortly.",
}


def new_reference() -> str:
    return secrets.token_hex(4).upper()


@router.post("/contact")
async def submit_contact(
    request: Request,
    _rate_limit: None = Depends(rate_limit("contact", limit=10, window_seconds=3600)),
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Store a contact ticket and acknowledge it to the sender and the admins."""
    payload = await read_payload(request)
    email = str(payload.get("email") or "").strip().lower()
    subject = str(payload.get("subject") or "").strip()[:300]
    message = str(payload.get("message") or "").strip()[:20000]
    phone = str(payload.get("phone") or "").strip()[:40] or None
    if not email or "@" not in email or not subject or not message:
        raise HTTPException(status_code=400, detail="email_subject_message_required")

    ip = client_ip(request)
    score = score_text(f"{subject} {message}")
    if is_suspicious(score):
        await record_audit(
            db,
            "contact.submit",
            event="spam_suspected",
            ip=ip,
            tenant_id=tenant.tenant_id,
            payload={"score": score.total, "links_per_100w": score.links_per_100w},
        )
        raise HTTPException(status_code=422, detail="spam_suspected")

    if settings.CONTACT_REQUIRE_CAPTCHA:
        token = payload.get("captcha_token") or request.headers.get("x-captcha-token")
        if not await verify_captcha(token, ip):
            raise HTTPException(status_code=403, detail="captcha_required")

    ticket = ContactTicket(
        tenant_id=tenant.tenant_id,
        user_id=auth.user_id if auth else None,
        email=email,
        phone=phone,
        subject=subject,
        message=message,
        locale=tenant.lang,
        reference=new_reference(),
        status="open",
        spam_score=int(round(score.total)),
        created_at=datetime.now(timezone.utc),
    )
    db.add(ticket)
    await db.commit()

    ack = contact_ack_message(tenant.lang, ticket.reference, subject, message)
    recipients = [email] + [item for item in admin_notify_emails() if item != email]
    for recipient in recipients:
        await send_and_log(
            db,
            "contact.ack",
            recipient,
            ack["subject"],
            ack["text"],
            lang=tenant.lang,
            template="contact_ack",
            tenant_id=tenant.tenant_id,
            entity_type="contact_ticket",
            entity_id=ticket.id,
        )
    await db.commit()
    logger.info("Contact ticket %s stored for %s", ticket.reference, tenant.code)

    return {"ok": True, "ref": ticket.reference, "message": ACK_MESSAGES.get(tenant.lang, ACK_MESSAGES["tr"])}
