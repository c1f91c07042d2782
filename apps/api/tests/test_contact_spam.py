import re

import pytest
from sqlalchemy.future import select

from config import settings
from models.audit_log import AuditLog, NotificationLog
from models.contact import ContactTicket
from services.spam import is_suspicious, score_text


def test_score_text_components():
    clean = score_text("Hello, I need help with import duties for textile goods.")
    assert clean.total == 0
    assert not is_suspicious(clean)

    links = score_text("buy now http://a.example http://b.example")
    assert links.links_per_100w == 50
    assert is_suspicious(links)

    shouting = score_text("Pleas" + "e" * 10 + " answer")
    assert shouting.repeat_char_max == 10
    assert is_suspicious(shouting)

    repeated = score_text(" ".join(["cheap"] * 13))
    assert repeated.repeat_word_max == 13
    assert is_suspicious(repeated)

    assert score_text("").total == 0


@pytest.mark.asyncio
async def test_contact_stores_ticket_and_acknowledges(api, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_NOTIFY_EMAILS", "ops@gumruk360.com; ops@gumruk360.com")
    response = await api.client.post(
        "/contact",
        json={
            "email": "Trader@Example.com",
            "subject": "ATR belgesi",
            "message": "ATR dolaşım belgesi için hangi evraklar gerekli?",
            "phone": "+90 555 000 00 00",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert re.fullmatch(r"[0-9A-F]{8}", body["ref"])
    assert body["message"].startswith("Mesajınız alındı")

    async with api.session_maker() as session:
        ticket = (await session.execute(select(ContactTicket))).scalar_one()
        logs = (await session.execute(select(NotificationLog).where(NotificationLog.event == "contact.ack"))).scalars().all()
    assert ticket.reference == body["ref"]
    assert ticket.email == "trader@example.com"
    assert ticket.status == "open"
    assert sorted(log.to_email for log in logs) == ["ops@gumruk360.com", "trader@example.com"]


@pytest.mark.asyncio
async def test_contact_validation_and_spam(api):
    missing = await api.client.post("/contact", json={"email": "a@b.co", "subject": "", "message": "hi"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "email_subject_message_required"

    spam = await api.client.post(
        "/contact",
        json={"email": "bot@spam.example", "subject": "deal", "message": "http://x.example http://y.example http://z.example"},
    )
    assert spam.status_code == 422
    assert spam.json()["detail"] == "spam_suspected"

    async with api.session_maker() as session:
        tickets = (await session.execute(select(ContactTicket))).scalars().all()
        audits = (await session.execute(select(AuditLog).where(AuditLog.event == "spam_suspected"))).scalars().all()
    assert tickets == []
    assert len(audits) == 1


@pytest.mark.asyncio
async def test_contact_requires_captcha_when_enabled(api, monkeypatch):
    monkeypatch.setattr(settings, "CONTACT_REQUIRE_CAPTCHA", True)
    response = await api.client.post(
        "/contact",
        json={"email": "trader@example.com", "subject": "Soru", "message": "Transit rejimi hakkında bilgi."},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "captcha_required"


@pytest.mark.asyncio
async def test_admin_can_triage_contact_tickets(api):
    await api.add_profile("admin-1", role="admin")
    created = await api.client.post(
        "/contact",
        json={"email": "trader@example.com", "subject": "Soru", "message": "Antrepo rejimi hakkında bilgi."},
    )
    assert created.status_code == 200

    listing = await api.client.get("/admin/contact", headers=api.headers("admin-1"))
    assert listing.status_code == 200
    ticket_id = listing.json()["tickets"][0]["id"]

    invalid = await api.client.patch(
        f"/admin/contact/{ticket_id}", headers=api.headers("admin-1"), json={"status": "whatever"}
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "invalid_status"
