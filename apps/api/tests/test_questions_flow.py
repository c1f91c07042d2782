import asyncio
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.future import select

from models.credit_ledger import CreditLedger
from models.pricing import SubscriptionSettings
from models.question import Question
from services.credits import add_entry, get_balance
from services.questions import pay_with_credits


async def _seed_credit_price(api, price="10", discount_user="0.1"):
    async with api.session_maker() as session:
        session.add(
            SubscriptionSettings(
                id="default",
                credit_price_lira=Decimal(price),
                credit_discount_user=Decimal(discount_user),
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_question_paid_with_user_credits(api):
    await api.add_profile("customer-1")
    await _seed_credit_price(api)
    headers = api.headers("customer-1")

    created = await api.client.post(
        "/ask",
        headers=headers,
        json={"title": "Tariff code for coffee machines", "description": "Which GTIP applies?", "price_tl": 500},
    )
    assert created.status_code == 200
    question = created.json()["question"]
    assert question["status"] == "submitted"
    assert question["sla_due_at"] is not None

    options = await api.client.get(f"/ask/{question['id']}/credit-options", headers=headers)
    assert options.status_code == 200
    assert options.json()["required_user_credits"] == 45
    assert options.json()["can_user_pay"] is False
    assert options.json()["org"] is None

    insufficient = await api.client.post(f"/ask/{question['id']}/pay-credit", headers=headers)
    assert insufficient.status_code == 400
    assert insufficient.json()["detail"] == "insufficient_credits"

    async with api.session_maker() as session:
        add_entry(session, scope_type="user", scope_id="customer-1", change=50, reason="purchase")
        await session.commit()

    paid = await api.client.post(f"/ask/{question['id']}/pay-credit", headers=headers)
    assert paid.status_code == 200
    assert paid.json()["status"] == "approved"
    assert paid.json()["debited"] == 45
    assert paid.json()["balance_after"] == 5

    again = await api.client.post(f"/ask/{question['id']}/pay-credit", headers=headers)
    assert again.status_code == 409
    assert again.json()["detail"] == "question_not_payable"

    async with api.session_maker() as session:
        debits = (
            await session.execute(select(CreditLedger).where(CreditLedger.reason == "question_debit"))
        ).scalars().all()
    assert len(debits) == 1
    assert debits[0].question_id == question["id"]


@pytest.mark.asyncio
async def test_org_payment_requires_membership(api):
    await api.add_profile("customer-1")
    await _seed_credit_price(api)
    created = await api.client.post("/ask", headers=api.headers("customer-1"), json={"title": "Origin proof", "price_tl": 100})
    question_id = created.json()["question"]["id"]

    response = await api.client.post(f"/ask/{question_id}/pay-org-credit", headers=api.headers("customer-1"))
    assert response.status_code == 400
    assert response.json()["detail"] == "org_not_found"


@pytest.mark.asyncio
async def test_questions_are_private_to_owner(api):
    await api.add_profile("customer-1")
    await api.add_profile("customer-2")
    created = await api.client.post("/ask", headers=api.headers("customer-1"), json={"title": "Bonded warehouse rules"})
    question_id = created.json()["question"]["id"]

    forbidden = await api.client.get(f"/ask/{question_id}", headers=api.headers("customer-2"))
    assert forbidden.status_code == 403

    listing = await api.client.get("/ask", headers=api.headers("customer-2"))
    assert listing.json()["questions"] == []


@pytest.mark.asyncio
async def test_consultant_assignment_answer_and_delivery(api):
    await api.add_profile("admin-1", role="admin")
    await api.add_profile("worker-1", role="worker")
    await api.add_profile("customer-1", email="customer@example.com", tenant_key="en")
    admin_headers = api.headers("admin-1")
    worker_headers = api.headers("worker-1")

    created = await api.client.post("/ask", headers=api.headers("customer-1"), json={"title": "Inward processing regime"})
    question_id = created.json()["question"]["id"]

    not_ready = await api.client.post(
        "/worker/assignment-requests", headers=worker_headers, json={"question_id": question_id}
    )
    assert not_ready.status_code == 409
    assert not_ready.json()["detail"] == "question_not_available"

    approved = await api.client.post(
        f"/admin/questions/{question_id}/status", headers=admin_headers, json={"status": "approved"}
    )
    assert approved.status_code == 200

    pool = await api.client.get("/worker/pool", headers=worker_headers)
    assert [item["id"] for item in pool.json()["questions"]] == [question_id]

    requested = await api.client.post(
        "/worker/assignment-requests", headers=worker_headers, json={"question_id": question_id, "note": "I know IPR"}
    )
    duplicate = await api.client.post(
        "/worker/assignment-requests", headers=worker_headers, json={"question_id": question_id}
    )
    request_id = requested.json()["request"]["id"]
    assert duplicate.json()["duplicate"] is True
    assert duplicate.json()["request"]["id"] == request_id

    blocked = await api.client.post(
        f"/worker/questions/{question_id}/revisions", headers=worker_headers, json={"content": "Early answer"}
    )
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == "not_assigned"

    decision = await api.client.post(
        f"/admin/assignment-requests/{request_id}", headers=admin_headers, json={"action": "approve"}
    )
    assert decision.status_code == 200
    assert decision.json()["request"]["status"] == "approved"
    repeat = await api.client.post(
        f"/admin/assignment-requests/{request_id}", headers=admin_headers, json={"action": "reject"}
    )
    assert repeat.status_code == 409

    draft = await api.client.post(f"/admin/questions/{question_id}/generate-draft", headers=admin_headers)
    assert draft.status_code == 200
    assert draft.json()["revision"]["revision_no"] == 1
    assert draft.json()["revision"]["source"] == "gpt"

    written = await api.client.post(
        f"/worker/questions/{question_id}/revisions",
        headers=worker_headers,
        json={"content": "Final answer about inward processing."},
    )
    assert written.json()["revision"]["revision_no"] == 2

    reverted = await api.client.post(
        f"/admin/questions/{question_id}/revisions/{draft.json()['revision']['id']}/revert", headers=admin_headers
    )
    assert reverted.json()["revision"]["revision_no"] == 3
    assert reverted.json()["revision"]["source"] == "revert"
    assert reverted.json()["reverted_from"] == 1

    sent = await api.client.post(f"/admin/questions/{question_id}/send", headers=admin_headers)
    assert sent.status_code == 200
    assert sent.json()["question"]["status"] == "completed"
    assert sent.json()["question"]["answer_status"] == "sent"
    assert sent.json()["mail"]["status"] == "skipped"

    reopen = await api.client.post(
        f"/admin/questions/{question_id}/status", headers=admin_headers, json={"status": "approved"}
    )
    assert reopen.status_code == 409
    assert reopen.json()["detail"] == "invalid_status_transition"

    async with api.session_maker() as session:
        stored = (await session.execute(select(Question).where(Question.id == question_id))).scalar_one()
    assert stored.assigned_to == "worker-1"


@pytest.mark.asyncio
async def test_worker_routes_reject_customers(api):
    await api.add_profile("customer-1")
    response = await api.client.get("/worker/pool", headers=api.headers("customer-1"))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_concurrent_credit_payments_debit_once(api):
    await api.add_profile("customer-1")
    await _seed_credit_price(api, discount_user="0")
    async with api.session_maker() as session:
        session.add(Question(id="q-race", user_id="customer-1", title="Inward processing regime", status="submitted", price_tl=600))
        add_entry(session, scope_type="user", scope_id="customer-1", change=100, reason="purchase")
        await session.commit()

    async def pay():
        async with api.session_maker() as session:
            question = (await session.execute(select(Question).where(Question.id == "q-race"))).scalar_one()
            return await pay_with_credits(session, question, "customer-1")

    results = await asyncio.gather(pay(), pay(), return_exceptions=True)

    paid = [result for result in results if isinstance(result, dict)]
    rejected = [result for result in results if isinstance(result, HTTPException)]
    assert len(paid) == 1
    assert paid[0]["debited"] == 60
    assert paid[0]["balance_after"] == 40
    assert len(rejected) == 1
    assert rejected[0].status_code == 409
    assert rejected[0].detail == "question_not_payable"

    async with api.session_maker() as session:
        assert await get_balance(session, "user", "customer-1") == Decimal("40")
        debits = (
            await session.execute(select(CreditLedger).where(CreditLedger.reason == "question_debit"))
        ).scalars().all()
        question = (await session.execute(select(Question).where(Question.id == "q-race"))).scalar_one()
    assert len(debits) == 1
    assert question.status == "approved"
