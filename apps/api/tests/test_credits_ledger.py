from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.future import select

from models.audit_log import AuditLog
from models.credit_ledger import CreditLedger
from models.organization import Organization, OrganizationMember
from services.credits import add_entry, debit_for_question, get_balance, resolve_org_for_user


@pytest.mark.asyncio
async def test_balance_is_sum_of_ledger_changes(db_session):
    add_entry(db_session, scope_type="user", scope_id="user-a", change=100, reason="purchase")
    add_entry(db_session, scope_type="user", scope_id="user-a", change="-12.5", reason="question_debit")
    add_entry(db_session, scope_type="user", scope_id="user-b", change=40, reason="purchase")
    await db_session.commit()

    assert await get_balance(db_session, "user", "user-a") == Decimal("87.5")
    assert await get_balance(db_session, "user", "user-b") == Decimal("40")
    assert await get_balance(db_session, "org", "user-a") == Decimal("0")


@pytest.mark.asyncio
async def test_question_debit_requires_sufficient_balance(db_session):
    add_entry(db_session, scope_type="user", scope_id="user-a", change=10, reason="purchase")
    await db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        await debit_for_question(db_session, scope_type="user", scope_id="user-a", required=11, question_id="q-1")
    assert exc_info.value.detail == "insufficient_credits"

    entry = await debit_for_question(db_session, scope_type="user", scope_id="user-a", required=10, question_id="q-1")
    await db_session.commit()
    assert entry.change == Decimal("-10")
    assert await get_balance(db_session, "user", "user-a") == Decimal("0")


@pytest.mark.asyncio
async def test_org_resolution_prefers_owner_membership(db_session):
    first = Organization(name="Member Org")
    second = Organization(name="Owned Org")
    db_session.add_all([first, second])
    await db_session.flush()
    db_session.add_all(
        [
            OrganizationMember(org_id=first.id, user_id="user-a", org_role="member"),
            OrganizationMember(org_id=second.id, user_id="user-a", org_role="owner"),
        ]
    )
    await db_session.commit()

    assert await resolve_org_for_user(db_session, "user-a") == second.id
    assert await resolve_org_for_user(db_session, "user-b") is None


@pytest.mark.asyncio
async def test_admin_adjust_updates_balance_and_audits(api):
    await api.add_profile("admin-1", role="admin")
    await api.add_profile("customer-1")

    response = await api.client.post(
        "/admin/credits/adjust",
        headers=api.headers("admin-1"),
        json={"scope_type": "user", "scope_id": "customer-1", "amount": 25},
    )
    assert response.status_code == 200
    assert response.json()["entry"]["change"] == 25

    response = await api.client.post(
        "/admin/credits/adjust",
        headers=api.headers("admin-1"),
        json={"scope_type": "user", "scope_id": "customer-1", "amount": 40, "negate": True},
    )
    assert response.status_code == 200

    balance = await api.client.get("/dashboard/balance", headers=api.headers("customer-1"))
    assert balance.status_code == 200
    assert balance.json()["user_balance"] == -15
    assert balance.json()["org_balance"] is None

    async with api.session_maker() as session:
        audits = (
            await session.execute(select(AuditLog).where(AuditLog.action == "credits.adjust"))
        ).scalars().all()
        assert len(audits) == 2
        assert {item.actor_id for item in audits} == {"admin-1"}


@pytest.mark.asyncio
async def test_admin_adjust_validation_errors(api):
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    missing = await api.client.post("/admin/credits/adjust", headers=headers, json={"scope_type": "org", "amount": 5})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "missing_scope"

    zero = await api.client.post(
        "/admin/credits/adjust", headers=headers, json={"scope_type": "user", "scope_id": "x", "amount": 0}
    )
    assert zero.status_code == 400
    assert zero.json()["detail"] == "amount_must_be_positive"


@pytest.mark.asyncio
async def test_admin_routes_reject_regular_users(api):
    await api.add_profile("customer-1")
    response = await api.client.post(
        "/admin/credits/adjust",
        headers=api.headers("customer-1"),
        json={"scope_type": "user", "scope_id": "customer-1", "amount": 1000},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "admin_required"


@pytest.mark.asyncio
async def test_ledger_delete_and_csv_export(api):
    await api.add_profile("admin-1", role="admin")
    await api.add_profile("customer-1")
    async with api.session_maker() as session:
        kept = add_entry(session, scope_type="user", scope_id="customer-1", change=30, reason="purchase")
        removed = add_entry(session, scope_type="user", scope_id="customer-1", change=5, reason="mistake, typo")
        await session.commit()
        kept_id, removed_id = kept.id, removed.id

    response = await api.client.delete(f"/admin/credits/ledger/{removed_id}", headers=api.headers("admin-1"))
    assert response.status_code == 200
    missing = await api.client.delete(f"/admin/credits/ledger/{removed_id}", headers=api.headers("admin-1"))
    assert missing.status_code == 404
    assert missing.json()["detail"] == "ledger_entry_not_found"

    export = await api.client.get("/dashboard/credits", params={"format": "csv"}, headers=api.headers("customer-1"))
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.strip().splitlines()
    assert lines[0] == "id,scope_type,scope_id,change,reason,question_id,order_id,created_at"
    assert len(lines) == 2
    assert lines[1].startswith(f"{kept_id},user,customer-1,30.0000,purchase")

    async with api.session_maker() as session:
        remaining = (await session.execute(select(CreditLedger))).scalars().all()
        assert [entry.id for entry in remaining] == [kept_id]
