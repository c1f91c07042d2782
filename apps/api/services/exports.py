"""CSV exports for the dashboard and back office."""

from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable, List, Sequence

from models.audit_log import AuditLog
from models.credit_ledger import CreditLedger
from models.profile import Profile
from services.credits import to_decimal

LEDGER_COLUMNS = ["id", "scope_type", "scope_id", "change", "reason", "question_id", "order_id", "created_at"]
AUDIT_COLUMNS = ["id", "created_at", "action", "event", "resource_type", "resource_id", "actor_role", "actor_id", "ip"]
USER_COLUMNS = ["id", "email", "full_name", "role", "tenant_key", "phone", "created_at"]


def _iso(value: Any) -> str:
    return value.isoformat() if value is not None else ""


def _write_csv(columns: Sequence[str], rows: Iterable[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def ledger_csv(entries: Iterable[CreditLedger]) -> str:
    rows: List[Dict[str, Any]] = []
    for entry in entries:
        rows.append(
            {
                "id": entry.id,
                "scope_type": entry.scope_type,
                "scope_id": entry.scope_id,
                "change": f"{to_decimal(entry.change):.4f}",
                "reason": (entry.reason or "").replace(",", " "),
                "question_id": entry.question_id or "",
                "order_id": entry.order_id or "",
                "created_at": _iso(entry.created_at),
            }
        )
    return _write_csv(LEDGER_COLUMNS, rows)


def audit_csv(logs: Iterable[AuditLog]) -> str:
    return _write_csv(
        AUDIT_COLUMNS,
        (
            {
                "id": log.id,
                "created_at": _iso(log.created_at),
                "action": log.action,
                "event": log.event or "",
                "resource_type": log.resource_type or "",
                "resource_id": log.resource_id or "",
                "actor_role": log.actor_role or "",
                "actor_id": log.actor_id or "",
                "ip": log.ip or "",
            }
            for log in logs
        ),
    )


def users_csv(profiles: Iterable[Profile]) -> str:
    return _write_csv(
        USER_COLUMNS,
        (
            {
                "id": profile.id,
                "email": profile.email,
                "full_name": profile.full_name or "",
                "role": profile.role,
                "tenant_key": profile.tenant_key or "",
                "phone": profile.phone or "",
                "created_at": _iso(profile.created_at),
            }
            for profile in profiles
        ),
    )
