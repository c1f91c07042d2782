"""Admin user, consultant CV and audit-log endpoints."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.audit_log import AuditLog
from models.profile import USER_ROLES, Profile
from models.worker_cv import CvBlockType, WorkerCvBlock
from routers.auth_scope import AdminContext, require_admin
from services.audit_log import add_audit
from services.exports import audit_csv, users_csv
from services.questions import as_utc
from services.worker_cv import (
    create_block,
    delete_block,
    get_cv_profile,
    list_blocks,
    photo_signed_url,
    reset_cv_profile,
    serialize_block,
    serialize_block_type,
    serialize_cv_profile,
    update_block,
    upsert_cv_profile,
)

router = APIRouter()
logger = logging.getLogger(__name__)

LOG_EXPORT_LIMIT = 10000


class SetRoleBody(BaseModel):
    user_id: str
    role: str


class CvProfileBody(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=200)
    title: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=20000)
    languages: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)


class CvBlockBody(BaseModel):
    block_type: Optional[str] = Field(default=None, max_length=64)
    title: Optional[str] = Field(default=None, max_length=300)
    body: Optional[str] = Field(default=None, max_length=20000)
    order_index: Optional[int] = None


class BlockTypeBody(BaseModel):
    key: Optional[str] = Field(default=None, max_length=64)
    label_tr: Optional[str] = Field(default=None, max_length=200)
    label_en: Optional[str] = Field(default=None, max_length=200)
    active: Optional[bool] = None


def serialize_profile_row(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "role": profile.role,
        "tenant_key": profile.tenant_key,
        "created_at": as_utc(profile.created_at).isoformat() if profile.created_at else None,
    }


def serialize_log(row: AuditLog) -> dict:
    return {
        "id": row.id,
        "action": row.action,
        "event": row.event,
        "resource_type": row.resource_type,
        "resource_id": row.resource_id,
        "actor_role": row.actor_role,
        "actor_id": row.actor_id,
        "tenant_id": row.tenant_id,
        "ip": row.ip,
        "payload": row.payload,
        "created_at": as_utc(row.created_at).isoformat() if row.created_at else None,
    }


def _log_query(action: Optional[str], resource_type: Optional[str], date_from: Optional[datetime], date_to: Optional[datetime]):
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    if resource_type:
        query = query.where(AuditLog.resource_type == resource_type)
    if date_from:
        query = query.where(AuditLog.created_at >= date_from)
    if date_to:
        query = query.where(AuditLog.created_at <= date_to)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.asc())


async def _consultant_or_404(db: AsyncSession, worker_id: str) -> Profile:
    profile = (await db.execute(select(Profile).where(Profile.id == worker_id))).scalar_one_or_none()
    if profile is None or profile.role not in ("worker", "admin"):
        raise HTTPException(status_code=404, detail="consultant_not_found")
    return profile


async def _consultant_block(db: AsyncSession, worker_id: str, block_id: str) -> WorkerCvBlock:
    block = (
        await db.execute(
            select(WorkerCvBlock).where(WorkerCvBlock.id == block_id, WorkerCvBlock.worker_user_id == worker_id)
        )
    ).scalar_one_or_none()
    if block is None:
        raise HTTPException(status_code=404, detail="block_not_found")
    return block


# Users

@router.get("/users/export")
async def export_users(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Profile).order_by(Profile.created_at.asc(), Profile.id.asc()))
    return Response(
        content=users_csv(result.scalars().all()),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="users.csv"'},
    )


@router.post("/users/set-role")
async def set_user_role(
    body: SetRoleBody,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if body.role not in USER_ROLES:
        raise HTTPException(status_code=400, detail="invalid_role")
    profile = (await db.execute(select(Profile).where(Profile.id == body.user_id))).scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=404, detail="user_not_found")
    previous = profile.role
    profile.role = body.role
    add_audit(
        db,
        "user.set_role",
        resource_type="profile",
        resource_id=profile.id,
        actor_role="admin",
        actor_id=admin.actor_id,
        payload={"from": previous, "to": body.role},
    )
    await db.commit()
    return {"ok": True, "user": serialize_profile_row(profile)}


# Audit logs

@router.get("/logs")
async def list_logs(
    action: Optional[str] = Query(default=None),
    resource_type: Optional[str] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = _log_query(action, resource_type, date_from, date_to)
    result = await db.execute(query.offset(offset).limit(limit))
    return {"ok": True, "logs": [serialize_log(row) for row in result.scalars().all()], "limit": limit, "offset": offset}


@router.get("/logs/export")
async def export_logs(
    action: Optional[str] = Query(default=None),
    resource_type: Optional[str] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = _log_query(action, resource_type, date_from, date_to)
    result = await db.execute(query.limit(LOG_EXPORT_LIMIT))
    return Response(
        content=audit_csv(result.scalars().all()),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="audit_logs.csv"'},
    )


# Consultants and CVs

@router.get("/consultants")
async def list_consultants(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Profile).where(Profile.role == "worker").order_by(Profile.full_name.asc(), Profile.id.asc()))
    return {"ok": True, "consultants": [serialize_profile_row(item) for item in result.scalars().all()]}


@router.get("/consultants/{worker_id}/cv/profile")
async def get_consultant_cv(
    worker_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _consultant_or_404(db, worker_id)
    profile = await get_cv_profile(db, worker_id)
    blocks = await list_blocks(db, worker_id)
    photo = await photo_signed_url(db, worker_id)
    return {
        "ok": True,
        "profile": serialize_cv_profile(profile, worker_id),
        "blocks": [serialize_block(block) for block in blocks],
        "photo_url": photo.get("url"),
    }


@router.put("/consultants/{worker_id}/cv/profile")
async def update_consultant_cv(
    worker_id: str,
    body: CvProfileBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _consultant_or_404(db, worker_id)
    profile = await upsert_cv_profile(db, worker_id, body.model_dump(exclude_unset=True))
    return {"ok": True, "profile": serialize_cv_profile(profile, worker_id)}


@router.post("/consultants/{worker_id}/cv/profile/reset")
async def reset_consultant_cv(
    worker_id: str,
    admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _consultant_or_404(db, worker_id)
    await reset_cv_profile(db, worker_id)
    add_audit(db, "cv.reset", resource_type="worker_cv", resource_id=worker_id, actor_role="admin", actor_id=admin.actor_id)
    await db.commit()
    return {"ok": True}


@router.get("/consultants/{worker_id}/cv/blocks")
async def list_consultant_blocks(
    worker_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _consultant_or_404(db, worker_id)
    return {"ok": True, "blocks": [serialize_block(block) for block in await list_blocks(db, worker_id)]}


@router.post("/consultants/{worker_id}/cv/blocks")
async def create_consultant_block(
    worker_id: str,
    body: CvBlockBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _consultant_or_404(db, worker_id)
    block = await create_block(db, worker_id, body.model_dump())
    return {"ok": True, "block": serialize_block(block)}


@router.patch("/consultants/{worker_id}/cv/blocks/{block_id}")
async def update_consultant_block(
    worker_id: str,
    block_id: str,
    body: CvBlockBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    block = await _consultant_block(db, worker_id, block_id)
    block = await update_block(db, block, body.model_dump(exclude_unset=True))
    return {"ok": True, "block": serialize_block(block)}


@router.delete("/consultants/{worker_id}/cv/blocks/{block_id}")
async def delete_consultant_block(
    worker_id: str,
    block_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    block = await _consultant_block(db, worker_id, block_id)
    await delete_block(db, block)
    return {"ok": True}


# CV block catalogue

async def _block_type_or_404(db: AsyncSession, type_id: str) -> CvBlockType:
    item = (await db.execute(select(CvBlockType).where(CvBlockType.id == type_id))).scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="block_type_not_found")
    return item


@router.get("/cv-block-types")
async def list_block_types(
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(CvBlockType).order_by(CvBlockType.key.asc()))
    return {"ok": True, "types": [serialize_block_type(item) for item in result.scalars().all()]}


@router.post("/cv-block-types")
async def create_block_type(
    body: BlockTypeBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    key = (body.key or "").strip().lower()
    if not key or not body.label_tr or not body.label_en:
        raise HTTPException(status_code=400, detail="key_and_labels_required")
    existing = (await db.execute(select(CvBlockType).where(CvBlockType.key == key))).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="block_type_exists")
    item = CvBlockType(key=key, label_tr=body.label_tr, label_en=body.label_en, active=body.active is not False)
    db.add(item)
    await db.commit()
    return {"ok": True, "type": serialize_block_type(item)}


@router.patch("/cv-block-types/{type_id}")
async def update_block_type(
    type_id: str,
    body: BlockTypeBody,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    item = await _block_type_or_404(db, type_id)
    if body.label_tr:
        item.label_tr = body.label_tr
    if body.label_en:
        item.label_en = body.label_en
    if body.active is not None:
        item.active = body.active
    await db.commit()
    return {"ok": True, "type": serialize_block_type(item)}


@router.delete("/cv-block-types/{type_id}")
async def delete_block_type(
    type_id: str,
    _admin: AdminContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    item = await _block_type_or_404(db, type_id)
    await db.delete(item)
    await db.commit()
    return {"ok": True}
