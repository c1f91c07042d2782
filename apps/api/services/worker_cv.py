"""Consultant CV profile, blocks and photo handling."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.worker_cv import CvBlockType, WorkerCvBlock, WorkerCvProfile
from services.credits import as_number, to_decimal
from services.storage import create_signed_url, list_objects, object_exists, put_object

logger = logging.getLogger(__name__)

CV_BUCKET = "workers-cv"
PHOTO_EXTENSIONS = {".jpg": "jpg", ".jpeg": "jpg", ".png": "png", ".webp": "webp"}
PHOTO_CONTENT_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}
PROFILE_FIELDS = ("display_name", "title", "bio", "languages", "hourly_rate")
BLOCK_FIELDS = ("block_type", "title", "body", "order_index")


async def get_cv_profile(db: AsyncSession, worker_id: str) -> Optional[WorkerCvProfile]:
    result = await db.execute(select(WorkerCvProfile).where(WorkerCvProfile.worker_user_id == worker_id))
    return result.scalar_one_or_none()


def serialize_cv_profile(profile: Optional[WorkerCvProfile], worker_id: str) -> Dict[str, Any]:
    if profile is None:
        return {"worker_user_id": worker_id, "display_name": None, "title": None, "bio": None, "languages": [], "hourly_rate": None, "photo_object_path": None}
    return {
        "worker_user_id": profile.worker_user_id,
        "display_name": profile.display_name,
        "title": profile.title,
        "bio": profile.bio,
        "languages": list(profile.languages or []),
        "hourly_rate": as_number(profile.hourly_rate) if profile.hourly_rate is not None else None,
        "photo_object_path": profile.photo_object_path,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


async def upsert_cv_profile(db: AsyncSession, worker_id: str, values: Dict[str, Any]) -> WorkerCvProfile:
    profile = await get_cv_profile(db, worker_id)
    if profile is None:
        profile = WorkerCvProfile(worker_user_id=worker_id)
        db.add(profile)
    for field in PROFILE_FIELDS:
        if field not in values:
            continue
        value = values[field]
        if field == "hourly_rate":
            profile.hourly_rate = to_decimal(value) if value not in (None, "") else None
        elif field == "languages":
            profile.languages = [str(item).strip() for item in (value or []) if str(item).strip()]
        else:
            setattr(profile, field, (str(value).strip() or None) if value is not None else None)
    profile.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return profile


async def reset_cv_profile(db: AsyncSession, worker_id: str) -> None:
    """Drop the profile row and every block; the stored photo object is kept."""
    await db.execute(delete(WorkerCvBlock).where(WorkerCvBlock.worker_user_id == worker_id))
    await db.execute(delete(WorkerCvProfile).where(WorkerCvProfile.worker_user_id == worker_id))
    await db.commit()


async def list_blocks(db: AsyncSession, worker_id: str) -> List[WorkerCvBlock]:
    result = await db.execute(
        select(WorkerCvBlock)
        .where(WorkerCvBlock.worker_user_id == worker_id)
        .order_by(WorkerCvBlock.order_index.asc(), WorkerCvBlock.created_at.asc())
    )
    return list(result.scalars().all())


def serialize_block(block: WorkerCvBlock) -> Dict[str, Any]:
    return {
        "id": block.id,
        "worker_user_id": block.worker_user_id,
        "block_type": block.block_type,
        "title": block.title,
        "body": block.body,
        "order_index": block.order_index,
    }


async def _ensure_block_type(db: AsyncSession, key: str) -> str:
    clean = (key or "").strip()
    if not clean:
        raise HTTPException(status_code=400, detail="block_type_required")
    known = (await db.execute(select(CvBlockType))).scalars().all()
    if known and clean not in {item.key for item in known if item.active}:
        raise HTTPException(status_code=400, detail="unknown_block_type")
    return clean


async def create_block(db: AsyncSession, worker_id: str, values: Dict[str, Any]) -> WorkerCvBlock:
    block = WorkerCvBlock(
        worker_user_id=worker_id,
        block_type=await _ensure_block_type(db, values.get("block_type")),
        title=values.get("title"),
        body=values.get("body"),
        order_index=int(values.get("order_index") or 0),
    )
    db.add(block)
    await db.commit()
    return block


async def get_owned_block(db: AsyncSession, block_id: str, worker_id: str) -> WorkerCvBlock:
    block = (await db.execute(select(WorkerCvBlock).where(WorkerCvBlock.id == block_id))).scalar_one_or_none()
    if block is None:
        raise HTTPException(status_code=404, detail="block_not_found")
    if block.worker_user_id != worker_id:
        raise HTTPException(status_code=403, detail="forbidden")
    return block


async def update_block(db: AsyncSession, block: WorkerCvBlock, values: Dict[str, Any]) -> WorkerCvBlock:
    for field in BLOCK_FIELDS:
        if field not in values or values[field] is None:
            continue
        if field == "block_type":
            block.block_type = await _ensure_block_type(db, values[field])
        elif field == "order_index":
            block.order_index = int(values[field])
        else:
            setattr(block, field, values[field])
    await db.commit()
    return block


async def delete_block(db: AsyncSession, block: WorkerCvBlock) -> None:
    await db.delete(block)
    await db.commit()


def photo_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    ext = PurePosixPath(filename or "").suffix.lower()
    if ext in PHOTO_EXTENSIONS:
        return PHOTO_EXTENSIONS[ext]
    if content_type in PHOTO_CONTENT_TYPES:
        return PHOTO_CONTENT_TYPES[content_type]
    raise HTTPException(status_code=400, detail="unsupported_image_type")


async def store_photo(db: AsyncSession, worker_id: str, data: bytes, filename: Optional[str], content_type: Optional[str]) -> str:
    max_bytes = int(settings.CV_PHOTO_MAX_MB) * 1024 * 1024
    if not data:
        raise HTTPException(status_code=400, detail="file_required")
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail="file_too_large")
    path = f"{worker_id}/profile.{photo_extension(filename, content_type)}"
    put_object(CV_BUCKET, path, data)
    profile = await get_cv_profile(db, worker_id)
    if profile is None:
        profile = WorkerCvProfile(worker_user_id=worker_id)
        db.add(profile)
    profile.photo_object_path = path
    profile.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return path


async def photo_signed_url(db: AsyncSession, worker_id: str) -> Dict[str, Any]:
    """Signed URL for the consultant's photo, or `url: None` with a reason."""
    profile = await get_cv_profile(db, worker_id)
    path = profile.photo_object_path if profile else None
    if path and not object_exists(CV_BUCKET, path):
        logger.warning("CV photo %s recorded but missing from storage", path)
        path = None
    if not path:
        for candidate in list_objects(CV_BUCKET, worker_id):
            name = PurePosixPath(candidate).name
            if name.startswith(("profile.", "photo.")):
                path = candidate
                break
    if not path:
        return {"ok": True, "url": None, "reason": "no_photo"}
    signed = create_signed_url(CV_BUCKET, path)
    return {"ok": True, "url": signed["url"], "expires_in": signed["expires_in"], "path": path}


def serialize_block_type(item: CvBlockType) -> Dict[str, Any]:
    return {"id": item.id, "key": item.key, "label_tr": item.label_tr, "label_en": item.label_en, "active": bool(item.active)}
