"""Private object storage on local disk with signed download URLs."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import HTTPException

from config import settings
from services.session_token import TokenError, create_purpose_token, decode_purpose_token

logger = logging.getLogger(__name__)

STORAGE_TOKEN_PURPOSE = "storage_object"
ALLOWED_BUCKETS = ("workers-cv", "rag-uploads")


def _root() -> Path:
    return Path(settings.STORAGE_ROOT).resolve()


def object_path(bucket: str, path: str) -> Path:
    """Absolute path for an object; rejects unknown buckets and traversal."""
    if bucket not in ALLOWED_BUCKETS:
        raise HTTPException(status_code=404, detail="bucket_not_found")
    relative = (path or "").strip().lstrip("/")
    if not relative or "\x00" in relative:
        raise HTTPException(status_code=400, detail="invalid_object_path")
    bucket_root = (_root() / bucket).resolve()
    target = (bucket_root / relative).resolve()
    if bucket_root not in target.parents:
        raise HTTPException(status_code=400, detail="invalid_object_path")
    return target


def put_object(bucket: str, path: str, data: bytes) -> str:
    target = object_path(bucket, path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_name(target.name + ".part")
    with open(tmp_path, "wb") as handle:
        handle.write(data)
    os.replace(tmp_path, target)
    return path.lstrip("/")


def object_exists(bucket: str, path: str) -> bool:
    return object_path(bucket, path).is_file()


def list_objects(bucket: str, prefix: str) -> List[str]:
    directory = object_path(bucket, prefix.strip("/"))
    if not directory.is_dir():
        return []
    base = prefix.strip("/")
    return sorted(f"{base}/{entry.name}" for entry in directory.iterdir() if entry.is_file() and not entry.name.endswith(".part"))


def delete_object(bucket: str, path: str) -> bool:
    target = object_path(bucket, path)
    if not target.is_file():
        return False
    target.unlink()
    return True


def create_signed_url(bucket: str, path: str, ttl_seconds: Optional[int] = None) -> Dict[str, object]:
    ttl = int(ttl_seconds or settings.STORAGE_SIGNED_URL_TTL_SECONDS)
    clean_path = path.lstrip("/")
    token = create_purpose_token(STORAGE_TOKEN_PURPOSE, f"{bucket}/{clean_path}", ttl)
    return {
        "url": f"/storage/{bucket}/{quote(clean_path)}?token={token}",
        "expires_in": ttl,
    }


def resolve_signed_object(bucket: str, path: str, token: str) -> Path:
    try:
        payload = decode_purpose_token(token, STORAGE_TOKEN_PURPOSE)
    except TokenError as exc:
        raise HTTPException(status_code=401, detail=exc.code) from exc
    if payload.get("sub") != f"{bucket}/{path.lstrip('/')}":
        raise HTTPException(status_code=403, detail="token_object_mismatch")
    target = object_path(bucket, path)
    if not target.is_file():
        raise HTTPException(status_code=404, detail="object_not_found")
    return target
