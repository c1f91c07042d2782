"""Request body helpers for endpoints that accept JSON, form or query input."""

from typing import Any, Dict

from fastapi import HTTPException, Request


async def read_payload(request: Request) -> Dict[str, Any]:
    """Merge query parameters with a JSON or form body (body wins)."""
    data: Dict[str, Any] = dict(request.query_params)
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="invalid_json") from exc
        if isinstance(body, dict):
            data.update(body)
    elif "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        data.update({key: value for key, value in form.items()})
    return data


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")
