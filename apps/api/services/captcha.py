"""Turnstile / hCaptcha token verification."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)

VERIFY_URLS = {
    "turnstile": "https://challenges.cloudflare.com/turnstile/v0/siteverify",
    "hcaptcha": "https://hcaptcha.com/siteverify",
}


async def verify_captcha(token: Optional[str], remote_ip: Optional[str] = None) -> bool:
    if not token:
        return False
    secret = (settings.CAPTCHA_SECRET_KEY or "").strip()
    if not secret:
        logger.warning("Captcha verification requested but CAPTCHA_SECRET_KEY is not configured.")
        return False
    provider = (settings.CAPTCHA_PROVIDER or "turnstile").strip().lower()
    url = VERIFY_URLS.get(provider, VERIFY_URLS["turnstile"])
    data = {"secret": secret, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(url, data=data)
            response.raise_for_status()
            body = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Captcha verification failed (%s): %s", provider, exc)
        return False
    return bool(body.get("success"))
