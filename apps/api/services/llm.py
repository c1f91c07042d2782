"""OpenAI client access for embeddings and answer drafts."""

from __future__ import annotations

import logging
from typing import List, Optional

from openai import OpenAI

from config import settings

logger = logging.getLogger(__name__)


def get_openai_client(api_key: Optional[str] = None) -> Optional[OpenAI]:
    """Get OpenAI client, handling placeholders."""
    key = settings.OPENAI_API_KEY if api_key is None else api_key
    if not key or "your_" in key or key == "test-key":
        return None
    return OpenAI(api_key=key)


def embed_text(client: Optional[OpenAI], text: str, model: Optional[str] = None) -> Optional[List[float]]:
    """Embedding vector for one chunk; None when no client is configured."""
    if client is None:
        return None
    response = client.embeddings.create(model=model or settings.OPENAI_EMBEDDING_MODEL, input=text)
    return list(response.data[0].embedding)


def complete_chat(
    client: OpenAI,
    *,
    system_prompt: str,
    user_message: str,
    model: Optional[str] = None,
    temperature: float = 0.2,
) -> str:
    response = client.chat.completions.create(
        model=model or settings.OPENAI_DRAFT_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
        temperature=temperature,
        max_tokens=2000,
    )
    return (response.choices[0].message.content or "").strip()
