"""Heuristic spam scoring for free-text submissions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import re

from config import settings

_LINK_PATTERN = re.compile(r"\bhttps?://\S+", re.IGNORECASE)
_REPEAT_CHAR_PATTERN = re.compile(r"((.)\2{2,})")


@dataclass
class SpamScore:
    links_per_100w: float
    repeat_char_max: int
    repeat_word_max: int
    total: float


def score_text(text: str) -> SpamScore:
    """Score 0-100 from link density, character runs and word repetition."""
    body = " ".join((text or "").split())
    words = body.split(" ") if body else []
    word_count = max(len(words), 1)

    links = len(_LINK_PATTERN.findall(body))
    links_per_100w = links / word_count * 100
    # Runs shorter than three characters are not counted.
    repeat_char_max = max((len(match[0]) for match in _REPEAT_CHAR_PATTERN.findall(body)), default=0)
    repeat_word_max = max(Counter(word.lower() for word in words).values(), default=0)

    total = (
        min(100.0, links_per_100w * 10)
        + min(100.0, (repeat_char_max - 2) * 8)
        + min(100.0, (repeat_word_max - 5) * 6)
    )
    return SpamScore(
        links_per_100w=links_per_100w,
        repeat_char_max=repeat_char_max,
        repeat_word_max=repeat_word_max,
        total=max(0.0, min(100.0, total)),
    )


def is_suspicious(score: SpamScore) -> bool:
    return (
        score.links_per_100w > float(settings.SPAM_MAX_LINKS_PER_100W)
        or score.repeat_char_max > int(settings.SPAM_MAX_REPEAT_CHAR)
        or score.repeat_word_max > int(settings.SPAM_MAX_REPEAT_WORD)
        or score.total > float(settings.SPAM_SCORE_THRESHOLD)
    )
