"""Pacing and text helpers for human-like delivery."""

from __future__ import annotations

import random
import re

FILLER_OPENERS = ("sure", "okay", "ok", "certainly", "of course", "absolutely")

_FILLER_RE = re.compile(
    r"^(?:" + "|".join(re.escape(word) for word in FILLER_OPENERS) + r")\s*[,!.]\s+",
    re.IGNORECASE,
)


def is_no_reply(raw: str, token: str) -> bool:
    return bool(token) and raw.strip() == token


def split_chunks(raw: str, delimiter: str, no_reply_token: str = "") -> list[str]:
    """Split on *delimiter*, dropping blank and opt-out fragments."""
    chunks: list[str] = []
    for fragment in raw.split(delimiter):
        text = fragment.strip()
        if not text or (no_reply_token and text == no_reply_token):
            continue
        chunks.append(text)
    return chunks


def typing_seconds(
    text: str,
    *,
    chars_per_minute: int,
    jitter: float,
    rng: random.Random,
    minimum: float = 1.0,
    maximum: float = 30.0,
) -> float:
    """``len / cpm * 60`` scaled by a uniform ``1 ± jitter`` factor, clamped."""
    base = len(text) / max(1, chars_per_minute) * 60.0
    factor = 1.0 + rng.uniform(-jitter, jitter) if jitter > 0 else 1.0
    return min(maximum, max(minimum, base * factor))


def reading_delay(
    source_text: str,
    *,
    minimum: float,
    maximum: float,
    rng: random.Random,
) -> float:
    """Pause before answering: a random think time plus one second per 100 chars read."""
    if maximum <= 0:
        return 0.0
    return rng.uniform(minimum, maximum) + len(source_text) / 100.0


def polish_reply(text: str, identity_name: str = "") -> str:
    """Drop an echoed ``Name:`` speaker prefix and a leading filler opener."""
    result = text.strip()
    if identity_name:
        prefix = f"{identity_name}:"
        if result.casefold().startswith(prefix.casefold()):
            result = result[len(prefix) :].lstrip()
    match = _FILLER_RE.match(result)
    if match and len(result) > match.end():
        rest = result[match.end() :]
        result = rest[:1].upper() + rest[1:]
    return result
