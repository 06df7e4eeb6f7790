"""Utility helpers shared across the engine."""

import hashlib
import time
from typing import Any


def content_hash(*parts: str) -> str:
    """Return a short deterministic hash of ``parts`` for log correlation."""

    h = hashlib.sha256()
    for part in parts:
        h.update(part.encode())
        h.update(b"\x00")
    return h.hexdigest()[:16]


def elapsed_ms(start_ts: float, *, now: float | None = None) -> int:
    """Return elapsed milliseconds since the monotonic timestamp ``start_ts``."""

    current = time.monotonic() if now is None else now
    return max(0, int((current - start_ts) * 1000))


def provider_model_name(provider: Any) -> str | None:
    """Extract a provider's configured model name when available."""

    for attr in ("model", "_model"):
        value = getattr(provider, attr, None)
        if callable(value):
            continue
        if isinstance(value, str) and value:
            return value
    return None


__all__ = [
    "content_hash",
    "elapsed_ms",
    "provider_model_name",
]
