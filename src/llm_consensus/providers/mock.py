"""Mock provider that can deterministically trigger failure modes."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
import time

from ..errors import ProviderError, ProviderTimeout
from .base import BaseProvider

Responder = Callable[[str], str]
ErrorSpec = tuple[type[ProviderError], str]
_ERROR_BY_MARKER: dict[str, ErrorSpec] = {
    "[TIMEOUT]": (ProviderTimeout, "simulated timeout"),
    "[ERROR]": (ProviderError, "simulated provider error"),
}


class MockProvider(BaseProvider):
    """Deterministic provider for tests, config files and the ``test`` command.

    ``text`` is either a fixed answer or a ``prompt -> answer`` callable. A
    prompt containing ``[TIMEOUT]`` or ``[ERROR]`` makes the call fail.
    """

    def __init__(
        self,
        name: str,
        text: str | Responder | None = None,
        *,
        model: str | None = "mock",
        latency_ms: int = 0,
        error_markers: Iterable[str] | None = None,
        fail_with: BaseException | None = None,
    ) -> None:
        super().__init__(name=name, model=model)
        if latency_ms < 0:
            raise ValueError("latency_ms must not be negative")
        self._text = text
        self.latency_ms = latency_ms
        self._fail_with = fail_with
        if error_markers is None:
            self._error_markers: set[str] = set(_ERROR_BY_MARKER)
        else:
            self._error_markers = {
                marker for marker in error_markers if marker in _ERROR_BY_MARKER
            }
        self.calls: list[str] = []

    def _maybe_raise_error(self, prompt: str) -> None:
        if self._fail_with is not None:
            raise self._fail_with
        for marker in sorted(self._error_markers):
            if marker in prompt:
                exc_cls, message = _ERROR_BY_MARKER[marker]
                raise exc_cls(message, provider_id=self.name())

    def _respond(self, prompt: str) -> str:
        if self._text is None:
            return f"echo({self.name()}): {prompt}"
        if callable(self._text):
            return self._text(prompt)
        return self._text

    def complete(self, prompt: str, deadline: float) -> str:
        self.calls.append(prompt)
        delay = self.latency_ms / 1000.0
        remaining = deadline - time.monotonic()
        if delay > remaining:
            time.sleep(max(0.0, remaining))
            raise ProviderTimeout("deadline exceeded", provider_id=self.name())
        if delay:
            time.sleep(delay)
        self._maybe_raise_error(prompt)
        return self._respond(prompt)

    async def complete_async(self, prompt: str, deadline: float) -> str:
        self.calls.append(prompt)
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000.0)
        self._maybe_raise_error(prompt)
        return self._respond(prompt)


__all__ = ["MockProvider"]
