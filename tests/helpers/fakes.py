from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any


class _CapturingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        self.events.append((event_type, dict(record)))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


class _AsyncProbeProvider:
    def __init__(
        self,
        name: str,
        *,
        delay: float = 0.0,
        text: str | None = None,
        failure: BaseException | None = None,
        block: bool = False,
        model: str | None = None,
    ) -> None:
        self._name = name
        self._delay = delay
        self._text = text if text is not None else f"{name} answered."
        self._failure = failure
        self._block = block
        self.model = model
        self.cancelled = False
        self.finished = False
        self.invocations = 0
        self.deadlines: list[float] = []

    def name(self) -> str:
        return self._name

    async def complete_async(self, prompt: str, deadline: float) -> str:
        self.invocations += 1
        self.deadlines.append(deadline)
        try:
            if self._block:
                await asyncio.Event().wait()
            elif self._delay > 0:
                await asyncio.sleep(self._delay)
            if self._failure is not None:
                raise self._failure
            return self._text
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.finished = True


class _SyncProvider:
    def __init__(self, name: str, text: str, *, model: str | None = None) -> None:
        self._name = name
        self._text = text
        self.model = model
        self.prompts: list[str] = []

    def name(self) -> str:
        return self._name

    def complete(self, prompt: str, deadline: float) -> str:
        self.prompts.append(prompt)
        return self._text


def make_providers(*texts: str, prefix: str = "p") -> list[_AsyncProbeProvider]:
    return [
        _AsyncProbeProvider(f"{prefix}{index}", text=text) for index, text in enumerate(texts)
    ]


__all__ = ["_AsyncProbeProvider", "_CapturingLogger", "_SyncProvider", "make_providers"]
