from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Protocol, cast

from .utils import provider_model_name


class ProviderSPI(Protocol):
    def name(self) -> str: ...
    def complete(self, prompt: str, deadline: float) -> str: ...


class AsyncProviderSPI(Protocol):
    def name(self) -> str: ...
    async def complete_async(self, prompt: str, deadline: float) -> str: ...


class _AsyncProviderAdapter(AsyncProviderSPI):
    def __init__(
        self,
        provider: ProviderSPI | AsyncProviderSPI,
        *,
        async_complete: Callable[[str, float], Awaitable[str]] | None = None,
    ) -> None:
        self._provider = provider
        self._async_complete = async_complete

    def name(self) -> str:
        return self._provider.name()

    @property
    def model(self) -> str | None:
        return provider_model_name(self._provider)

    @property
    def wrapped(self) -> ProviderSPI | AsyncProviderSPI:
        return self._provider

    async def complete_async(self, prompt: str, deadline: float) -> str:
        if self._async_complete is not None:
            return await self._async_complete(prompt, deadline)
        complete = getattr(self._provider, "complete", None)
        if not callable(complete):
            raise TypeError("Provider does not expose a synchronous complete() method")
        # the worker thread cannot be interrupted; cancellation only abandons it
        return await asyncio.to_thread(complete, prompt, deadline)


def ensure_async_provider(provider: ProviderSPI | AsyncProviderSPI) -> AsyncProviderSPI:
    complete_async = getattr(provider, "complete_async", None)
    if callable(complete_async):
        if inspect.iscoroutinefunction(complete_async):
            return cast(AsyncProviderSPI, provider)

        async def _complete(prompt: str, deadline: float) -> str:
            result = complete_async(prompt, deadline)
            if inspect.isawaitable(result):
                return await cast(Awaitable[str], result)
            return cast(str, result)

        return _AsyncProviderAdapter(provider, async_complete=_complete)

    return _AsyncProviderAdapter(provider)


def provider_id(provider: ProviderSPI | AsyncProviderSPI) -> str:
    name_attr = getattr(provider, "name", None)
    if callable(name_attr):
        return str(name_attr())
    return type(provider).__name__


__all__ = [
    "AsyncProviderSPI",
    "ProviderSPI",
    "ensure_async_provider",
    "provider_id",
]
