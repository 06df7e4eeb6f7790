"""Concurrent fan-out of one prompt to every configured provider."""
from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Sequence
import logging
import time

from .config import ExecutionConfig
from .errors import NoProvidersConfigured, ProviderTimeout
from .models import OutcomeStatus, ProviderCall, ProviderOutcome
from .provider_spi import AsyncProviderSPI, ProviderSPI, ensure_async_provider, provider_id
from .utils import elapsed_ms, provider_model_name

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]
_UNKNOWN_MODEL = "unknown"


def _unique_ids(providers: Sequence[ProviderSPI | AsyncProviderSPI]) -> list[str]:
    seen: dict[str, int] = {}
    ids: list[str] = []
    for provider in providers:
        base = provider_id(provider)
        count = seen.get(base, 0) + 1
        seen[base] = count
        ids.append(base if count == 1 else f"{base}#{count}")
    return ids


def _error_reason(exc: BaseException) -> str:
    message = str(exc)
    if message:
        return f"{type(exc).__name__}: {message}"
    return type(exc).__name__


class ProviderDispatcher:
    """Async iterator of provider outcomes in completion order.

    Every provider shares one deadline measured from dispatch start. When it
    expires, still-running calls are cancelled and reported as ``Timeout``.
    Outcomes that complete within the same wake-up are yielded in dispatch
    order.
    """

    def __init__(
        self,
        prompt: str,
        providers: Sequence[ProviderSPI | AsyncProviderSPI],
        config: ExecutionConfig,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._prompt = prompt
        self._config = config
        self._clock = clock
        ids = _unique_ids(providers)
        self._providers: list[tuple[str, str, AsyncProviderSPI]] = [
            (
                ids[index],
                provider_model_name(provider) or _UNKNOWN_MODEL,
                ensure_async_provider(provider),
            )
            for index, provider in enumerate(providers)
        ]
        self._calls: list[ProviderCall] = []
        self._tasks: dict[asyncio.Task[ProviderOutcome], int] = {}
        self._ready: deque[ProviderOutcome] = deque()
        self._started_at: float | None = None
        self._deadline: float | None = None
        self._timed_out = False
        self._closed = False

    @property
    def total(self) -> int:
        return len(self._providers)

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    @property
    def started_at(self) -> float | None:
        return self._started_at

    @property
    def calls(self) -> tuple[ProviderCall, ...]:
        return tuple(self._calls)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        if self._started_at is not None or self._closed:
            return
        started_at = self._clock()
        self._started_at = started_at
        self._deadline = started_at + self._config.timeout_s
        limit = self._config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit is not None else None
        for index, (pid, model, provider) in enumerate(self._providers):
            call = ProviderCall(provider_id=pid, model=model, index=index, started_at=started_at)
            self._calls.append(call)
            task = asyncio.create_task(
                self._invoke(call, provider, semaphore),
                name=f"llm-consensus:{pid}",
            )
            self._tasks[task] = index
        LOGGER.debug(
            "dispatched %d providers (timeout=%.3fs)", len(self._tasks), self._config.timeout_s
        )

    async def _invoke(
        self,
        call: ProviderCall,
        provider: AsyncProviderSPI,
        semaphore: asyncio.Semaphore | None,
    ) -> ProviderOutcome:
        assert self._deadline is not None
        if semaphore is not None:
            await semaphore.acquire()
        call_started = self._clock()
        try:
            content = await provider.complete_async(self._prompt, self._deadline)
        except asyncio.CancelledError:
            raise
        except (ProviderTimeout, TimeoutError) as exc:
            LOGGER.warning("provider %s timed out: %s", call.provider_id, exc)
            return ProviderOutcome.failure(
                call,
                OutcomeStatus.TIMEOUT,
                elapsed_ms(call_started, now=self._clock()),
                error=_error_reason(exc),
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("provider %s failed: %s", call.provider_id, _error_reason(exc))
            return ProviderOutcome.failure(
                call,
                OutcomeStatus.ERROR,
                elapsed_ms(call_started, now=self._clock()),
                error=_error_reason(exc),
            )
        finally:
            if semaphore is not None:
                semaphore.release()
        latency_ms = elapsed_ms(call_started, now=self._clock())
        if not isinstance(content, str):
            return ProviderOutcome.failure(
                call,
                OutcomeStatus.ERROR,
                latency_ms,
                error=f"invalid response type: {type(content).__name__}",
            )
        return ProviderOutcome.success(call, content, latency_ms)

    def __aiter__(self) -> ProviderDispatcher:
        return self

    async def __anext__(self) -> ProviderOutcome:
        self.start()
        while True:
            if self._ready:
                return self._ready.popleft()
            if not self._tasks or self._closed:
                raise StopAsyncIteration
            assert self._deadline is not None
            remaining = self._deadline - self._clock()
            if remaining <= 0:
                await self._expire()
                continue
            done, _ = await asyncio.wait(
                tuple(self._tasks), timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                await self._expire()
                continue
            for task in sorted(done, key=lambda item: self._tasks[item]):
                self._tasks.pop(task)
                self._ready.append(task.result())

    async def _drain(self) -> list[tuple[asyncio.Task[ProviderOutcome], int]]:
        pending = sorted(self._tasks.items(), key=lambda item: item[1])
        self._tasks.clear()
        for task, _ in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*(task for task, _ in pending), return_exceptions=True)
        return pending

    async def _expire(self) -> None:
        self._timed_out = True
        pending = await self._drain()
        budget_ms = int(self._config.timeout_s * 1000)
        for task, index in pending:
            if not task.cancelled() and task.exception() is None:
                self._ready.append(task.result())
                continue
            call = self._calls[index]
            self._ready.append(
                ProviderOutcome.failure(
                    call,
                    OutcomeStatus.TIMEOUT,
                    budget_ms,
                    error=f"no response within {self._config.timeout_s:g}s",
                )
            )
        if pending:
            LOGGER.info("global timeout reached; %d providers timed out", len(pending))

    async def cancel_remaining(self) -> list[ProviderOutcome]:
        """Cancel in-flight calls and report every unconsumed provider as cancelled."""

        if self._closed:
            return []
        if self._started_at is None:
            indices = list(range(len(self._providers)))
            calls = [
                ProviderCall(provider_id=pid, model=model, index=index, started_at=self._clock())
                for index, (pid, model, _) in enumerate(self._providers)
            ]
            self._calls = calls
        else:
            pending = await self._drain()
            indices = [outcome.index for outcome in self._ready]
            indices.extend(index for _, index in pending)
        self._ready.clear()
        self._closed = True
        latency_ms = elapsed_ms(self._started_at, now=self._clock()) if self._started_at else 0
        cancelled = [
            ProviderOutcome.failure(self._calls[index], OutcomeStatus.CANCELLED, latency_ms)
            for index in sorted(indices)
        ]
        if cancelled:
            LOGGER.debug("cancelled %d providers", len(cancelled))
        return cancelled

    async def aclose(self) -> None:
        await self.cancel_remaining()

    async def __aenter__(self) -> ProviderDispatcher:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def dispatch(
    prompt: str,
    providers: Sequence[ProviderSPI | AsyncProviderSPI],
    config: ExecutionConfig,
    *,
    clock: Clock = time.monotonic,
) -> ProviderDispatcher:
    """Create a dispatcher for ``providers``; calls start on first iteration."""

    if not providers:
        raise NoProvidersConfigured()
    return ProviderDispatcher(prompt, providers, config, clock=clock)


__all__ = ["ProviderDispatcher", "dispatch"]
