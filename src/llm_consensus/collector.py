"""Collection of provider outcomes under a wait policy."""
from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
import logging
from typing import Protocol

from .config import ExecutionConfig, WaitMode, WaitPolicy
from .models import ProviderOutcome, TerminationReason

LOGGER = logging.getLogger(__name__)


class OutcomeStream(Protocol):
    """What the collector needs from a dispatcher."""

    @property
    def total(self) -> int: ...

    @property
    def timed_out(self) -> bool: ...

    def __aiter__(self) -> AsyncIterator[ProviderOutcome]: ...

    async def cancel_remaining(self) -> list[ProviderOutcome]: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class Collection:
    outcomes: tuple[ProviderOutcome, ...]
    cancelled: tuple[ProviderOutcome, ...] = ()
    terminated_by: TerminationReason = TerminationReason.ALL_COMPLETED

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)


def _target(policy: WaitPolicy, total: int) -> int | None:
    if policy.mode is WaitMode.WAIT_FOR_ALL or policy.count is None:
        return None
    return min(policy.count, total)


class ResponseCollector:
    """Consume an outcome stream until the wait policy is satisfied."""

    async def collect(self, stream: OutcomeStream, config: ExecutionConfig) -> Collection:
        policy = config.wait_policy
        total = stream.total
        if total == 0:
            return Collection(outcomes=())

        target = _target(policy, total)
        outcomes: list[ProviderOutcome] = []
        successes = 0
        reason: TerminationReason | None = None
        try:
            async for outcome in stream:
                outcomes.append(outcome)
                if outcome.ok:
                    successes += 1
                if target is None:
                    continue
                if policy.mode is WaitMode.WAIT_FOR_QUORUM and successes >= target:
                    reason = TerminationReason.QUORUM_REACHED
                    break
                if policy.mode is WaitMode.WAIT_FOR_FIRST and len(outcomes) >= target:
                    reason = TerminationReason.FIRST_N_REACHED
                    break
            cancelled = await stream.cancel_remaining()
        except BaseException:
            await stream.aclose()
            raise

        if reason is None:
            reason = (
                TerminationReason.TIMEOUT if stream.timed_out else TerminationReason.ALL_COMPLETED
            )
        LOGGER.debug(
            "collection finished: %s (%d outcomes, %d successes, %d cancelled)",
            reason.value,
            len(outcomes),
            successes,
            len(cancelled),
        )
        return Collection(
            outcomes=tuple(outcomes),
            cancelled=tuple(cancelled),
            terminated_by=reason,
        )


__all__ = ["Collection", "OutcomeStream", "ResponseCollector"]
