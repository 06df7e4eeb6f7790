"""Normalized exception hierarchy for the consensus engine."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import ProviderOutcome


class ConsensusError(Exception):
    """Base class for engine-originated errors."""


class ConfigError(ConsensusError):
    """Raised when an execution configuration is invalid."""


class ProviderError(ConsensusError):
    """Raised by a provider capability when a single call fails.

    The engine records it in the provider's outcome; it never aborts the
    execution on its own.
    """

    def __init__(self, message: str, *, provider_id: str | None = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id
        self.reason = message


class ProviderTimeout(ProviderError):
    """Raised when a provider call exceeds its deadline."""


class FatalError(ConsensusError):
    """Base class for conditions that end an execution without a result."""

    def __init__(
        self,
        message: str,
        *,
        outcomes: Iterable[ProviderOutcome] | None = None,
        cancelled: Iterable[ProviderOutcome] | None = None,
    ) -> None:
        super().__init__(message)
        self.outcomes: tuple[ProviderOutcome, ...] = tuple(outcomes or ())
        self.cancelled: tuple[ProviderOutcome, ...] = tuple(cancelled or ())


class NoProvidersConfigured(FatalError):
    """Raised when an execution is requested without any provider."""

    def __init__(self, message: str = "no providers configured") -> None:
        super().__init__(message)


class InsufficientProviders(FatalError):
    """Raised when fewer providers succeeded than ``min_providers``."""

    def __init__(
        self,
        success_count: int,
        required: int,
        *,
        outcomes: Iterable[ProviderOutcome] | None = None,
        cancelled: Iterable[ProviderOutcome] | None = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = (
                f"insufficient providers: {success_count} succeeded, {required} required"
            )
        super().__init__(message, outcomes=outcomes, cancelled=cancelled)
        self.success_count = success_count
        self.required = required


class NoSuccessfulProviders(InsufficientProviders):
    """Raised when no provider succeeded; takes precedence over the quorum check."""

    def __init__(
        self,
        required: int = 1,
        *,
        outcomes: Iterable[ProviderOutcome] | None = None,
        cancelled: Iterable[ProviderOutcome] | None = None,
    ) -> None:
        collected = tuple(outcomes or ())
        details = "; ".join(
            f"{outcome.provider_id}: {outcome.describe_status()}" for outcome in collected
        )
        message = "no successful providers"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            0,
            max(required, 1),
            outcomes=collected,
            cancelled=cancelled,
            message=message,
        )


__all__ = [
    "ConsensusError",
    "ConfigError",
    "ProviderError",
    "ProviderTimeout",
    "FatalError",
    "NoProvidersConfigured",
    "InsufficientProviders",
    "NoSuccessfulProviders",
]
