"""Data models shared by the dispatcher, collector and synthesizer."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import SynthesisMethod

_PREVIEW_CHARS = 100


def _preview(text: str) -> str:
    if len(text) > _PREVIEW_CHARS:
        return f"{text[:_PREVIEW_CHARS]}..."
    return text


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class TerminationReason(str, Enum):
    """Why the collector stopped waiting for providers."""

    ALL_COMPLETED = "all_completed"
    QUORUM_REACHED = "quorum_reached"
    FIRST_N_REACHED = "first_n_reached"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class ProviderCall:
    provider_id: str
    model: str
    index: int
    started_at: float


@dataclass(frozen=True, slots=True)
class ProviderOutcome:
    provider_id: str
    model: str
    status: OutcomeStatus
    latency_ms: int
    content: str | None = None
    error: str | None = None
    index: int = 0

    def __post_init__(self) -> None:
        if self.status is OutcomeStatus.SUCCESS:
            if self.content is None:
                raise ValueError("successful outcomes require content")
        elif self.content is not None:
            raise ValueError("only successful outcomes carry content")

    @classmethod
    def success(cls, call: ProviderCall, content: str, latency_ms: int) -> ProviderOutcome:
        return cls(
            provider_id=call.provider_id,
            model=call.model,
            status=OutcomeStatus.SUCCESS,
            latency_ms=latency_ms,
            content=content,
            index=call.index,
        )

    @classmethod
    def failure(
        cls,
        call: ProviderCall,
        status: OutcomeStatus,
        latency_ms: int,
        error: str | None = None,
    ) -> ProviderOutcome:
        return cls(
            provider_id=call.provider_id,
            model=call.model,
            status=status,
            latency_ms=latency_ms,
            error=error,
            index=call.index,
        )

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    def describe_status(self) -> str:
        if self.status is OutcomeStatus.SUCCESS:
            return "OK"
        if self.status is OutcomeStatus.ERROR:
            return self.error or "unknown error"
        return self.status.value.upper()

    @property
    def preview(self) -> str | None:
        if self.content is None:
            return None
        return _preview(self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "model": self.model,
            "status": self.status.value,
            "latency_ms": self.latency_ms,
            "error": self.error,
            "content_preview": self.preview,
        }


@dataclass(frozen=True, slots=True)
class Claim:
    text: str
    source_provider_id: str
    normalized_key: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class ClaimVerdict:
    claim: Claim
    supporting_providers: frozenset[str]
    agreement_ratio: float
    accepted: bool

    @property
    def support(self) -> int:
        return len(self.supporting_providers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.claim.text,
            "normalized_key": self.claim.normalized_key,
            "supporting_providers": sorted(self.supporting_providers),
            "agreement_ratio": self.agreement_ratio,
            "accepted": self.accepted,
        }


@dataclass(frozen=True, slots=True)
class ResponseCluster:
    """Successful responses whose word overlap with the first member meets the threshold."""

    provider_ids: tuple[str, ...]
    representative_content: str
    similarity_score: float

    @property
    def size(self) -> int:
        return len(self.provider_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_ids": list(self.provider_ids),
            "similarity_score": self.similarity_score,
            "representative_preview": _preview(self.representative_content),
        }


def successful_outcomes(outcomes: Iterable[ProviderOutcome]) -> list[ProviderOutcome]:
    return [outcome for outcome in outcomes if outcome.ok]


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal artifact of one execution; owns copies of all its data."""

    content: str
    consensus_score: float
    synthesis_method: SynthesisMethod
    total_latency_ms: int
    facts_verified: int
    facts_rejected: int
    provider_outcomes: tuple[ProviderOutcome, ...]
    verdicts: tuple[ClaimVerdict, ...] = ()
    cancelled_outcomes: tuple[ProviderOutcome, ...] = ()
    terminated_by: TerminationReason = TerminationReason.ALL_COMPLETED
    fastest_provider: str | None = field(default=None)
    slowest_provider: str | None = field(default=None)
    clusters: tuple[ResponseCluster, ...] = ()
    outliers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider_outcomes", tuple(self.provider_outcomes))
        object.__setattr__(self, "verdicts", tuple(self.verdicts))
        object.__setattr__(self, "cancelled_outcomes", tuple(self.cancelled_outcomes))
        object.__setattr__(self, "clusters", tuple(self.clusters))
        object.__setattr__(self, "outliers", tuple(self.outliers))
        if not 0.0 <= self.consensus_score <= 1.0:
            raise ValueError("consensus_score must be within [0, 1]")

    @property
    def success_count(self) -> int:
        return len(successful_outcomes(self.provider_outcomes))

    @property
    def providers_dispatched(self) -> int:
        return len(self.provider_outcomes) + len(self.cancelled_outcomes)

    @property
    def cross_verified(self) -> bool:
        """``False`` when a single provider answered and nothing was compared."""

        return self.success_count >= 2

    def format_summary(self) -> str:
        lines = [f"Consensus: {self.consensus_score * 100:.0f}%"]
        if not self.cross_verified:
            lines[0] += " (not cross-verified: single provider)"
        lines.append(
            f"Synthesis: {self.synthesis_method.value} | Latency: {self.total_latency_ms}ms"
        )
        lines.append(
            f"Facts: {self.facts_verified} verified, {self.facts_rejected} rejected"
        )
        if self.outliers:
            lines.append(f"Outliers: {', '.join(self.outliers)}")
        lines.append("")
        lines.append("Provider Results:")
        for outcome in self.provider_outcomes:
            lines.append(
                f"  {outcome.provider_id} ({outcome.model}): "
                f"{outcome.describe_status()} - {outcome.latency_ms}ms"
            )
        for outcome in self.cancelled_outcomes:
            lines.append(
                f"  {outcome.provider_id} ({outcome.model}): CANCELLED"
            )
        lines.append("")
        lines.append(self.content)
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "consensus_score": self.consensus_score,
            "cross_verified": self.cross_verified,
            "synthesis_method": self.synthesis_method.value,
            "total_latency_ms": self.total_latency_ms,
            "facts_verified": self.facts_verified,
            "facts_rejected": self.facts_rejected,
            "terminated_by": self.terminated_by.value,
            "fastest_provider": self.fastest_provider,
            "slowest_provider": self.slowest_provider,
            "provider_outcomes": [outcome.to_dict() for outcome in self.provider_outcomes],
            "cancelled_outcomes": [outcome.to_dict() for outcome in self.cancelled_outcomes],
            "verdicts": [verdict.to_dict() for verdict in self.verdicts],
            "clusters": [cluster.to_dict() for cluster in self.clusters],
            "outliers": list(self.outliers),
        }


def latency_extremes(outcomes: Sequence[ProviderOutcome]) -> tuple[str | None, str | None]:
    """Return ``(fastest, slowest)`` provider ids among successful outcomes."""

    successes = successful_outcomes(outcomes)
    if not successes:
        return None, None
    fastest = min(successes, key=lambda outcome: outcome.latency_ms)
    slowest = max(successes, key=lambda outcome: outcome.latency_ms)
    return fastest.provider_id, slowest.provider_id


__all__ = [
    "Claim",
    "ClaimVerdict",
    "ExecutionResult",
    "OutcomeStatus",
    "ProviderCall",
    "ProviderOutcome",
    "ResponseCluster",
    "TerminationReason",
    "latency_extremes",
    "successful_outcomes",
]
