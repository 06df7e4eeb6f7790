"""Configuration objects for one consensus execution."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
import math
from types import MappingProxyType

from .errors import ConfigError


class SynthesisMethod(str, Enum):
    """Strategies for assembling the final answer."""

    CROSS_VERIFICATION = "cross_verification"
    FIRST_SUCCESS = "first_success"
    CONCATENATE = "concatenate"
    WEIGHTED_VOTE = "weighted_vote"
    BEST_OF_N = "best_of_n"
    MAJORITY_VOTE = "majority_vote"
    WEIGHTED_MERGE = "weighted_merge"
    LONGEST_COMMON_SUBSEQUENCE = "longest_common_subsequence"

    @property
    def uses_claims(self) -> bool:
        """Whether the final content is assembled from verified claims."""

        return self in _CLAIM_METHODS

    @classmethod
    def parse(cls, value: SynthesisMethod | str) -> SynthesisMethod:
        if isinstance(value, SynthesisMethod):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            raise ConfigError(
                f"unsupported synthesis method: {value!r} (supported: {supported})"
            ) from exc


_CLAIM_METHODS = frozenset(
    {
        SynthesisMethod.CROSS_VERIFICATION,
        SynthesisMethod.WEIGHTED_VOTE,
        SynthesisMethod.WEIGHTED_MERGE,
        SynthesisMethod.LONGEST_COMMON_SUBSEQUENCE,
    }
)


class WaitMode(str, Enum):
    """When collection of provider outcomes is considered done."""

    WAIT_FOR_ALL = "wait_for_all"
    WAIT_FOR_QUORUM = "wait_for_quorum"
    WAIT_FOR_FIRST = "wait_for_first"


_WAIT_ALIASES = {
    "all": WaitMode.WAIT_FOR_ALL,
    "wait_for_all": WaitMode.WAIT_FOR_ALL,
    "quorum": WaitMode.WAIT_FOR_QUORUM,
    "wait_for_quorum": WaitMode.WAIT_FOR_QUORUM,
    "first": WaitMode.WAIT_FOR_FIRST,
    "wait_for_first": WaitMode.WAIT_FOR_FIRST,
}


@dataclass(frozen=True)
class WaitPolicy:
    mode: WaitMode = WaitMode.WAIT_FOR_ALL
    count: int | None = None

    def __post_init__(self) -> None:
        mode = self.mode
        if not isinstance(mode, WaitMode):
            mode = _WAIT_ALIASES.get(str(mode).strip().lower())
            if mode is None:
                raise ConfigError(f"unknown wait mode: {self.mode!r}")
            object.__setattr__(self, "mode", mode)
        if mode is WaitMode.WAIT_FOR_ALL:
            if self.count is not None:
                raise ConfigError("wait_for_all does not take a count")
            return
        count = self.count
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ConfigError(f"{mode.value} requires a positive integer count")

    @classmethod
    def all(cls) -> WaitPolicy:
        return cls(WaitMode.WAIT_FOR_ALL)

    @classmethod
    def quorum(cls, count: int) -> WaitPolicy:
        return cls(WaitMode.WAIT_FOR_QUORUM, count)

    @classmethod
    def first(cls, count: int = 1) -> WaitPolicy:
        return cls(WaitMode.WAIT_FOR_FIRST, count)

    @classmethod
    def parse(cls, value: WaitPolicy | str) -> WaitPolicy:
        """Parse ``"all"``, ``"quorum:2"`` or ``"first:1"``."""

        if isinstance(value, WaitPolicy):
            return value
        text = str(value).strip().lower()
        name, sep, raw_count = text.partition(":")
        mode = _WAIT_ALIASES.get(name.strip())
        if mode is None:
            raise ConfigError(f"unknown wait mode: {value!r}")
        if not sep:
            if mode is WaitMode.WAIT_FOR_FIRST:
                return cls.first()
            return cls(mode)
        try:
            count = int(raw_count)
        except ValueError as exc:
            raise ConfigError(f"invalid wait mode count: {value!r}") from exc
        return cls(mode, count)

    def __str__(self) -> str:
        if self.count is None:
            return self.mode.value
        return f"{self.mode.value}({self.count})"


DEFAULT_TIMEOUT_S = 30.0
DEFAULT_MAX_CLAIMS = 20
DEFAULT_SIMILARITY_THRESHOLD = 0.3


@dataclass(frozen=True)
class ExecutionConfig:
    """Immutable policy for a single execution, supplied by the caller."""

    timeout_s: float = DEFAULT_TIMEOUT_S
    min_providers: int = 2
    synthesis_method: SynthesisMethod | str = SynthesisMethod.CROSS_VERIFICATION
    consensus_threshold: float = 0.6
    wait_mode: WaitPolicy | str = field(default_factory=WaitPolicy.all)
    provider_weights: Mapping[str, float] = field(default_factory=dict)
    max_claims_per_response: int | None = DEFAULT_MAX_CLAIMS
    min_claim_chars: int = 0
    max_concurrency: int | None = None
    concatenate_separator: str = "\n\n"
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    verification_enabled: bool = True
    include_failed_in_output: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "synthesis_method", SynthesisMethod.parse(self.synthesis_method)
        )
        object.__setattr__(self, "wait_mode", WaitPolicy.parse(self.wait_mode))

        timeout = self.timeout_s
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigError("timeout_s must be a number")
        if not math.isfinite(timeout) or timeout <= 0:
            raise ConfigError("timeout_s must be a positive duration")
        object.__setattr__(self, "timeout_s", float(timeout))

        if isinstance(self.min_providers, bool) or not isinstance(self.min_providers, int):
            raise ConfigError("min_providers must be an int")
        if self.min_providers < 0:
            raise ConfigError("min_providers must not be negative")

        threshold = self.consensus_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ConfigError("consensus_threshold must be a number")
        if not 0.0 <= float(threshold) <= 1.0:
            raise ConfigError("consensus_threshold must be within [0, 1]")
        object.__setattr__(self, "consensus_threshold", float(threshold))

        similarity = self.similarity_threshold
        if isinstance(similarity, bool) or not isinstance(similarity, (int, float)):
            raise ConfigError("similarity_threshold must be a number")
        if not 0.0 <= float(similarity) <= 1.0:
            raise ConfigError("similarity_threshold must be within [0, 1]")
        object.__setattr__(self, "similarity_threshold", float(similarity))

        for name in ("verification_enabled", "include_failed_in_output"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean")
        if not self.verification_enabled and self.method.uses_claims:
            raise ConfigError(
                f"synthesis method {self.method.value} requires verification_enabled"
            )

        weights: dict[str, float] = {}
        for provider_id, weight in dict(self.provider_weights or {}).items():
            value = float(weight)
            if not math.isfinite(value) or value < 0:
                raise ConfigError(f"weight for {provider_id!r} must be a non-negative number")
            weights[str(provider_id)] = value
        object.__setattr__(self, "provider_weights", MappingProxyType(weights))

        for name in ("max_claims_per_response", "max_concurrency"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer")
        if isinstance(self.min_claim_chars, bool) or not isinstance(self.min_claim_chars, int):
            raise ConfigError("min_claim_chars must be an int")
        if self.min_claim_chars < 0:
            raise ConfigError("min_claim_chars must not be negative")

    @property
    def wait_policy(self) -> WaitPolicy:
        return self.wait_mode  # type: ignore[return-value]

    @property
    def method(self) -> SynthesisMethod:
        return self.synthesis_method  # type: ignore[return-value]

    def weight_for(self, provider_id: str) -> float:
        return float(self.provider_weights.get(provider_id, 1.0))

    @classmethod
    def fast(cls) -> ExecutionConfig:
        return cls(
            timeout_s=15.0,
            synthesis_method=SynthesisMethod.BEST_OF_N,
            wait_mode=WaitPolicy.first(1),
            min_providers=1,
            verification_enabled=False,
        )

    @classmethod
    def thorough(cls) -> ExecutionConfig:
        return cls(
            timeout_s=60.0,
            synthesis_method=SynthesisMethod.CROSS_VERIFICATION,
            consensus_threshold=0.7,
            wait_mode=WaitPolicy.all(),
            max_claims_per_response=30,
            verification_enabled=True,
        )

    def with_timeout(self, timeout_s: float) -> ExecutionConfig:
        return replace(self, timeout_s=timeout_s)

    def with_synthesis(self, method: SynthesisMethod | str) -> ExecutionConfig:
        return replace(self, synthesis_method=method)

    def with_consensus_threshold(self, threshold: float) -> ExecutionConfig:
        return replace(self, consensus_threshold=threshold)

    def with_wait_mode(self, wait_mode: WaitPolicy | str) -> ExecutionConfig:
        return replace(self, wait_mode=wait_mode)

    def with_verification(self, enabled: bool) -> ExecutionConfig:
        return replace(self, verification_enabled=enabled)

    def describe(self) -> dict[str, object]:
        return {
            "timeout_s": self.timeout_s,
            "min_providers": self.min_providers,
            "synthesis_method": self.method.value,
            "consensus_threshold": self.consensus_threshold,
            "wait_mode": str(self.wait_policy),
            "provider_weights": dict(self.provider_weights),
            "max_claims_per_response": self.max_claims_per_response,
            "min_claim_chars": self.min_claim_chars,
            "max_concurrency": self.max_concurrency,
            "similarity_threshold": self.similarity_threshold,
            "verification_enabled": self.verification_enabled,
            "include_failed_in_output": self.include_failed_in_output,
        }


__all__ = [
    "DEFAULT_MAX_CLAIMS",
    "DEFAULT_SIMILARITY_THRESHOLD",
    "DEFAULT_TIMEOUT_S",
    "ExecutionConfig",
    "SynthesisMethod",
    "WaitMode",
    "WaitPolicy",
]
