"""Claim grouping, cross-verification and assembly of the final answer."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import json
import logging
import math

from .config import ExecutionConfig, SynthesisMethod
from .errors import NoSuccessfulProviders
from .models import Claim, ClaimVerdict, ProviderOutcome, successful_outcomes

LOGGER = logging.getLogger(__name__)

_RATIO_TOLERANCE = 1e-9
_MERGE_AGREEMENT_FLOOR = 0.1
_MERGE_LATENCY_OFFSET_S = 0.1


@dataclass(slots=True)
class _ClaimGroup:
    key: str
    claim: Claim
    providers: list[str] = field(default_factory=list)
    weight: float = 0.0
    stable_index: int = 0

    def record(self, provider_id: str, weight: float) -> None:
        if provider_id in self.providers:
            return
        self.providers.append(provider_id)
        self.weight += weight


class ClaimGroups:
    """Claims grouped by normalized key in first-seen order."""

    def __init__(self, groups: dict[str, _ClaimGroup]) -> None:
        self._groups = groups

    @classmethod
    def from_claims(
        cls,
        claims_by_provider: Mapping[str, Sequence[Claim]],
        weights: Mapping[str, float] | None = None,
    ) -> ClaimGroups:
        groups: dict[str, _ClaimGroup] = {}
        weights = weights or {}
        for provider_id, claims in claims_by_provider.items():
            weight = float(weights.get(provider_id, 1.0))
            for claim in claims:
                group = groups.get(claim.normalized_key)
                if group is None:
                    group = _ClaimGroup(
                        key=claim.normalized_key, claim=claim, stable_index=len(groups)
                    )
                    groups[claim.normalized_key] = group
                group.record(provider_id, weight)
        return cls(groups)

    def __len__(self) -> int:
        return len(self._groups)

    def values(self) -> Sequence[_ClaimGroup]:
        return tuple(self._groups.values())


@dataclass(frozen=True)
class Synthesis:
    content: str
    verdicts: tuple[ClaimVerdict, ...] = ()

    @property
    def facts_verified(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.accepted)

    @property
    def facts_rejected(self) -> int:
        return sum(1 for verdict in self.verdicts if not verdict.accepted)

    @property
    def accepted(self) -> tuple[ClaimVerdict, ...]:
        return tuple(verdict for verdict in self.verdicts if verdict.accepted)


def _normalize_response_text(text: str) -> str:
    stripped = text.strip()
    if not stripped:
        return ""
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        return " ".join(stripped.split()).lower()
    return json.dumps(parsed, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class CrossVerificationSynthesizer:
    """Turn per-provider claims and outcomes into verdicts and final content."""

    def verify(
        self,
        claims_by_provider: Mapping[str, Sequence[Claim]],
        config: ExecutionConfig,
        *,
        successful_providers: Sequence[str],
    ) -> tuple[ClaimVerdict, ...]:
        weighted = config.method is SynthesisMethod.WEIGHTED_VOTE
        weights = config.provider_weights if weighted else None
        groups = ClaimGroups.from_claims(claims_by_provider, weights)
        if weighted:
            denominator = sum(config.weight_for(pid) for pid in successful_providers)
        else:
            denominator = float(len(successful_providers))
        single = len(successful_providers) == 1

        verdicts: list[ClaimVerdict] = []
        for group in groups.values():
            if denominator > 0:
                numerator = group.weight if weighted else float(len(group.providers))
                ratio = min(1.0, numerator / denominator)
                accepted = (
                    single
                    or ratio >= config.consensus_threshold
                    or math.isclose(ratio, config.consensus_threshold, abs_tol=_RATIO_TOLERANCE)
                )
            else:
                # zero total weight rejects every claim, even at threshold 0
                ratio = 0.0
                accepted = single
            verdicts.append(
                ClaimVerdict(
                    claim=group.claim,
                    supporting_providers=frozenset(group.providers),
                    agreement_ratio=ratio,
                    accepted=accepted,
                )
            )
        return tuple(verdicts)

    def synthesize(
        self,
        claims_by_provider: Mapping[str, Sequence[Claim]],
        config: ExecutionConfig,
        *,
        outcomes: Sequence[ProviderOutcome],
    ) -> Synthesis:
        successes = successful_outcomes(outcomes)
        if not successes:
            raise NoSuccessfulProviders(config.min_providers, outcomes=outcomes)

        if config.verification_enabled:
            verdicts = self.verify(
                claims_by_provider,
                config,
                successful_providers=[outcome.provider_id for outcome in successes],
            )
        else:
            verdicts = ()
        method = config.method
        if method in (SynthesisMethod.CROSS_VERIFICATION, SynthesisMethod.WEIGHTED_VOTE):
            content = _assemble_claims(verdicts)
        elif method is SynthesisMethod.WEIGHTED_MERGE:
            content = _weighted_merge(claims_by_provider, verdicts, successes, config)
        elif method is SynthesisMethod.LONGEST_COMMON_SUBSEQUENCE:
            content = _common_claims(verdicts, successes)
        elif method is SynthesisMethod.FIRST_SUCCESS:
            content = successes[0].content or ""
        elif method is SynthesisMethod.CONCATENATE:
            content = config.concatenate_separator.join(
                outcome.content or "" for outcome in successes
            )
        elif method is SynthesisMethod.BEST_OF_N:
            content = _best_of_n(successes).content or ""
        elif method is SynthesisMethod.MAJORITY_VOTE:
            content = _majority_vote(successes).content or ""
        else:  # pragma: no cover - exhaustive enum
            raise ValueError(f"unsupported synthesis method: {method!r}")

        if config.include_failed_in_output:
            content = _append_failures(content, outcomes)
        synthesis = Synthesis(content=content, verdicts=verdicts)
        LOGGER.debug(
            "synthesized %s: %d verified, %d rejected",
            method.value,
            synthesis.facts_verified,
            synthesis.facts_rejected,
        )
        return synthesis


def _assemble_claims(verdicts: Sequence[ClaimVerdict]) -> str:
    ranked = sorted(
        ((index, verdict) for index, verdict in enumerate(verdicts) if verdict.accepted),
        key=lambda item: (-item[1].agreement_ratio, item[0]),
    )
    return " ".join(verdict.claim.text for _, verdict in ranked)


def _weighted_merge(
    claims_by_provider: Mapping[str, Sequence[Claim]],
    verdicts: Sequence[ClaimVerdict],
    successes: Sequence[ProviderOutcome],
    config: ExecutionConfig,
) -> str:
    """Rank every claim by accumulated provider weight, speed and agreement.

    Each supporting provider adds ``weight * 1 / (latency_s + 0.1) *
    max(agreement, 0.1)``. Claims are ordered by descending total, then
    first-seen order, and capped at ``max_claims_per_response``.
    """

    agreement = {verdict.claim.normalized_key: verdict.agreement_ratio for verdict in verdicts}
    speed = {
        outcome.provider_id: 1.0 / (outcome.latency_ms / 1000.0 + _MERGE_LATENCY_OFFSET_S)
        for outcome in successes
    }
    totals: dict[str, float] = {}
    texts: dict[str, str] = {}
    for provider_id, claims in claims_by_provider.items():
        if provider_id not in speed:
            continue
        provider_factor = config.weight_for(provider_id) * speed[provider_id]
        for claim in claims:
            key = claim.normalized_key
            texts.setdefault(key, claim.text)
            support = max(agreement.get(key, 0.0), _MERGE_AGREEMENT_FLOOR)
            totals[key] = totals.get(key, 0.0) + provider_factor * support
    ranked = sorted(enumerate(totals.items()), key=lambda item: (-item[1][1], item[0]))
    if config.max_claims_per_response is not None:
        ranked = ranked[: config.max_claims_per_response]
    return " ".join(texts[key] for _, (key, _) in ranked)


def _common_claims(
    verdicts: Sequence[ClaimVerdict], successes: Sequence[ProviderOutcome]
) -> str:
    """Claims made by every successful provider, in first-seen order.

    Falls back to the first successful response when no claim is shared.
    """

    everyone = len(successes)
    shared = [verdict.claim.text for verdict in verdicts if verdict.support == everyone]
    if not shared:
        return successes[0].content or ""
    return " ".join(shared)


def _append_failures(content: str, outcomes: Sequence[ProviderOutcome]) -> str:
    failed = [outcome for outcome in outcomes if not outcome.ok]
    if not failed:
        return content
    lines = ["Failed providers:"]
    lines.extend(f"- {outcome.provider_id}: {outcome.describe_status()}" for outcome in failed)
    note = "\n".join(lines)
    return f"{content}\n\n{note}" if content else note


def _best_of_n(successes: Sequence[ProviderOutcome]) -> ProviderOutcome:
    # min() keeps the first of equal latencies, i.e. completion order
    return min(successes, key=lambda outcome: outcome.latency_ms)


def _majority_vote(successes: Sequence[ProviderOutcome]) -> ProviderOutcome:
    groups: dict[str, list[ProviderOutcome]] = {}
    for outcome in successes:
        groups.setdefault(_normalize_response_text(outcome.content or ""), []).append(outcome)
    pivot = max(len(members) for members in groups.values())
    for members in groups.values():
        if len(members) == pivot:
            return members[0]
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["ClaimGroups", "CrossVerificationSynthesizer", "Synthesis"]
