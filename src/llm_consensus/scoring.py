"""Consensus score computation."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .models import ClaimVerdict, ProviderOutcome


@dataclass(frozen=True)
class ScoreBreakdown:
    provider_success_ratio: float
    claim_agreement: float

    @property
    def score(self) -> float:
        return max(0.0, min(1.0, self.provider_success_ratio * self.claim_agreement))


class ConsensusScorer:
    """``score = success_ratio * mean(agreement of accepted claims)``, clamped to [0, 1].

    ``success_ratio`` divides the successes by every dispatched provider, so
    providers cancelled by an early exit count against it. With no claims at
    all the agreement factor is 1.0; with claims but none accepted it is 0.0.
    """

    def breakdown(
        self,
        verdicts: Sequence[ClaimVerdict],
        outcomes: Sequence[ProviderOutcome],
        cancelled: Sequence[ProviderOutcome] = (),
    ) -> ScoreBreakdown:
        dispatched = len(outcomes) + len(cancelled)
        if dispatched == 0:
            return ScoreBreakdown(provider_success_ratio=0.0, claim_agreement=0.0)
        successes = sum(1 for outcome in outcomes if outcome.ok)
        success_ratio = successes / dispatched
        if not verdicts:
            agreement = 1.0
        else:
            accepted = [verdict.agreement_ratio for verdict in verdicts if verdict.accepted]
            agreement = sum(accepted) / len(accepted) if accepted else 0.0
        return ScoreBreakdown(provider_success_ratio=success_ratio, claim_agreement=agreement)

    def score(
        self,
        verdicts: Sequence[ClaimVerdict],
        outcomes: Sequence[ProviderOutcome],
        cancelled: Sequence[ProviderOutcome] = (),
    ) -> float:
        return self.breakdown(verdicts, outcomes, cancelled).score


__all__ = ["ConsensusScorer", "ScoreBreakdown"]
