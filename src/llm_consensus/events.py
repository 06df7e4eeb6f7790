"""Builders for the structured events the engine emits."""
from __future__ import annotations

from collections.abc import Sequence

from .config import ExecutionConfig
from .models import ExecutionResult, ProviderOutcome
from .observability import EventLogger, safe_emit

PROVIDER_OUTCOME_EVENT = "provider_outcome"
CONSENSUS_EXECUTION_EVENT = "consensus_execution"


def log_provider_outcome(
    logger: EventLogger | None,
    *,
    execution_id: str,
    outcome: ProviderOutcome,
    authoritative: bool = True,
) -> None:
    safe_emit(
        logger,
        PROVIDER_OUTCOME_EVENT,
        {
            "execution_id": execution_id,
            "provider": outcome.provider_id,
            "model": outcome.model,
            "status": outcome.status.value,
            "latency_ms": outcome.latency_ms,
            "error_message": outcome.error,
            "authoritative": authoritative,
        },
    )


def log_provider_outcomes(
    logger: EventLogger | None,
    *,
    execution_id: str,
    outcomes: Sequence[ProviderOutcome],
    cancelled: Sequence[ProviderOutcome] = (),
) -> None:
    for outcome in outcomes:
        log_provider_outcome(logger, execution_id=execution_id, outcome=outcome)
    for outcome in cancelled:
        log_provider_outcome(
            logger, execution_id=execution_id, outcome=outcome, authoritative=False
        )


def log_execution(
    logger: EventLogger | None,
    *,
    execution_id: str,
    config: ExecutionConfig,
    prompt_hash: str,
    latency_ms: int,
    providers_total: int,
    result: ExecutionResult | None = None,
    error: BaseException | None = None,
    providers_succeeded: int | None = None,
) -> None:
    """Emit the ``consensus_execution`` summary for a finished execution.

    Exactly one of ``result`` or ``error`` describes how it ended.
    """

    record: dict[str, object] = {
        "execution_id": execution_id,
        "status": "ok" if error is None else type(error).__name__,
        "synthesis_method": config.method.value,
        "consensus_score": None,
        "facts_verified": None,
        "facts_rejected": None,
        "providers_total": providers_total,
        "providers_succeeded": providers_succeeded,
        "terminated_by": None,
        "outliers": None,
        "latency_ms": latency_ms,
        "prompt_hash": prompt_hash,
    }
    if result is not None:
        record.update(
            consensus_score=result.consensus_score,
            facts_verified=result.facts_verified,
            facts_rejected=result.facts_rejected,
            providers_succeeded=result.success_count,
            terminated_by=result.terminated_by.value,
            outliers=list(result.outliers),
        )
    if error is not None:
        record["error_message"] = str(error)
    safe_emit(logger, CONSENSUS_EXECUTION_EVENT, record)


__all__ = [
    "CONSENSUS_EXECUTION_EVENT",
    "PROVIDER_OUTCOME_EVENT",
    "log_execution",
    "log_provider_outcome",
    "log_provider_outcomes",
]
