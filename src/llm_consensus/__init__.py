"""Parallel multi-provider execution with claim-level cross-verification."""

from __future__ import annotations

from .claims import ClaimExtractor, normalize_claim, split_sentences
from .collector import Collection, ResponseCollector
from .config import ExecutionConfig, SynthesisMethod, WaitMode, WaitPolicy
from .dispatcher import ProviderDispatcher, dispatch
from .engine import AsyncConsensusEngine, ConsensusEngine
from .errors import (
    ConfigError,
    ConsensusError,
    FatalError,
    InsufficientProviders,
    NoProvidersConfigured,
    NoSuccessfulProviders,
    ProviderError,
    ProviderTimeout,
)
from .models import (
    Claim,
    ClaimVerdict,
    ExecutionResult,
    OutcomeStatus,
    ProviderCall,
    ProviderOutcome,
    ResponseCluster,
    TerminationReason,
)
from .observability import CompositeLogger, EventLogger, JsonlLogger, StdLogger
from .provider_spi import AsyncProviderSPI, ProviderSPI, ensure_async_provider
from .scoring import ConsensusScorer
from .similarity import ResponseSimilarity, SimilarityReport
from .synthesizer import CrossVerificationSynthesizer, Synthesis

__version__ = "0.1.0"

__all__ = [
    "AsyncConsensusEngine",
    "AsyncProviderSPI",
    "Claim",
    "ClaimExtractor",
    "ClaimVerdict",
    "Collection",
    "CompositeLogger",
    "ConfigError",
    "ConsensusEngine",
    "ConsensusError",
    "ConsensusScorer",
    "CrossVerificationSynthesizer",
    "EventLogger",
    "ExecutionConfig",
    "ExecutionResult",
    "FatalError",
    "InsufficientProviders",
    "JsonlLogger",
    "NoProvidersConfigured",
    "NoSuccessfulProviders",
    "OutcomeStatus",
    "ProviderCall",
    "ProviderDispatcher",
    "ProviderError",
    "ProviderOutcome",
    "ProviderSPI",
    "ProviderTimeout",
    "ResponseCluster",
    "ResponseCollector",
    "ResponseSimilarity",
    "SimilarityReport",
    "StdLogger",
    "Synthesis",
    "SynthesisMethod",
    "TerminationReason",
    "WaitMode",
    "WaitPolicy",
    "dispatch",
    "ensure_async_provider",
    "normalize_claim",
    "split_sentences",
]
