"""Orchestration of dispatch, collection, cross-verification and scoring."""
from __future__ import annotations

import asyncio
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
import logging
import time
import uuid

from .claims import ClaimExtractor
from .collector import Collection, ResponseCollector
from .config import ExecutionConfig
from .dispatcher import dispatch
from .errors import FatalError, InsufficientProviders, NoProvidersConfigured, NoSuccessfulProviders
from .events import log_execution, log_provider_outcomes
from .models import ExecutionResult, latency_extremes
from .observability import EventLogger
from .provider_spi import AsyncProviderSPI, ProviderSPI
from .scoring import ConsensusScorer
from .similarity import ResponseSimilarity
from .synthesizer import CrossVerificationSynthesizer
from .utils import content_hash, elapsed_ms

LOGGER = logging.getLogger(__name__)


class AsyncConsensusEngine:
    """Fan a prompt out to every provider and cross-verify what comes back."""

    def __init__(
        self,
        providers: Sequence[ProviderSPI | AsyncProviderSPI],
        logger: EventLogger | None = None,
        *,
        config: ExecutionConfig | None = None,
        extractor: ClaimExtractor | None = None,
        synthesizer: CrossVerificationSynthesizer | None = None,
        scorer: ConsensusScorer | None = None,
    ) -> None:
        self.providers: tuple[ProviderSPI | AsyncProviderSPI, ...] = tuple(providers)
        self._logger = logger
        self._config = config or ExecutionConfig()
        self._extractor = extractor
        self._collector = ResponseCollector()
        self._synthesizer = synthesizer or CrossVerificationSynthesizer()
        self._scorer = scorer or ConsensusScorer()

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    async def execute_async(
        self, prompt: str, config: ExecutionConfig | None = None
    ) -> ExecutionResult:
        cfg = config or self._config
        execution_id = uuid.uuid4().hex
        prompt_hash = content_hash(prompt)
        started = time.monotonic()
        collection: Collection | None = None
        try:
            collection = await self._collect(prompt, cfg)
            log_provider_outcomes(
                self._logger,
                execution_id=execution_id,
                outcomes=collection.outcomes,
                cancelled=collection.cancelled,
            )
            result = self._build_result(collection, cfg, started)
        except FatalError as exc:
            LOGGER.warning("execution %s failed: %s", execution_id, exc)
            log_execution(
                self._logger,
                execution_id=execution_id,
                config=cfg,
                prompt_hash=prompt_hash,
                latency_ms=elapsed_ms(started),
                providers_total=len(self.providers),
                providers_succeeded=collection.success_count if collection else 0,
                error=exc,
            )
            raise

        LOGGER.info(
            "execution %s finished: score=%.2f method=%s providers=%d/%d (%s)",
            execution_id,
            result.consensus_score,
            result.synthesis_method.value,
            result.success_count,
            len(self.providers),
            result.terminated_by.value,
        )
        log_execution(
            self._logger,
            execution_id=execution_id,
            config=cfg,
            prompt_hash=prompt_hash,
            latency_ms=result.total_latency_ms,
            providers_total=len(self.providers),
            result=result,
        )
        return result

    async def _collect(self, prompt: str, config: ExecutionConfig) -> Collection:
        if not self.providers:
            raise NoProvidersConfigured()
        stream = dispatch(prompt, self.providers, config)
        try:
            return await self._collector.collect(stream, config)
        finally:
            await stream.aclose()

    def _build_result(
        self, collection: Collection, config: ExecutionConfig, started: float
    ) -> ExecutionResult:
        outcomes = collection.outcomes
        success_count = collection.success_count
        if success_count == 0:
            raise NoSuccessfulProviders(
                config.min_providers, outcomes=outcomes, cancelled=collection.cancelled
            )
        if success_count < config.min_providers:
            raise InsufficientProviders(
                success_count,
                config.min_providers,
                outcomes=outcomes,
                cancelled=collection.cancelled,
            )

        if config.verification_enabled:
            extractor = self._extractor or ClaimExtractor.from_config(config)
            claims = extractor.extract_all(outcomes)
        else:
            claims = {}
        synthesis = self._synthesizer.synthesize(claims, config, outcomes=outcomes)
        score = self._scorer.score(synthesis.verdicts, outcomes, collection.cancelled)
        similarity = ResponseSimilarity.from_config(config).analyze(outcomes)
        fastest, slowest = latency_extremes(outcomes)
        return ExecutionResult(
            content=synthesis.content,
            consensus_score=score,
            synthesis_method=config.method,
            total_latency_ms=elapsed_ms(started),
            facts_verified=synthesis.facts_verified,
            facts_rejected=synthesis.facts_rejected,
            provider_outcomes=outcomes,
            verdicts=synthesis.verdicts,
            cancelled_outcomes=collection.cancelled,
            terminated_by=collection.terminated_by,
            fastest_provider=fastest,
            slowest_provider=slowest,
            clusters=similarity.clusters,
            outliers=similarity.outliers,
        )


class ConsensusEngine:
    """Blocking facade over :class:`AsyncConsensusEngine`.

    Each call runs on a private event loop whose thread pool hosts the
    synchronous providers. The pool is shut down without joining, so a
    provider that overruns its deadline cannot hold :meth:`execute` past
    ``timeout_s``; its worker thread finishes in the background and the
    late result is dropped.
    """

    def __init__(
        self,
        providers: Sequence[ProviderSPI | AsyncProviderSPI],
        logger: EventLogger | None = None,
        *,
        config: ExecutionConfig | None = None,
    ) -> None:
        self._engine = AsyncConsensusEngine(providers, logger, config=config)

    @property
    def providers(self) -> tuple[ProviderSPI | AsyncProviderSPI, ...]:
        return self._engine.providers

    @property
    def config(self) -> ExecutionConfig:
        return self._engine.config

    def execute(self, prompt: str, config: ExecutionConfig | None = None) -> ExecutionResult:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            raise RuntimeError(
                "ConsensusEngine.execute cannot run inside an event loop; "
                "use AsyncConsensusEngine.execute_async"
            )

        loop = asyncio.new_event_loop()
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(self.providers)), thread_name_prefix="llm-consensus"
        )
        loop.set_default_executor(executor)
        try:
            return loop.run_until_complete(self._engine.execute_async(prompt, config))
        finally:
            try:
                _cancel_pending(loop)
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                executor.shutdown(wait=False)
                loop.close()


def _cancel_pending(loop: asyncio.AbstractEventLoop) -> None:
    pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
    if not pending:
        return
    for task in pending:
        task.cancel()
    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))


__all__ = ["AsyncConsensusEngine", "ConsensusEngine"]
