from __future__ import annotations

import pytest

from helpers.fakes import _AsyncProbeProvider
from llm_consensus.collector import ResponseCollector
from llm_consensus.config import ExecutionConfig, WaitPolicy
from llm_consensus.dispatcher import ProviderDispatcher, dispatch
from llm_consensus.errors import ProviderError
from llm_consensus.models import OutcomeStatus, TerminationReason


@pytest.mark.asyncio
async def test_wait_for_all_collects_every_outcome() -> None:
    providers = [
        _AsyncProbeProvider("a"),
        _AsyncProbeProvider("b", failure=ProviderError("nope")),
        _AsyncProbeProvider("c", delay=0.02),
    ]
    config = ExecutionConfig(timeout_s=2)

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert len(collection.outcomes) == 3
    assert collection.cancelled == ()
    assert collection.terminated_by is TerminationReason.ALL_COMPLETED
    assert collection.success_count == 2


@pytest.mark.asyncio
async def test_wait_for_all_reports_timeout_termination() -> None:
    providers = [_AsyncProbeProvider("a"), _AsyncProbeProvider("b", block=True)]
    config = ExecutionConfig(timeout_s=0.05)

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert [outcome.status for outcome in collection.outcomes] == [
        OutcomeStatus.SUCCESS,
        OutcomeStatus.TIMEOUT,
    ]
    assert collection.terminated_by is TerminationReason.TIMEOUT


@pytest.mark.asyncio
async def test_quorum_stops_after_n_successes_and_cancels_rest() -> None:
    providers = [
        _AsyncProbeProvider("err", failure=ProviderError("bad")),
        _AsyncProbeProvider("one", delay=0.01),
        _AsyncProbeProvider("two", delay=0.02),
        _AsyncProbeProvider("slow", block=True),
    ]
    config = ExecutionConfig(timeout_s=2, wait_mode=WaitPolicy.quorum(2))

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert [outcome.provider_id for outcome in collection.outcomes] == ["err", "one", "two"]
    assert [outcome.provider_id for outcome in collection.cancelled] == ["slow"]
    assert collection.terminated_by is TerminationReason.QUORUM_REACHED
    assert providers[3].cancelled


@pytest.mark.asyncio
async def test_quorum_tie_within_one_wakeup_keeps_dispatch_order() -> None:
    providers = [_AsyncProbeProvider(f"p{index}") for index in range(4)]
    config = ExecutionConfig(timeout_s=2, wait_mode=WaitPolicy.quorum(2))

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert [outcome.provider_id for outcome in collection.outcomes] == ["p0", "p1"]
    assert [outcome.provider_id for outcome in collection.cancelled] == ["p2", "p3"]
    assert collection.success_count == 2


@pytest.mark.asyncio
async def test_quorum_larger_than_provider_count_is_capped() -> None:
    providers = [_AsyncProbeProvider("a"), _AsyncProbeProvider("b")]
    config = ExecutionConfig(timeout_s=2, wait_mode=WaitPolicy.quorum(5))

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert collection.success_count == 2
    assert collection.terminated_by is TerminationReason.QUORUM_REACHED


@pytest.mark.asyncio
async def test_quorum_not_reached_returns_everything() -> None:
    providers = [
        _AsyncProbeProvider("a"),
        _AsyncProbeProvider("b", failure=ProviderError("x")),
    ]
    config = ExecutionConfig(timeout_s=2, wait_mode=WaitPolicy.quorum(2))

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert len(collection.outcomes) == 2
    assert collection.terminated_by is TerminationReason.ALL_COMPLETED


@pytest.mark.asyncio
async def test_wait_for_first_counts_any_status() -> None:
    providers = [
        _AsyncProbeProvider("err", failure=ProviderError("bad")),
        _AsyncProbeProvider("ok", delay=0.02),
    ]
    config = ExecutionConfig(timeout_s=2, wait_mode=WaitPolicy.first(1))

    collection = await ResponseCollector().collect(dispatch("hi", providers, config), config)

    assert [outcome.provider_id for outcome in collection.outcomes] == ["err"]
    assert [outcome.provider_id for outcome in collection.cancelled] == ["ok"]
    assert collection.terminated_by is TerminationReason.FIRST_N_REACHED


@pytest.mark.asyncio
async def test_empty_stream_finishes_immediately() -> None:
    stream = ProviderDispatcher("hi", [], ExecutionConfig())

    collection = await ResponseCollector().collect(stream, ExecutionConfig())

    assert collection.outcomes == ()
    assert collection.cancelled == ()
