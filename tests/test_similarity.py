from __future__ import annotations

import pytest

from llm_consensus.config import ExecutionConfig
from llm_consensus.models import OutcomeStatus, ProviderCall, ProviderOutcome
from llm_consensus.similarity import (
    ResponseSimilarity,
    similarity_matrix,
    text_similarity,
    word_set,
)


def _outcomes(*entries: tuple[str, str | None]) -> list[ProviderOutcome]:
    outcomes = []
    for index, (pid, text) in enumerate(entries):
        call = ProviderCall(provider_id=pid, model="m", index=index, started_at=0.0)
        if text is None:
            outcomes.append(ProviderOutcome.failure(call, OutcomeStatus.TIMEOUT, 10))
        else:
            outcomes.append(ProviderOutcome.success(call, text, 10))
    return outcomes


def test_word_set_ignores_short_words_and_punctuation() -> None:
    assert word_set("The Moon is Earth's natural satellite!") == frozenset(
        {"the", "moon", "earth", "natural", "satellite"}
    )


def test_text_similarity_separates_related_and_unrelated_texts() -> None:
    related = text_similarity(
        "The Moon is Earth's natural satellite",
        "The Moon is the natural satellite of Earth",
    )
    unrelated = text_similarity("The Moon is Earth's satellite", "Bananas are yellow fruits")

    assert related > 0.5
    assert unrelated < 0.2


def test_texts_without_words_have_zero_similarity() -> None:
    assert text_similarity("a b", "?!") == 0.0


def test_similarity_matrix_is_symmetric() -> None:
    matrix = similarity_matrix(["alpha beta gamma", "beta gamma delta", "alpha beta gamma"])

    assert matrix[0][0] == 1.0
    assert matrix[0][2] == 1.0
    assert matrix[0][1] == pytest.approx(0.5)
    assert all(matrix[i][j] == matrix[j][i] for i in range(3) for j in range(3))


def test_clusters_grow_from_first_unclustered_response() -> None:
    outcomes = _outcomes(
        ("a", "alpha beta gamma delta"),
        ("b", "alpha beta gamma epsilon"),
        ("c", "zeta theta iota kappa"),
        ("d", "alpha beta gamma delta"),
    )

    report = ResponseSimilarity().analyze(outcomes)

    assert [cluster.provider_ids for cluster in report.clusters] == [("a", "b", "d"), ("c",)]
    assert report.clusters[0].representative_content == "alpha beta gamma delta"
    assert report.clusters[0].similarity_score == pytest.approx((0.6 + 1.0 + 0.6) / 3)
    assert report.clusters[1].similarity_score == 1.0
    assert report.largest_cluster is report.clusters[0]


def test_outliers_fall_below_half_the_threshold() -> None:
    outcomes = _outcomes(
        ("a", "The sky is blue due to Rayleigh scattering."),
        ("b", "The sky appears blue because of light scattering."),
        ("c", None),
        ("outlier", "Pizza is delicious with extra cheese and pepperoni."),
    )

    report = ResponseSimilarity().analyze(outcomes)

    assert report.provider_ids == ("a", "b", "outlier")
    assert report.outliers == ("outlier",)


def test_single_response_is_never_an_outlier() -> None:
    report = ResponseSimilarity().analyze(_outcomes(("only", "Anything at all.")))

    assert report.outliers == ()
    assert [cluster.provider_ids for cluster in report.clusters] == [("only",)]


def test_threshold_comes_from_config() -> None:
    outcomes = _outcomes(("a", "alpha beta gamma delta"), ("b", "alpha beta gamma epsilon"))

    strict = ResponseSimilarity.from_config(ExecutionConfig(similarity_threshold=0.9))

    assert strict.threshold == 0.9
    assert len(strict.analyze(outcomes).clusters) == 2
    assert len(ResponseSimilarity().analyze(outcomes).clusters) == 1


def test_threshold_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        ResponseSimilarity(1.5)
