"""Response-level word overlap: similarity matrix, clusters and outliers."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
import re

from .config import DEFAULT_SIMILARITY_THRESHOLD, ExecutionConfig
from .models import ProviderOutcome, ResponseCluster, successful_outcomes

LOGGER = logging.getLogger(__name__)

_WORD = re.compile(r"[^\W_]+")
_MIN_WORD_CHARS = 3
_OUTLIER_FACTOR = 0.5


def word_set(text: str) -> frozenset[str]:
    """Lowercased alphanumeric words of at least three characters."""

    words = _WORD.findall(text.lower())
    return frozenset(word for word in words if len(word) >= _MIN_WORD_CHARS)


def _jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    union = len(left | right)
    if union == 0:
        return 0.0
    return len(left & right) / union


def text_similarity(left: str, right: str) -> float:
    return _jaccard(word_set(left), word_set(right))


def similarity_matrix(texts: Sequence[str]) -> tuple[tuple[float, ...], ...]:
    words = [word_set(text) for text in texts]
    size = len(words)
    rows = [[0.0] * size for _ in range(size)]
    for i in range(size):
        for j in range(i, size):
            value = _jaccard(words[i], words[j])
            rows[i][j] = value
            rows[j][i] = value
    return tuple(tuple(row) for row in rows)


@dataclass(frozen=True)
class SimilarityReport:
    provider_ids: tuple[str, ...]
    matrix: tuple[tuple[float, ...], ...]
    clusters: tuple[ResponseCluster, ...]
    outliers: tuple[str, ...]

    @property
    def largest_cluster(self) -> ResponseCluster | None:
        if not self.clusters:
            return None
        # max() keeps the first of equal sizes
        return max(self.clusters, key=lambda cluster: cluster.size)


class ResponseSimilarity:
    """Compare whole successful responses by Jaccard overlap of their words.

    Clustering is greedy in completion order: each unclustered response
    seeds a cluster and absorbs every later unclustered response whose
    similarity to the seed meets ``threshold``. A response is an outlier
    when its mean similarity to the other responses is below half the
    threshold; with fewer than two responses nothing is an outlier.
    """

    def __init__(self, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")
        self._threshold = threshold

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> ResponseSimilarity:
        return cls(config.similarity_threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    def analyze(self, outcomes: Sequence[ProviderOutcome]) -> SimilarityReport:
        successes = successful_outcomes(outcomes)
        ids = tuple(outcome.provider_id for outcome in successes)
        texts = [outcome.content or "" for outcome in successes]
        matrix = similarity_matrix(texts)
        report = SimilarityReport(
            provider_ids=ids,
            matrix=matrix,
            clusters=self.cluster(ids, texts, matrix),
            outliers=self.outliers(ids, matrix),
        )
        if report.outliers:
            LOGGER.debug("outlier responses: %s", ", ".join(report.outliers))
        return report

    def cluster(
        self,
        provider_ids: Sequence[str],
        texts: Sequence[str],
        matrix: Sequence[Sequence[float]],
    ) -> tuple[ResponseCluster, ...]:
        size = len(provider_ids)
        visited = [False] * size
        clusters: list[ResponseCluster] = []
        for seed in range(size):
            if visited[seed]:
                continue
            visited[seed] = True
            members = [seed]
            for other in range(seed + 1, size):
                if not visited[other] and matrix[seed][other] >= self._threshold:
                    members.append(other)
                    visited[other] = True
            clusters.append(
                ResponseCluster(
                    provider_ids=tuple(provider_ids[index] for index in members),
                    representative_content=texts[seed],
                    similarity_score=_mean_pairwise(members, matrix),
                )
            )
        return tuple(clusters)

    def outliers(
        self, provider_ids: Sequence[str], matrix: Sequence[Sequence[float]]
    ) -> tuple[str, ...]:
        size = len(provider_ids)
        if size < 2:
            return ()
        cutoff = self._threshold * _OUTLIER_FACTOR
        flagged = []
        for index in range(size):
            others = (matrix[index][other] for other in range(size) if other != index)
            mean = sum(others) / (size - 1)
            if mean < cutoff:
                flagged.append(provider_ids[index])
        return tuple(flagged)


def _mean_pairwise(members: Sequence[int], matrix: Sequence[Sequence[float]]) -> float:
    if len(members) < 2:
        return 1.0
    pairs = [
        matrix[left][right]
        for position, left in enumerate(members)
        for right in members[position + 1 :]
    ]
    return sum(pairs) / len(pairs)


__all__ = [
    "ResponseSimilarity",
    "SimilarityReport",
    "similarity_matrix",
    "text_similarity",
    "word_set",
]
