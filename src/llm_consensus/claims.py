"""Sentence-level claim extraction and normalization."""
from __future__ import annotations

from collections.abc import Iterable
import re
import unicodedata

from .config import ExecutionConfig
from .models import Claim, ProviderOutcome

# a sentence runs up to terminal punctuation (plus closing quotes) followed by
# whitespace, or to the end of the line
_SENTENCE = re.compile(r"\S.*?(?:[.!?]+[\"')\]”’]*(?=\s|$)|$)")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•+>]+|\(?\d+[.)](?=\s))\s*")
_WHITESPACE = re.compile(r"\s+")


def split_sentences(text: str) -> list[str]:
    """Split ``text`` into sentences at terminal punctuation and line breaks."""

    sentences: list[str] = []
    for line in text.splitlines():
        line = _LIST_MARKER.sub("", line, count=1).strip()
        if not line:
            continue
        for match in _SENTENCE.finditer(line):
            part = match.group(0).strip()
            if part:
                sentences.append(part)
    return sentences


def normalize_claim(text: str) -> str:
    """Return the matching key for ``text``.

    NFKC-normalized, case-folded, with punctuation removed and whitespace
    collapsed. Two claims agree when their keys are equal.
    """

    folded = unicodedata.normalize("NFKC", text).casefold()
    stripped = "".join(
        " " if unicodedata.category(char).startswith("P") else char for char in folded
    )
    return _WHITESPACE.sub(" ", stripped).strip()


class ClaimExtractor:
    def __init__(self, *, min_chars: int = 0, max_claims: int | None = None) -> None:
        if min_chars < 0:
            raise ValueError("min_chars must not be negative")
        if max_claims is not None and max_claims < 1:
            raise ValueError("max_claims must be positive")
        self._min_chars = min_chars
        self._max_claims = max_claims

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> ClaimExtractor:
        return cls(
            min_chars=config.min_claim_chars,
            max_claims=config.max_claims_per_response,
        )

    def extract_text(self, text: str, provider_id: str) -> tuple[Claim, ...]:
        claims: list[Claim] = []
        seen: set[str] = set()
        for sentence in split_sentences(text):
            key = normalize_claim(sentence)
            if not key or key in seen:
                continue
            seen.add(key)
            if len(sentence) < self._min_chars:
                continue
            claims.append(
                Claim(
                    text=sentence,
                    source_provider_id=provider_id,
                    normalized_key=key,
                    position=len(claims),
                )
            )
            if self._max_claims is not None and len(claims) >= self._max_claims:
                break
        return tuple(claims)

    def extract(self, outcome: ProviderOutcome) -> tuple[Claim, ...]:
        if not outcome.ok or outcome.content is None:
            raise ValueError(
                f"claims can only be extracted from successful outcomes ({outcome.provider_id})"
            )
        return self.extract_text(outcome.content, outcome.provider_id)

    def extract_all(self, outcomes: Iterable[ProviderOutcome]) -> dict[str, tuple[Claim, ...]]:
        """Claims per successful provider, keyed in outcome order."""

        return {
            outcome.provider_id: self.extract(outcome) for outcome in outcomes if outcome.ok
        }


__all__ = ["ClaimExtractor", "normalize_claim", "split_sentences"]
