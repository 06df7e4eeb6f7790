from __future__ import annotations

import pytest

from llm_consensus.claims import ClaimExtractor, normalize_claim, split_sentences
from llm_consensus.config import ExecutionConfig
from llm_consensus.models import OutcomeStatus, ProviderCall, ProviderOutcome

_CALL = ProviderCall(provider_id="alpha", model="m", index=0, started_at=0.0)


def _success(text: str) -> ProviderOutcome:
    return ProviderOutcome.success(_CALL, text, 5)


def test_split_sentences_on_terminal_punctuation_and_lines() -> None:
    text = "The sky is blue. Water is wet!\nIs fire hot?  Yes"

    assert split_sentences(text) == ["The sky is blue.", "Water is wet!", "Is fire hot?", "Yes"]


def test_split_sentences_strips_list_markers() -> None:
    text = "- first point\n* second point\n1. third point\n2) fourth point"

    assert split_sentences(text) == [
        "first point",
        "second point",
        "third point",
        "fourth point",
    ]


def test_split_sentences_keeps_decimals_and_closing_quotes() -> None:
    text = 'Pi is about 3.14 in value. He said "stop." Then left.'

    assert split_sentences(text) == [
        "Pi is about 3.14 in value.",
        'He said "stop."',
        "Then left.",
    ]


def test_normalize_claim_folds_case_punctuation_and_whitespace() -> None:
    assert normalize_claim("  The   Sky, is BLUE!! ") == "the sky is blue"
    assert normalize_claim("Ｆｕｌｌｗｉｄｔｈ") == "fullwidth"
    assert normalize_claim("...") == ""


def test_extract_deduplicates_within_response() -> None:
    extractor = ClaimExtractor()

    claims = extractor.extract(_success("The sky is blue. the sky is BLUE! Grass is green."))

    assert [claim.text for claim in claims] == ["The sky is blue.", "Grass is green."]
    assert [claim.position for claim in claims] == [0, 1]
    assert all(claim.source_provider_id == "alpha" for claim in claims)


def test_extract_empty_content_yields_no_claims() -> None:
    assert ClaimExtractor().extract(_success("   \n\t ")) == ()


def test_extract_rejects_failed_outcomes() -> None:
    failed = ProviderOutcome.failure(_CALL, OutcomeStatus.ERROR, 3, error="boom")

    with pytest.raises(ValueError):
        ClaimExtractor().extract(failed)


def test_extract_applies_config_filters() -> None:
    config = ExecutionConfig(min_claim_chars=5, max_claims_per_response=2)
    extractor = ClaimExtractor.from_config(config)

    text = "Ok. First long claim. Second long claim. Third long claim."
    claims = extractor.extract(_success(text))

    assert [claim.text for claim in claims] == ["First long claim.", "Second long claim."]


def test_extract_all_skips_failures() -> None:
    other = ProviderCall(provider_id="beta", model="m", index=1, started_at=0.0)
    outcomes = [
        _success("A is true."),
        ProviderOutcome.failure(other, OutcomeStatus.TIMEOUT, 100),
    ]

    claims = ClaimExtractor().extract_all(outcomes)

    assert list(claims) == ["alpha"]
