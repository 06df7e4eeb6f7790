from __future__ import annotations

from pathlib import Path
import textwrap

import pytest

from llm_consensus.config import ExecutionConfig, SynthesisMethod, WaitPolicy
from llm_consensus.config_loader import (
    apply_env_overrides,
    load_config,
    parse_config,
    resolve_factory,
)
from llm_consensus.errors import ConfigError
from llm_consensus.providers.mock import MockProvider


def make_test_provider(*, name: str, model: str | None = None, text: str = "Hi.") -> MockProvider:
    return MockProvider(name, text, model=model or "factory-model")


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "consensus.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_load_config_builds_execution_and_providers(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        f"""
        execution:
          timeout_s: 12
          min_providers: 1
          synthesis_method: weighted_vote
          consensus_threshold: 0.5
          wait_mode: {{mode: wait_for_quorum, count: 2}}
          provider_weights: {{factory: 2.0}}
        providers:
          - id: echo
            type: mock
            text: "The sky is blue."
          - id: factory
            factory: "{__name__}:make_test_provider"
            options: {{text: "From factory."}}
        """,
    )

    loaded = load_config(path, environ={})

    assert loaded.path == path
    assert loaded.execution.timeout_s == 12.0
    assert loaded.execution.method is SynthesisMethod.WEIGHTED_VOTE
    assert loaded.execution.wait_policy == WaitPolicy.quorum(2)
    assert loaded.execution.weight_for("factory") == 2.0
    assert loaded.provider_ids == ("echo", "factory")
    echo, factory = loaded.providers
    assert echo.name() == "echo"
    assert factory.name() == "factory"
    assert getattr(factory, "model") == "factory-model"


def test_wait_mode_string_form(tmp_path: Path) -> None:
    path = _write(tmp_path, "execution:\n  wait_mode: first:2\n")

    assert load_config(path, environ={}).execution.wait_policy == WaitPolicy.first(2)


def test_unknown_keys_are_reported_per_field(tmp_path: Path) -> None:
    path = _write(tmp_path, "execution:\n  timeout: 3\n")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path, environ={})

    assert "execution.timeout" in str(excinfo.value)


def test_provider_requires_exactly_one_source() -> None:
    with pytest.raises(ConfigError):
        parse_config({"providers": [{"id": "x"}]}, environ={})
    with pytest.raises(ConfigError):
        parse_config(
            {"providers": [{"id": "x", "type": "mock", "factory": "a:b"}]}, environ={}
        )


def test_duplicate_provider_ids_are_rejected() -> None:
    data = {"providers": [{"id": "x", "type": "mock"}, {"id": "x", "type": "mock"}]}

    with pytest.raises(ConfigError, match="duplicate"):
        parse_config(data, environ={})


def test_invalid_yaml_and_missing_file(tmp_path: Path) -> None:
    broken = _write(tmp_path, "execution: [unclosed\n")

    with pytest.raises(ConfigError):
        load_config(broken, environ={})
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml", environ={})


def test_semantic_errors_surface_as_config_errors() -> None:
    with pytest.raises(ConfigError):
        parse_config({"execution": {"synthesis_method": "telepathy"}}, environ={})


def test_env_overrides_apply_on_top_of_file() -> None:
    env = {
        "LLM_CONSENSUS_TIMEOUT": "7.5",
        "LLM_CONSENSUS_MIN_PROVIDERS": "3",
        "LLM_CONSENSUS_THRESHOLD": "0.9",
        "LLM_CONSENSUS_SYNTHESIS": "concatenate",
        "LLM_CONSENSUS_WAIT": "quorum:3",
    }

    config = apply_env_overrides(ExecutionConfig(), env)

    assert config.timeout_s == 7.5
    assert config.min_providers == 3
    assert config.consensus_threshold == pytest.approx(0.9)
    assert config.method is SynthesisMethod.CONCATENATE
    assert config.wait_policy == WaitPolicy.quorum(3)


def test_env_override_with_bad_number() -> None:
    with pytest.raises(ConfigError, match="LLM_CONSENSUS_TIMEOUT"):
        apply_env_overrides(ExecutionConfig(), {"LLM_CONSENSUS_TIMEOUT": "soon"})


def test_env_overrides_read_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_CONSENSUS_THRESHOLD", "0.25")

    assert apply_env_overrides(ExecutionConfig()).consensus_threshold == pytest.approx(0.25)


def test_resolve_factory_errors() -> None:
    with pytest.raises(ConfigError):
        resolve_factory("no_colon")
    with pytest.raises(ConfigError):
        resolve_factory("llm_consensus_missing_module:thing")
    with pytest.raises(ConfigError):
        resolve_factory("llm_consensus.config:DoesNotExist")
    with pytest.raises(ConfigError):
        resolve_factory("llm_consensus.config:DEFAULT_TIMEOUT_S")


def test_verification_and_output_flags_are_loaded(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
        execution:
          synthesis_method: best_of_n
          verification_enabled: false
          include_failed_in_output: true
          similarity_threshold: 0.45
        providers: []
        """,
    )

    execution = load_config(path, environ={}).execution

    assert not execution.verification_enabled
    assert execution.include_failed_in_output
    assert execution.similarity_threshold == pytest.approx(0.45)


def test_disabled_verification_with_cross_verification_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "execution:\n  verification_enabled: false\n")

    with pytest.raises(ConfigError, match="requires verification_enabled"):
        load_config(path, environ={})
