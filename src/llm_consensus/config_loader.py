"""Loading of consensus config files and environment overrides."""
from __future__ import annotations

from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, replace
import importlib
import logging
import os
from pathlib import Path
from typing import Any, cast

from pydantic import ValidationError
import yaml

from .config import ExecutionConfig, WaitPolicy
from .errors import ConfigError
from .provider_spi import AsyncProviderSPI, ProviderSPI
from .providers.mock import MockProvider
from .schema import ConsensusFileModel, ExecutionConfigModel, ProviderEntryModel

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "LLM_CONSENSUS_"

Provider = ProviderSPI | AsyncProviderSPI


@dataclass(frozen=True)
class LoadedConfig:
    path: Path | None
    execution: ExecutionConfig
    providers: tuple[Provider, ...]
    provider_entries: tuple[ProviderEntryModel, ...] = ()

    @property
    def provider_ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.provider_entries)


def _format_validation_error(path: Path | None, exc: ValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part is not None)
        message = error.get("msg", "unknown error")
        if location:
            details.append(f"{location}: {message}")
        else:
            details.append(message)
    summary = "; ".join(details)
    source = f" ({path})" if path is not None else ""
    return f"invalid consensus config{source}: {summary}"


def _load_yaml(path: Path) -> MutableMapping[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"config file must contain a mapping: {path}")
    return cast(MutableMapping[str, object], data)


def build_execution_config(model: ExecutionConfigModel) -> ExecutionConfig:
    wait_mode = model.wait_mode
    if isinstance(wait_mode, str):
        policy = WaitPolicy.parse(wait_mode)
    else:
        spec = wait_mode.mode if wait_mode.count is None else f"{wait_mode.mode}:{wait_mode.count}"
        policy = WaitPolicy.parse(spec)
    return ExecutionConfig(
        timeout_s=model.timeout_s,
        min_providers=model.min_providers,
        synthesis_method=model.synthesis_method,
        consensus_threshold=model.consensus_threshold,
        wait_mode=policy,
        provider_weights=model.provider_weights,
        max_claims_per_response=model.max_claims_per_response,
        min_claim_chars=model.min_claim_chars,
        max_concurrency=model.max_concurrency,
        concatenate_separator=model.concatenate_separator,
        similarity_threshold=model.similarity_threshold,
        verification_enabled=model.verification_enabled,
        include_failed_in_output=model.include_failed_in_output,
    )


def _coerce(name: str, raw: str, convert: Callable[[str], Any]) -> Any:
    try:
        return convert(raw)
    except ValueError as exc:
        raise ConfigError(f"invalid value for {ENV_PREFIX}{name}: {raw!r}") from exc


def apply_env_overrides(
    config: ExecutionConfig, environ: Mapping[str, str] | None = None
) -> ExecutionConfig:
    """Return ``config`` with ``LLM_CONSENSUS_*`` variables applied."""

    env = os.environ if environ is None else environ
    changes: dict[str, Any] = {}
    if raw := env.get(f"{ENV_PREFIX}TIMEOUT"):
        changes["timeout_s"] = _coerce("TIMEOUT", raw, float)
    if raw := env.get(f"{ENV_PREFIX}MIN_PROVIDERS"):
        changes["min_providers"] = _coerce("MIN_PROVIDERS", raw, int)
    if raw := env.get(f"{ENV_PREFIX}THRESHOLD"):
        changes["consensus_threshold"] = _coerce("THRESHOLD", raw, float)
    if raw := env.get(f"{ENV_PREFIX}SYNTHESIS"):
        changes["synthesis_method"] = raw
    if raw := env.get(f"{ENV_PREFIX}WAIT"):
        changes["wait_mode"] = raw
    if not changes:
        return config
    LOGGER.debug("applying environment overrides: %s", sorted(changes))
    return replace(config, **changes)


def resolve_factory(spec: str) -> Callable[..., Provider]:
    module_name, _, attribute = spec.partition(":")
    if not module_name or not attribute:
        raise ConfigError(f"factory must be a 'module:attribute' import string: {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import provider factory module {module_name!r}: {exc}") from exc
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ConfigError(f"provider factory {spec!r} not found") from exc
    if not callable(target):
        raise ConfigError(f"provider factory {spec!r} is not callable")
    return cast(Callable[..., Provider], target)


def build_provider(entry: ProviderEntryModel) -> Provider:
    if entry.type == "mock":
        return MockProvider(
            entry.id,
            entry.text,
            model=entry.model or "mock",
            latency_ms=entry.latency_ms,
        )
    assert entry.factory is not None
    factory = resolve_factory(entry.factory)
    kwargs: dict[str, Any] = dict(entry.options)
    kwargs["name"] = entry.id
    if entry.model is not None:
        kwargs["model"] = entry.model
    try:
        return factory(**kwargs)
    except ConfigError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(
            f"provider factory {entry.factory!r} failed for {entry.id!r}: {exc}"
        ) from exc


def parse_config(
    data: Mapping[str, object],
    *,
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LoadedConfig:
    try:
        model = ConsensusFileModel.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(path, exc)) from None
    execution = apply_env_overrides(build_execution_config(model.execution), environ)
    ids = [entry.id for entry in model.providers]
    duplicates = sorted({pid for pid in ids if ids.count(pid) > 1})
    if duplicates:
        raise ConfigError(f"duplicate provider ids: {', '.join(duplicates)}")
    providers = tuple(build_provider(entry) for entry in model.providers)
    return LoadedConfig(
        path=path,
        execution=execution,
        providers=providers,
        provider_entries=tuple(model.providers),
    )


def load_config(
    path: str | Path, *, environ: Mapping[str, str] | None = None
) -> LoadedConfig:
    """Read, validate and materialize the config file at ``path``."""

    path = Path(path)
    loaded = parse_config(_load_yaml(path), path=path, environ=environ)
    LOGGER.debug("loaded %d providers from %s", len(loaded.providers), path)
    return loaded


__all__ = [
    "ENV_PREFIX",
    "LoadedConfig",
    "apply_env_overrides",
    "build_execution_config",
    "build_provider",
    "load_config",
    "parse_config",
    "resolve_factory",
]
