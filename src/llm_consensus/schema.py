"""Pydantic models validating consensus config files."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "ConsensusFileModel",
    "ExecutionConfigModel",
    "ProviderEntryModel",
    "WaitModeModel",
]


class WaitModeModel(BaseModel):
    """Mapping form of ``wait_mode``."""

    model_config = ConfigDict(extra="forbid")

    mode: Literal["wait_for_all", "wait_for_quorum", "wait_for_first", "all", "quorum", "first"]
    count: int | None = Field(default=None, ge=1)


class ExecutionConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timeout_s: float = Field(default=30.0, gt=0)
    min_providers: int = Field(default=2, ge=0)
    synthesis_method: str = "cross_verification"
    consensus_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    wait_mode: WaitModeModel | str = "all"
    provider_weights: dict[str, float] = Field(default_factory=dict)
    max_claims_per_response: int | None = Field(default=20, ge=1)
    min_claim_chars: int = Field(default=0, ge=0)
    max_concurrency: int | None = Field(default=None, ge=1)
    concatenate_separator: str = "\n\n"
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    verification_enabled: bool = True
    include_failed_in_output: bool = False


class ProviderEntryModel(BaseModel):
    """One provider: either an import-string ``factory`` or a built-in ``type``."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    factory: str | None = None
    type: Literal["mock"] | None = None
    model: str | None = None
    text: str | None = None
    latency_ms: int = Field(default=0, ge=0)
    options: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_source(self) -> ProviderEntryModel:
        if (self.factory is None) == (self.type is None):
            raise ValueError("exactly one of 'factory' or 'type' is required")
        if self.factory is not None and ":" not in self.factory:
            raise ValueError("factory must be a 'module:attribute' import string")
        return self


class ConsensusFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    execution: ExecutionConfigModel = Field(default_factory=ExecutionConfigModel)
    providers: list[ProviderEntryModel] = Field(default_factory=list)
