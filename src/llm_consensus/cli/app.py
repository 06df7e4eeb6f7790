from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import replace
import json
import logging
from pathlib import Path
import sys
from typing import Any, TextIO

from ..config import ExecutionConfig
from ..config_loader import LoadedConfig, apply_env_overrides, load_config
from ..engine import ConsensusEngine
from ..errors import (
    ConfigError,
    InsufficientProviders,
    NoProvidersConfigured,
    NoSuccessfulProviders,
)
from ..models import ExecutionResult
from ..observability import CompositeLogger, EventLogger, JsonlLogger, StdLogger
from ..providers.mock import MockProvider
from .args import parse_args
from .utils import (
    _configure_logging,
    _load_env_file,
    EXIT_INPUT_ERROR,
    EXIT_INSUFFICIENT_PROVIDERS,
    EXIT_NO_PROVIDERS,
    EXIT_NO_SUCCESSFUL_PROVIDERS,
    EXIT_OK,
)

LOGGER = logging.getLogger(__name__)

_SELF_TEST_ANSWERS = (
    ("mock-alpha", "Paris is the capital of France. It lies on the Seine."),
    ("mock-beta", "Paris is the capital of France. The Eiffel Tower is in Paris."),
    ("mock-gamma", "Paris is the capital of France. It lies on the Seine."),
)


def _apply_cli_overrides(config: ExecutionConfig, args: argparse.Namespace) -> ExecutionConfig:
    changes: dict[str, Any] = {}
    if getattr(args, "timeout", None) is not None:
        changes["timeout_s"] = args.timeout
    if getattr(args, "synthesis", None) is not None:
        changes["synthesis_method"] = args.synthesis
    if getattr(args, "threshold", None) is not None:
        changes["consensus_threshold"] = args.threshold
    if getattr(args, "min_providers", None) is not None:
        changes["min_providers"] = args.min_providers
    if getattr(args, "wait", None) is not None:
        changes["wait_mode"] = args.wait
    return replace(config, **changes) if changes else config


def _read_prompt(args: argparse.Namespace) -> str:
    if args.prompt is not None:
        prompt = args.prompt
    elif args.prompt_file == "-":
        prompt = sys.stdin.read()
    else:
        prompt = Path(args.prompt_file).expanduser().read_text(encoding="utf-8")
    if not prompt.strip():
        raise ConfigError("prompt must not be empty")
    return prompt


def _event_logger(args: argparse.Namespace) -> EventLogger | None:
    sinks: list[EventLogger] = []
    for target in args.events or ():
        if target == "-":
            sinks.append(StdLogger(sys.stderr))
        else:
            sinks.append(JsonlLogger(Path(target).expanduser()))
    if not sinks:
        return None
    if len(sinks) == 1:
        return sinks[0]
    return CompositeLogger(sinks)


def _emit_result(result: ExecutionResult, fmt: str, stream: TextIO) -> None:
    if fmt == "json":
        stream.write(json.dumps(result.to_dict(), ensure_ascii=False, indent=2) + "\n")
    else:
        stream.write(result.format_summary())


def _emit_status(loaded: LoadedConfig, fmt: str, stream: TextIO) -> None:
    payload = {
        "config": str(loaded.path) if loaded.path else None,
        "execution": loaded.execution.describe(),
        "providers": [
            {
                "id": entry.id,
                "source": entry.factory or entry.type,
                "model": entry.model,
            }
            for entry in loaded.provider_entries
        ],
    }
    if fmt == "json":
        stream.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
        return
    lines = [f"Config: {payload['config']}", "Execution:"]
    lines.extend(f"  {key}: {value}" for key, value in payload["execution"].items())
    lines.append(f"Providers ({len(payload['providers'])}):")
    for item in payload["providers"]:
        model = f" ({item['model']})" if item["model"] else ""
        lines.append(f"  {item['id']}{model} <- {item['source']}")
    stream.write("\n".join(lines) + "\n")


def _execute(
    engine: ConsensusEngine, prompt: str, config: ExecutionConfig, args: argparse.Namespace
) -> int:
    try:
        result = engine.execute(prompt, config)
    except NoProvidersConfigured as exc:
        LOGGER.error("%s", exc)
        return EXIT_NO_PROVIDERS
    except NoSuccessfulProviders as exc:
        LOGGER.error("%s", exc)
        return EXIT_NO_SUCCESSFUL_PROVIDERS
    except InsufficientProviders as exc:
        LOGGER.error("%s", exc)
        return EXIT_INSUFFICIENT_PROVIDERS
    _emit_result(result, args.format, sys.stdout)
    return EXIT_OK


def _cmd_run(args: argparse.Namespace) -> int:
    loaded = load_config(Path(args.config).expanduser())
    config = _apply_cli_overrides(loaded.execution, args)
    prompt = _read_prompt(args)
    engine = ConsensusEngine(loaded.providers, _event_logger(args), config=config)
    return _execute(engine, prompt, config, args)


def _cmd_status(args: argparse.Namespace) -> int:
    loaded = load_config(Path(args.config).expanduser())
    _emit_status(loaded, args.format, sys.stdout)
    return EXIT_OK


def _cmd_test(args: argparse.Namespace) -> int:
    providers = [
        MockProvider(name, text, latency_ms=10 * (index + 1))
        for index, (name, text) in enumerate(_SELF_TEST_ANSWERS)
    ]
    config = _apply_cli_overrides(apply_env_overrides(ExecutionConfig()), args)
    engine = ConsensusEngine(providers, _event_logger(args), config=config)
    return _execute(engine, args.prompt, config, args)


_COMMANDS = {
    "run": _cmd_run,
    "status": _cmd_status,
    "test": _cmd_test,
}


def main(argv: Sequence[str] | None = None) -> int:
    try:
        args = parse_args(argv)
    except SystemExit as exc:  # argparse exits with 2 on usage errors
        code = exc.code
        return code if isinstance(code, int) else EXIT_INPUT_ERROR

    _configure_logging(args.json_logs)
    try:
        if args.env:
            _load_env_file(Path(args.env).expanduser().resolve())
        return _COMMANDS[args.command](args)
    except (ConfigError, OSError) as exc:
        LOGGER.error("%s", exc)
        return EXIT_INPUT_ERROR


__all__ = ["main"]
