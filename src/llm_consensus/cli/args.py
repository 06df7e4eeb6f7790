from __future__ import annotations

import argparse
from collections.abc import Sequence

from ..config import SynthesisMethod, WaitPolicy
from ..errors import ConfigError


def _parse_positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:  # pragma: no cover - argparse reports error
        raise argparse.ArgumentTypeError("value must be numeric") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return parsed


def _parse_ratio(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:  # pragma: no cover - argparse reports error
        raise argparse.ArgumentTypeError("value must be numeric") from exc
    if not 0.0 <= parsed <= 1.0:
        raise argparse.ArgumentTypeError("value must be within [0, 1]")
    return parsed


def _parse_non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:  # pragma: no cover - argparse reports error
        raise argparse.ArgumentTypeError("value must be an integer") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be non-negative")
    return parsed


def _parse_wait(value: str) -> WaitPolicy:
    try:
        return WaitPolicy.parse(value)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=("text", "json"), default="text", help="output format")
    parser.add_argument("--env", help="load environment variables from this .env file")
    parser.add_argument("--json-logs", action="store_true", dest="json_logs", help="log as JSON")
    parser.add_argument(
        "--events",
        action="append",
        help="append structured events to this JSONL file, or '-' for stderr (repeatable)",
    )


def _add_overrides(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--timeout", type=_parse_positive_float, help="global timeout in seconds")
    parser.add_argument(
        "--synthesis",
        choices=tuple(method.value for method in SynthesisMethod),
        help="synthesis method",
    )
    parser.add_argument("--threshold", type=_parse_ratio, help="consensus threshold (0-1)")
    parser.add_argument(
        "--min-providers", dest="min_providers", type=_parse_non_negative_int
    )
    parser.add_argument("--wait", type=_parse_wait, help="all | quorum:N | first:N")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-consensus",
        description="Query several providers in parallel and cross-verify their answers.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="execute a prompt against configured providers")
    run.add_argument("--config", required=True, help="consensus config YAML")
    prompt = run.add_mutually_exclusive_group(required=True)
    prompt.add_argument("--prompt", help="prompt text")
    prompt.add_argument("--prompt-file", dest="prompt_file", help="read the prompt from a file")
    _add_overrides(run)
    _add_common(run)

    status = commands.add_parser("status", help="show the effective configuration")
    status.add_argument("--config", required=True, help="consensus config YAML")
    _add_common(status)

    test = commands.add_parser("test", help="run the engine against built-in mock providers")
    test.add_argument("--prompt", default="What is the capital of France?")
    _add_overrides(test)
    _add_common(test)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


__all__ = ["build_parser", "parse_args"]
