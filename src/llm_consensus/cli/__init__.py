from __future__ import annotations

from .app import main
from .args import build_parser, parse_args

__all__ = ["build_parser", "main", "parse_args"]
