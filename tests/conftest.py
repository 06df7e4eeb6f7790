"""pytest configuration: make the src layout importable without installation."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from helpers.fakes import _CapturingLogger  # noqa: E402


@pytest.fixture
def capturing_logger() -> _CapturingLogger:
    return _CapturingLogger()
