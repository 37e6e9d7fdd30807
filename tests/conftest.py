"""redactkit test configuration and fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))


@pytest.fixture
def schemas_dir() -> Path:
    """Return the bundled schemas directory path."""
    return SRC_DIR / "redactkit" / "schemas"


@pytest.fixture
def write_policy(tmp_path: Path):
    """Return a helper that writes policy YAML text to a temp file."""

    def _write(text: str, name: str = "policy.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
