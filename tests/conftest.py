"""Shared fixtures: isolated environment and throwaway project trees."""

from pathlib import Path
from typing import Callable, Dict

import pytest

from deadwood.config import reset_config
from deadwood.utils.performance import performance

ENV_FLAGS = ("DEADWOOD_DEBUG", "DEADWOOD_PERFORMANCE", "DEADWOOD_GITIGNORE")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start every test with default flags and an empty timing registry."""
    for name in ENV_FLAGS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    performance.reset()
    yield
    reset_config()
    performance.reset()


@pytest.fixture
def make_tree(tmp_path) -> Callable[[Dict[str, str]], Path]:
    """Create files below a fresh project root.

    Usage: root = make_tree({"src/a.ts": "", ".gitignore": "*.log"})
    """
    root = tmp_path / "project"
    root.mkdir()

    def _make(files: Dict[str, str]) -> Path:
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make
