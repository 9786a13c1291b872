"""Shared fixtures for easy-sauce tests."""

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the static test fixtures."""
    return FIXTURES_DIR


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from attaching handlers to captured streams."""
    monkeypatch.setattr("easy_sauce.cli.setup_logging", lambda: None)
