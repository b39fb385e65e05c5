"""Shared fixtures for dispatcher tests."""

import json
import os
from typing import Any, Dict

import pytest

_ENV_PREFIXES = ("INPUT_", "GITHUB_", "ACTIONS_", "RUNNER_DEBUG")


@pytest.fixture(autouse=True)
def clean_action_env(monkeypatch):
    """Keep the host's GitHub Actions variables out of settings under test."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def event_file(tmp_path):
    """Write a payload to disk and return its path."""

    def _write(payload: Dict[str, Any]) -> str:
        path = tmp_path / "event.json"
        path.write_text(json.dumps(payload))
        return str(path)

    return _write
