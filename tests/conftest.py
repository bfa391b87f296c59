"""Shared test fixtures and configuration for pytest."""

import json
import os
import shutil
import sys
from pathlib import Path
from typing import Dict, List

import pytest

from config.settings import Settings


FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_SERVER = FIXTURES_DIR / "fake_firecrawl_server.py"
FAKE_BUILD = FIXTURES_DIR / "fake_build.py"

# Settings fields that could leak in from the developer's environment
SETTINGS_ENV_VARS = [
    "FIRECRAWL_API_KEY",
    "SERVER_DIR",
    "SERVER_COMMAND",
    "SERVER_ENTRY",
    "BUILD_COMMAND",
    "SCRAPE_URL",
    "KILL_DELAY_SECONDS",
    "LOG_LEVEL",
]


# ==================== Environment Fixtures ====================


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Start every test without harness configuration in the environment."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def temp_env(monkeypatch):
    """Fixture for temporarily modifying environment variables."""
    def set_env(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key, value)

    return set_env


# ==================== Server Fixtures ====================


@pytest.fixture
def server_dir(tmp_path) -> Path:
    """A server project whose built entry point is the fake server."""
    project = tmp_path / "firecrawl-mcp-server"
    (project / "dist").mkdir(parents=True)
    shutil.copy(FAKE_SERVER, project / "dist" / "index.js")
    return project


@pytest.fixture
def server_log(tmp_path) -> Path:
    return tmp_path / "server-log.jsonl"


@pytest.fixture
def make_settings(server_dir):
    """Factory fixture for settings pointing at the fake server."""
    def _make(**overrides) -> Settings:
        values = {
            "server_dir": server_dir,
            "server_command": sys.executable,
            "build_command": "exit 1",
            "kill_delay_seconds": 1.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_server_env(server_log):
    """Factory fixture for the environment inherited by the fake server."""
    def _make(mode: str = "auth_error", **extra: str) -> Dict[str, str]:
        env = {key: value for key, value in os.environ.items() if key != "FIRECRAWL_API_KEY"}
        env["FAKE_SERVER_MODE"] = mode
        env["FAKE_SERVER_LOG"] = str(server_log)
        env.update(extra)
        return env

    return _make


@pytest.fixture
def read_server_log(server_log):
    """Read the entries the fake server logged, or [] if it never started."""
    def _read() -> List[dict]:
        if not server_log.exists():
            return []
        return [json.loads(line) for line in server_log.read_text().splitlines() if line]

    return _read
