"""Harness configuration management using Pydantic Settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional, List
from pathlib import Path


class Settings(BaseSettings):
    """Harness settings loaded from environment variables."""

    # Firecrawl API key forwarded to the server process
    firecrawl_api_key: Optional[str] = None
    placeholder_api_key: str = "demo-key-for-testing"  # Injected when no real key is set

    # Server under test
    server_dir: Path = Path(".")
    server_command: str = "node"
    server_entry: Path = Path("dist/index.js")  # Relative to server_dir
    build_command: str = "npm run build"

    # MCP handshake
    protocol_version: str = "2024-11-05"
    client_name: str = "test-client"
    client_version: str = "1.0.0"

    # Scrape request sent in the tools/call step
    scrape_tool: str = "firecrawl_scrape"
    scrape_url: str = "https://example.com"
    scrape_formats: List[str] = ["markdown"]
    scrape_only_main_content: bool = True

    # Reporting
    excerpt_length: int = 200
    # Server stderr containing any of these substrings is not echoed
    stderr_suppress_patterns: List[str] = ["FIRECRAWL_API_KEY", "environment variable"]

    # Grace period between closing the server's stdin and killing it
    kill_delay_seconds: float = 1.0

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @property
    def server_path(self) -> Path:
        """Absolute path of the built server entry point."""
        entry = self.server_entry
        if not entry.is_absolute():
            entry = self.server_dir / entry
        return entry.resolve()

    @property
    def has_api_key(self) -> bool:
        """Check if a real Firecrawl API key is configured."""
        return bool(self.firecrawl_api_key)

    def server_env(self, base: dict) -> dict:
        """Build the environment for the server process.

        Args:
            base: Environment to inherit (usually ``os.environ``)

        Returns:
            Copy of ``base`` with ``FIRECRAWL_API_KEY`` guaranteed to be set
        """
        env = dict(base)
        if not env.get("FIRECRAWL_API_KEY"):
            env["FIRECRAWL_API_KEY"] = self.firecrawl_api_key or self.placeholder_api_key
        return env


def get_settings(**overrides) -> Settings:
    """Load settings from the environment, applying non-None overrides."""
    settings = Settings()
    update = {key: value for key, value in overrides.items() if value is not None}
    if update:
        settings = settings.model_copy(update=update)
    return settings
