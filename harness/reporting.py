"""Human-readable console output for a harness run."""

import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from models.data_models import JsonRpcResponse, ToolInfo

logger = logging.getLogger(__name__)


# Tools the Firecrawl MCP server is expected to advertise
FIRECRAWL_FEATURES = [
    ("firecrawl_scrape", "Extract content from single web pages"),
    ("firecrawl_map", "Discover all URLs on a website"),
    ("firecrawl_crawl", "Crawl multiple pages and extract content"),
    ("firecrawl_check_crawl_status", "Check crawl job progress"),
    ("firecrawl_search", "Search the web with content extraction"),
    ("firecrawl_extract", "LLM-powered structured data extraction"),
    ("firecrawl_deep_research", "AI-powered research with multiple sources"),
    ("firecrawl_generate_llmstxt", "Generate LLMs.txt files for websites"),
]


def is_suppressed(text: str, patterns: Iterable[str]) -> bool:
    """Check if server stderr text matches an expected warning pattern."""
    return any(pattern in text for pattern in patterns)


def excerpt(text: str, length: int) -> str:
    return text[:length] + "..."


class ConsoleReporter:
    """Prints harness progress to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None, suppress_patterns: Iterable[str] = ()):
        self.stream = stream if stream is not None else sys.stdout
        self.suppress_patterns: List[str] = list(suppress_patterns)

    def _print(self, *parts) -> None:
        print(*parts, file=self.stream, flush=True)

    # ----- startup -----

    def banner(self) -> None:
        self._print("🔥 Testing Firecrawl MCP Server Capabilities\n")

    def building(self) -> None:
        self._print("❌ Built server files not found. Building server...")

    def build_succeeded(self) -> None:
        self._print("✅ Server built successfully. Starting test...\n")

    def build_failed(self, build_command: str) -> None:
        self._print(f"❌ Build failed. Please run: {build_command}")

    def configuration(self, server_path: Path, has_api_key: bool) -> None:
        self._print("📁 Server path:", server_path)
        self._print("🔍 Checking server configuration...\n")

        if has_api_key:
            self._print("✅ FIRECRAWL_API_KEY found - will test with live API\n")
        else:
            self._print("⚠️  No FIRECRAWL_API_KEY environment variable found")
            self._print("💡 This test will demonstrate the server interface without making actual API calls")
            self._print("🔑 To use with real API key, get one from: https://firecrawl.dev\n")

        self._print("🎯 Firecrawl MCP Server Features:")
        for name, description in FIRECRAWL_FEATURES:
            self._print(f"  • {name} - {description}")
        self._print("")

    # ----- conversation -----

    def starting(self) -> None:
        self._print("📋 Testing MCP Server Startup...")

    def initialized(self, response: JsonRpcResponse) -> None:
        capabilities = (response.result or {}).get("capabilities")
        self._print("✅ Server initialized successfully")
        self._print("📊 Server capabilities:", json.dumps(capabilities, indent=2))

    def listing_tools(self) -> None:
        self._print("\n🔧 Testing Tools Listing...")

    def tools_listed(self, tools: List[ToolInfo]) -> None:
        self._print("✅ Available tools:")
        for tool in tools:
            self._print(f"  • {tool}")

    def no_tools(self, response: JsonRpcResponse) -> None:
        self._print(f"❌ Server returned no tools ({response})")

    def scraping(self) -> None:
        self._print("\n🌐 Testing Web Scraping Operation...")

    def scrape_error(self, response: JsonRpcResponse) -> None:
        self._print("⚠️  Expected API key error (demonstration successful):", response.error_message)
        self._print("✅ Scraping tool interface working correctly")

    def scrape_succeeded(self, text: str, length: int) -> None:
        self._print("✅ Scraping successful:", excerpt(text, length))

    def server_closed(self, reason: str) -> None:
        self._print(f"❌ Server stopped responding: {reason}")

    # ----- transport -----

    def parse_error(self, error: Exception, raw: str) -> None:
        self._print("❌ Failed to parse JSON response:", error)
        self._print("📥 Raw server response:", raw)
        self._print("🔍 This might indicate the server sent invalid JSON or non-JSON data")

    def server_stderr(self, text: str) -> None:
        """Echo server stderr unless it matches an expected warning."""
        if is_suppressed(text, self.suppress_patterns):
            logger.debug("Suppressed server stderr: %s", text.strip())
            return
        self._print("⚠️  Server stderr:", text)

    def exited(self, code: Optional[int]) -> None:
        self._print(f"🔚 Server process exited with code {code}")
