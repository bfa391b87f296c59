"""Command-line entry point for the Firecrawl MCP smoke harness."""

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

import anyio
from pydantic import ValidationError

from config.settings import Settings, get_settings
from harness.runner import SmokeHarness
from models.data_models import HarnessResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="firecrawl-mcp-smoke",
        description="Spawn the Firecrawl MCP server and exercise initialize, tools/list and tools/call.",
    )
    parser.add_argument("--server-dir", type=Path, help="Directory of the server project (default: .)")
    parser.add_argument("--server-command", help="Interpreter used to start the server (default: node)")
    parser.add_argument("--server-entry", type=Path, help="Built server entry point (default: dist/index.js)")
    parser.add_argument("--build-command", help="Shell command that builds the server (default: npm run build)")
    parser.add_argument("--url", dest="scrape_url", help="URL passed to firecrawl_scrape")
    parser.add_argument(
        "--kill-delay",
        dest="kill_delay_seconds",
        type=float,
        help="Seconds to wait for the server to exit before killing it (default: 1.0)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Harness log level (default: WARNING)",
    )
    parser.add_argument(
        "--sdk",
        action="store_true",
        help="Drive the conversation through the MCP Python SDK instead of raw stdio",
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    return get_settings(
        server_dir=args.server_dir,
        server_command=args.server_command,
        server_entry=args.server_entry,
        build_command=args.build_command,
        scrape_url=args.scrape_url,
        kill_delay_seconds=args.kill_delay_seconds,
        log_level=args.log_level,
    )


async def run(settings: Settings, use_sdk: bool = False) -> HarnessResult:
    """Run the smoke test once."""
    if use_sdk:
        # Imported lazily so the raw harness does not load the SDK
        from mcp_client.client import run_sdk_check

        return await run_sdk_check(settings)
    return await SmokeHarness(settings).run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        parser.error(f"invalid configuration: {e}")

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    result = anyio.run(partial(run, settings, use_sdk=args.sdk))
    logging.getLogger(__name__).info("Smoke test finished: %s", result)
    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
