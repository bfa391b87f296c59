"""Smoke-test harness for the Firecrawl MCP server."""
