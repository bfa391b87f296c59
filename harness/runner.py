"""Drives the fixed three-step MCP conversation against the server process.

The run moves through the states of :class:`HarnessState`::

    CHECK_BUILT -> BUILDING -> SPAWNED -> INITIALIZED -> TOOLS_LISTED -> INVOKED -> TERMINATED

Every transition after spawn is triggered by the response to the previous
request. Only termination is timed: the server's stdin is closed and the
server gets ``kill_delay_seconds`` to exit before it is killed.
"""

import logging
import os
from typing import Optional

import anyio
from anyio.abc import ByteReceiveStream, Process

from config.settings import Settings
from harness import protocol
from harness.build import ensure_built, is_built
from harness.correlator import PendingRequests
from harness.errors import BuildError, ResponseParseError, ServerClosedError
from harness.process import open_server, pump_stderr, stop_server, text_stream
from harness.reporting import ConsoleReporter
from models.data_models import (
    HarnessResult,
    HarnessState,
    JsonRpcRequest,
    JsonRpcResponse,
)

logger = logging.getLogger(__name__)


class SmokeHarness:
    """Runs one smoke test against the Firecrawl MCP server."""

    def __init__(self, settings: Settings, reporter: Optional[ConsoleReporter] = None, env: Optional[dict] = None):
        """Initialize the harness.

        Args:
            settings: Harness settings
            reporter: Console reporter. Defaults to one printing to stdout.
            env: Environment inherited by the server. Defaults to ``os.environ``.
        """
        self.settings = settings
        self.reporter = reporter or ConsoleReporter(suppress_patterns=settings.stderr_suppress_patterns)
        self.env = env if env is not None else dict(os.environ)
        self.state = HarnessState.CHECK_BUILT
        self.pending = PendingRequests()
        self.sent: list = []
        self.tools: list = []
        self.parse_errors = 0
        self.outcome = "server-exited"
        # Event-loop clock readings bracketing shutdown
        self.finished_at: Optional[float] = None
        self.exited_at: Optional[float] = None

    def _enter(self, state: HarnessState) -> None:
        logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state

    def _result(self, exit_code: int = 0, server_exit_code: Optional[int] = None) -> HarnessResult:
        return HarnessResult(
            state=self.state,
            outcome=self.outcome,
            exit_code=exit_code,
            server_exit_code=server_exit_code,
            tools=[tool.name for tool in self.tools],
            parse_errors=self.parse_errors,
        )

    async def run(self) -> HarnessResult:
        """Build if needed, spawn the server and run the conversation."""
        self.reporter.banner()
        self._enter(HarnessState.CHECK_BUILT)

        if not is_built(self.settings):
            self._enter(HarnessState.BUILDING)
            self.reporter.building()
            try:
                await ensure_built(self.settings)
            except BuildError as e:
                logger.error("Build failed: %s", e)
                self.reporter.build_failed(self.settings.build_command)
                self.outcome = "build-failed"
                return self._result(exit_code=1)
            self.reporter.build_succeeded()

        self.reporter.configuration(self.settings.server_path, self.settings.has_api_key)
        if not self.settings.has_api_key and not self.env.get("FIRECRAWL_API_KEY"):
            logger.warning("FIRECRAWL_API_KEY is not set, using placeholder key")

        server_exit_code = await self._spawn_and_converse()
        self.reporter.exited(server_exit_code)
        return self._result(server_exit_code=server_exit_code)

    async def _spawn_and_converse(self) -> Optional[int]:
        self.reporter.starting()
        process = await open_server(self.settings, self.env)
        self._enter(HarnessState.SPAWNED)

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._pump_stdout, process.stdout)
                tg.start_soon(pump_stderr, process.stderr, self.reporter)
                await self._converse(process)
                self.finished_at = anyio.current_time()
                await stop_server(process, self.settings.kill_delay_seconds)
                self.exited_at = anyio.current_time()
        finally:
            if process.returncode is None:
                process.kill()
            with anyio.CancelScope(shield=True):
                await process.wait()
            self._enter(HarnessState.TERMINATED)

        return process.returncode

    # ----- conversation -----

    async def _request(self, process: Process, request: JsonRpcRequest) -> JsonRpcResponse:
        """Write a request and wait for the response carrying its id."""
        self.pending.expect(request.id)
        logger.debug("Sending %s", request)
        self.sent.append(request)
        try:
            await process.stdin.send(request.to_line().encode("utf-8"))
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
            raise ServerClosedError(f"could not write {request}: {e!r}") from e
        return await self.pending.wait(request.id)

    async def _converse(self, process: Process) -> None:
        try:
            response = await self._request(process, protocol.initialize_request(self.settings))
            self._enter(HarnessState.INITIALIZED)
            self.reporter.initialized(response)

            self.reporter.listing_tools()
            response = await self._request(process, protocol.tools_list_request())
            tools = protocol.tools_from_result(response.result)
            if not tools:
                self.outcome = "no-tools"
                self.reporter.no_tools(response)
                return
            self.tools = tools
            self._enter(HarnessState.TOOLS_LISTED)
            self.reporter.tools_listed(self.tools)

            self.reporter.scraping()
            response = await self._request(process, protocol.tools_call_request(self.settings))
            self._enter(HarnessState.INVOKED)
            self._report_scrape(response)
        except ServerClosedError as e:
            logger.error("Server closed during %s: %s", self.state.value, e)
            self.outcome = "server-exited"
            self.reporter.server_closed(str(e))

    def _report_scrape(self, response: JsonRpcResponse) -> None:
        # Any error counts as the expected missing-API-key failure
        if response.is_error:
            self.outcome = "expected-error"
            self.reporter.scrape_error(response)
            return

        self.outcome = "scraped"
        self.reporter.scrape_succeeded(protocol.content_text(response), self.settings.excerpt_length)

    # ----- transport -----

    def _handle_line(self, line: str) -> None:
        logger.debug("Received: %s", line)
        try:
            response = protocol.decode_line(line)
        except ResponseParseError as e:
            self.parse_errors += 1
            self.reporter.parse_error(e, e.raw)
            return
        if response is None:
            logger.debug("Ignoring notification: %s", line)
            return
        self.pending.resolve(response)

    async def _pump_stdout(self, stream: ByteReceiveStream) -> None:
        buffer = protocol.LineBuffer()
        try:
            async for chunk in text_stream(stream):
                for line in buffer.feed(chunk):
                    self._handle_line(line)
            for line in buffer.flush():
                self._handle_line(line)
        except anyio.ClosedResourceError:
            pass
        finally:
            self.pending.close("server output closed")
