"""MCP SDK client for the Firecrawl MCP server.

Runs the same initialize / tools/list / tools/call sequence as the raw
stdio harness, but through the official ``mcp`` client session, so the two
transports can be compared against one server build. The client owns the
server process so stderr filtering and exit reporting match the raw harness.
"""

import logging
import os
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

import anyio
from anyio.abc import ByteReceiveStream, Process
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession, types
from mcp.shared.exceptions import McpError
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from config.settings import Settings
from harness import protocol
from harness.build import ensure_built, is_built
from harness.errors import BuildError
from harness.process import open_server, pump_stderr, stop_server, text_stream
from harness.reporting import ConsoleReporter
from models.data_models import HarnessResult, HarnessState, JsonRpcResponse, ToolInfo

logger = logging.getLogger(__name__)


class FirecrawlMCPClient:
    """Client for communicating with the Firecrawl MCP server."""

    def __init__(
        self,
        settings: Settings,
        reporter: Optional[ConsoleReporter] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        """Initialize MCP client.

        Args:
            settings: Harness settings describing the server to launch
            reporter: Receives server stderr and parse errors. Defaults to stdout.
            env: Environment inherited by the server. Defaults to ``os.environ``.
        """
        self.settings = settings
        self.reporter = reporter or ConsoleReporter(suppress_patterns=settings.stderr_suppress_patterns)
        self.env = env if env is not None else dict(os.environ)
        self.process: Optional[Process] = None
        self.session: Optional[ClientSession] = None
        self.server_info: Optional[Dict[str, Any]] = None
        self.capabilities: Optional[Dict[str, Any]] = None
        self.returncode: Optional[int] = None
        self.parse_errors = 0
        self._exit_stack: Optional[AsyncExitStack] = None
        self._stdin_scope: Optional[anyio.CancelScope] = None

    async def connect(self) -> Dict[str, Any]:
        """Start the server and perform the MCP handshake.

        Returns:
            Server capabilities advertised in the initialize result
        """
        if self.session is not None:
            raise RuntimeError("Client is already connected")

        self._exit_stack = AsyncExitStack()
        try:
            await self._start_transport()
            result = await self.session.initialize()
        except BaseException:
            await self.close()
            raise

        self.server_info = result.serverInfo.model_dump()
        self.capabilities = result.capabilities.model_dump(exclude_none=True)
        return self.capabilities

    async def _start_transport(self) -> None:
        stack = self._exit_stack
        self.process = await open_server(self.settings, self.env)

        incoming_writer, incoming_reader = anyio.create_memory_object_stream(0)
        outgoing_writer, outgoing_reader = anyio.create_memory_object_stream(0)

        tg = await stack.enter_async_context(anyio.create_task_group())
        tg.start_soon(self._pump_stdout, self.process.stdout, incoming_writer)
        tg.start_soon(pump_stderr, self.process.stderr, self.reporter)
        self._stdin_scope = await tg.start(self._pump_stdin, outgoing_reader)

        # Runs before the task group exits so the output pumps reach end of stream
        stack.push_async_callback(self._stop)
        self.session = await stack.enter_async_context(ClientSession(incoming_reader, outgoing_writer))

    async def _stop(self) -> None:
        self._stdin_scope.cancel()
        self.returncode = await stop_server(self.process, self.settings.kill_delay_seconds)

    async def _pump_stdin(
        self,
        outgoing: MemoryObjectReceiveStream,
        *,
        task_status=anyio.TASK_STATUS_IGNORED,
    ) -> None:
        with anyio.CancelScope() as scope:
            task_status.started(scope)
            async with outgoing:
                async for session_message in outgoing:
                    line = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                    logger.debug("Sending: %s", line)
                    try:
                        await self.process.stdin.send((line + "\n").encode("utf-8"))
                    except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                        logger.debug("Server stdin closed, dropping: %s", line)

    async def _pump_stdout(self, stream: ByteReceiveStream, incoming: MemoryObjectSendStream) -> None:
        buffer = protocol.LineBuffer()
        async with incoming:
            try:
                async for chunk in text_stream(stream):
                    for line in buffer.feed(chunk):
                        await self._deliver(line, incoming)
                for line in buffer.flush():
                    await self._deliver(line, incoming)
            except anyio.ClosedResourceError:
                pass

    async def _deliver(self, line: str, incoming: MemoryObjectSendStream) -> None:
        logger.debug("Received: %s", line)
        try:
            message = types.JSONRPCMessage.model_validate_json(line)
        except ValidationError as e:
            self.parse_errors += 1
            self.reporter.parse_error(e, line)
            return
        try:
            await incoming.send(SessionMessage(message))
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("Session closed, dropping: %s", line)

    async def list_tools(self) -> List[ToolInfo]:
        """List the tools the server advertises.

        Raises:
            RuntimeError: If client is not connected
        """
        if self.session is None:
            raise RuntimeError("Client is not connected. Call connect() first.")

        result = await self.session.list_tools()
        return [ToolInfo(name=tool.name, description=tool.description or "") for tool in result.tools]

    async def scrape(self) -> JsonRpcResponse:
        """Call the scrape tool with the configured URL and options.

        Protocol errors and tool errors are both returned as an error
        response instead of being raised.

        Raises:
            RuntimeError: If client is not connected
        """
        if self.session is None:
            raise RuntimeError("Client is not connected. Call connect() first.")

        try:
            result = await self.session.call_tool(
                self.settings.scrape_tool, protocol.scrape_arguments(self.settings)
            )
        except McpError as e:
            return JsonRpcResponse(id=protocol.TOOLS_CALL_ID, error=e.error.model_dump(exclude_none=True))

        content = [item.model_dump(exclude_none=True) for item in result.content]
        if result.isError:
            message = content[0].get("text") if content else "tool call failed"
            return JsonRpcResponse(id=protocol.TOOLS_CALL_ID, error={"message": message})
        return JsonRpcResponse(id=protocol.TOOLS_CALL_ID, result={"content": content})

    async def close(self):
        """Close the MCP connection and stop the server."""
        if self._exit_stack is not None:
            stack, self._exit_stack = self._exit_stack, None
            await stack.aclose()
        self.session = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


async def run_sdk_check(
    settings: Settings,
    reporter: Optional[ConsoleReporter] = None,
    env: Optional[Dict[str, str]] = None,
) -> HarnessResult:
    """Run the three-step smoke sequence through the MCP SDK.

    Builds the server first when its entry point is missing.
    """
    reporter = reporter or ConsoleReporter(suppress_patterns=settings.stderr_suppress_patterns)
    reporter.banner()

    if not is_built(settings):
        reporter.building()
        try:
            await ensure_built(settings)
        except BuildError as e:
            logger.error("Build failed: %s", e)
            reporter.build_failed(settings.build_command)
            return HarnessResult(state=HarnessState.BUILDING, outcome="build-failed", exit_code=1)
        reporter.build_succeeded()

    reporter.configuration(settings.server_path, settings.has_api_key)
    reporter.starting()

    client = FirecrawlMCPClient(settings, reporter=reporter, env=env)
    state = HarnessState.SPAWNED
    outcome = "server-exited"
    tools: List[ToolInfo] = []

    try:
        async with client:
            state = HarnessState.INITIALIZED
            reporter.initialized(
                JsonRpcResponse(id=protocol.INITIALIZE_ID, result={"capabilities": client.capabilities})
            )

            reporter.listing_tools()
            tools = await client.list_tools()
            if not tools:
                outcome = "no-tools"
                reporter.no_tools(JsonRpcResponse(id=protocol.TOOLS_LIST_ID, result={"tools": []}))
            else:
                state = HarnessState.TOOLS_LISTED
                reporter.tools_listed(tools)

                reporter.scraping()
                response = await client.scrape()
                state = HarnessState.INVOKED
                if response.is_error:
                    outcome = "expected-error"
                    reporter.scrape_error(response)
                else:
                    outcome = "scraped"
                    reporter.scrape_succeeded(protocol.content_text(response), settings.excerpt_length)
    except (McpError, anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
        logger.error("Server closed during %s: %s", state.value, e)
        outcome = "server-exited"
        reporter.server_closed(str(e))

    reporter.exited(client.returncode)
    return HarnessResult(
        state=HarnessState.TERMINATED,
        outcome=outcome,
        server_exit_code=client.returncode,
        tools=[tool.name for tool in tools],
        parse_errors=client.parse_errors,
    )
