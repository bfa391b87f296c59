"""Starting, draining and stopping the server process."""

import logging
import os
from typing import Optional

import anyio
from anyio.abc import ByteReceiveStream, Process
from anyio.streams.text import TextReceiveStream

from config.settings import Settings
from harness.reporting import ConsoleReporter

logger = logging.getLogger(__name__)


def text_stream(stream: ByteReceiveStream) -> TextReceiveStream:
    """Decode server output, replacing bytes that are not valid UTF-8."""
    return TextReceiveStream(stream, errors="replace")


async def open_server(settings: Settings, env: Optional[dict] = None) -> Process:
    """Spawn the server with piped stdio.

    Args:
        settings: Harness settings
        env: Environment to inherit. Defaults to ``os.environ``.
    """
    command = [settings.server_command, str(settings.server_path)]
    logger.info("Spawning server: %s", " ".join(command))
    return await anyio.open_process(
        command,
        cwd=settings.server_dir,
        env=settings.server_env(env if env is not None else dict(os.environ)),
    )


async def pump_stderr(stream: ByteReceiveStream, reporter: ConsoleReporter) -> None:
    """Forward server stderr to the reporter until the stream ends."""
    try:
        async for chunk in text_stream(stream):
            reporter.server_stderr(chunk)
    except anyio.ClosedResourceError:
        pass


async def stop_server(process: Process, grace_seconds: float) -> Optional[int]:
    """Close the server's stdin, then kill it if it outlives the grace period.

    Returns:
        The server's exit code
    """
    try:
        await process.stdin.aclose()
    except (anyio.BrokenResourceError, anyio.ClosedResourceError):
        pass
    with anyio.move_on_after(grace_seconds):
        await process.wait()
    if process.returncode is None:
        logger.info("Server still running after %.1fs, killing it", grace_seconds)
        process.kill()
    with anyio.CancelScope(shield=True):
        await process.wait()
    return process.returncode
