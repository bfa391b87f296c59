"""Ensure the server artifact exists, building it when missing."""

import logging

import anyio

from config.settings import Settings
from harness.errors import BuildError

logger = logging.getLogger(__name__)


def is_built(settings: Settings) -> bool:
    return settings.server_path.exists()


async def run_build(settings: Settings) -> int:
    """Run the build command in the server directory with inherited stdio.

    Returns:
        The build command's exit code
    """
    logger.info("Running build command %r in %s", settings.build_command, settings.server_dir)
    completed = await anyio.run_process(
        settings.build_command,
        stdout=None,
        stderr=None,
        check=False,
        cwd=settings.server_dir,
    )
    logger.info("Build command exited with code %s", completed.returncode)
    return completed.returncode


async def ensure_built(settings: Settings) -> bool:
    """Build the server if its entry point is missing.

    Returns:
        True if a build ran, False if the artifact already existed

    Raises:
        BuildError: If the build fails or leaves the artifact missing
    """
    if is_built(settings):
        return False

    returncode = await run_build(settings)
    if returncode != 0:
        raise BuildError(f"Build command exited with code {returncode}", returncode=returncode)

    if not is_built(settings):
        raise BuildError(
            f"Build succeeded but {settings.server_path} still does not exist",
            returncode=returncode,
        )
    return True
