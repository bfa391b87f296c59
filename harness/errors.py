"""Exceptions raised by the smoke harness."""


class HarnessError(Exception):
    """Base class for harness failures."""


class BuildError(HarnessError):
    """The server artifact is missing and could not be built."""

    def __init__(self, message: str, returncode: int = None):
        super().__init__(message)
        self.returncode = returncode


class ResponseParseError(HarnessError):
    """A line of server output is not a JSON-RPC object."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class ServerClosedError(HarnessError):
    """The server closed its output before answering a pending request."""
