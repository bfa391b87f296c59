"""Pending-request map correlating responses to requests by id."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import anyio

from harness.errors import ServerClosedError
from models.data_models import JsonRpcResponse

logger = logging.getLogger(__name__)


@dataclass
class _Pending:
    event: anyio.Event = field(default_factory=anyio.Event)
    response: Optional[JsonRpcResponse] = None
    error: Optional[Exception] = None


class PendingRequests:
    """Map of request id to the continuation awaiting its response."""

    def __init__(self):
        self._pending: Dict[int, _Pending] = {}
        self._closed_reason: Optional[str] = None

    def expect(self, request_id: int) -> None:
        """Register a request id before the request is written.

        Raises:
            ValueError: If the id is already pending
            ServerClosedError: If the server output already ended
        """
        if self._closed_reason is not None:
            raise ServerClosedError(self._closed_reason)
        if request_id in self._pending:
            raise ValueError(f"Request id {request_id} is already pending")
        self._pending[request_id] = _Pending()

    async def wait(self, request_id: int) -> JsonRpcResponse:
        """Wait for the response to a registered request.

        Raises:
            KeyError: If the id was never registered
            ServerClosedError: If the server output ends first
        """
        pending = self._pending[request_id]
        await pending.event.wait()
        del self._pending[request_id]
        if pending.error is not None:
            raise pending.error
        return pending.response

    def resolve(self, response: JsonRpcResponse) -> bool:
        """Hand a response to the request awaiting it.

        Returns:
            True if a pending request matched, False otherwise
        """
        if not isinstance(response.id, (int, str)):
            logger.debug("Ignoring response with invalid id: %r", response.id)
            return False
        pending = self._pending.get(response.id)
        if pending is None or pending.event.is_set():
            logger.debug("Ignoring unsolicited %s", response)
            return False
        pending.response = response
        pending.event.set()
        return True

    def close(self, reason: str = "server output closed") -> None:
        """Fail every outstanding wait; later registrations fail immediately."""
        self._closed_reason = reason
        for request_id, pending in self._pending.items():
            if not pending.event.is_set():
                logger.debug("Failing pending request %s: %s", request_id, reason)
                pending.error = ServerClosedError(reason)
                pending.event.set()

    def __len__(self) -> int:
        return sum(1 for pending in self._pending.values() if not pending.event.is_set())
