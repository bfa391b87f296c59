"""Core data models for the Firecrawl MCP smoke harness."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


JSONRPC_VERSION = "2.0"


@dataclass
class JsonRpcRequest:
    """A JSON-RPC request written to the server's stdin."""

    id: int
    method: str
    params: Dict[str, Any] = field(default_factory=dict)
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    def to_line(self) -> str:
        """Serialize as a single newline-terminated JSON document."""
        return json.dumps(self.to_dict()) + "\n"

    def __str__(self) -> str:
        return f"{self.method} (id={self.id})"


@dataclass
class JsonRpcResponse:
    """A JSON-RPC response read from the server's stdout."""

    id: Any
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    jsonrpc: str = JSONRPC_VERSION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonRpcResponse":
        """Build a response from a decoded JSON object.

        Args:
            data: Decoded JSON-RPC message carrying an ``id``

        Returns:
            JsonRpcResponse instance
        """
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=data.get("error"),
            jsonrpc=data.get("jsonrpc", JSONRPC_VERSION),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> Optional[str]:
        """Human-readable error text, or None for successful responses."""
        if self.error is None:
            return None
        if isinstance(self.error, dict) and self.error.get("message"):
            return str(self.error["message"])
        return json.dumps(self.error)

    def __str__(self) -> str:
        status = "error" if self.is_error else "result"
        return f"response {status} (id={self.id})"


@dataclass
class ToolInfo:
    """A tool advertised by the server in its tools/list response."""

    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolInfo":
        return cls(name=str(data.get("name", "")), description=data.get("description") or "")

    @property
    def summary(self) -> str:
        """First line of the tool description."""
        return self.description.split("\n")[0]

    def __str__(self) -> str:
        return f"{self.name}: {self.summary}"


class HarnessState(str, Enum):
    """Progress of a harness run."""

    CHECK_BUILT = "check_built"
    BUILDING = "building"
    SPAWNED = "spawned"
    INITIALIZED = "initialized"
    TOOLS_LISTED = "tools_listed"
    INVOKED = "invoked"
    TERMINATED = "terminated"


@dataclass
class HarnessResult:
    """Outcome of a harness run."""

    state: HarnessState
    outcome: str  # "scraped", "expected-error", "no-tools", "server-exited", "build-failed"
    exit_code: int = 0
    server_exit_code: Optional[int] = None
    tools: List[str] = field(default_factory=list)
    parse_errors: int = 0

    @property
    def success(self) -> bool:
        return self.outcome in ("scraped", "expected-error")

    def __str__(self) -> str:
        return f"{self.outcome} (state: {self.state.value}, exit code: {self.exit_code})"
