"""Request builders and line decoding for the JSON-RPC stdio transport."""

import json
from typing import List, Optional

from config.settings import Settings
from harness.errors import ResponseParseError
from models.data_models import JsonRpcRequest, JsonRpcResponse, ToolInfo


INITIALIZE_ID = 1
TOOLS_LIST_ID = 2
TOOLS_CALL_ID = 3


def initialize_request(settings: Settings) -> JsonRpcRequest:
    """Build the MCP initialize request."""
    return JsonRpcRequest(
        id=INITIALIZE_ID,
        method="initialize",
        params={
            "protocolVersion": settings.protocol_version,
            "capabilities": {
                "roots": {"listChanged": True},
                "sampling": {},
            },
            "clientInfo": {
                "name": settings.client_name,
                "version": settings.client_version,
            },
        },
    )


def tools_list_request() -> JsonRpcRequest:
    return JsonRpcRequest(id=TOOLS_LIST_ID, method="tools/list", params={})


def scrape_arguments(settings: Settings) -> dict:
    return {
        "url": settings.scrape_url,
        "formats": list(settings.scrape_formats),
        "onlyMainContent": settings.scrape_only_main_content,
    }


def tools_call_request(settings: Settings) -> JsonRpcRequest:
    """Build the tools/call request invoking the scrape tool."""
    return JsonRpcRequest(
        id=TOOLS_CALL_ID,
        method="tools/call",
        params={
            "name": settings.scrape_tool,
            "arguments": scrape_arguments(settings),
        },
    )


def tools_from_result(result: Optional[dict]) -> List[ToolInfo]:
    """Tools advertised in a tools/list result.

    Returns an empty list unless ``tools`` is a list of objects.
    """
    if not isinstance(result, dict):
        return []
    tools = result.get("tools")
    if not isinstance(tools, list) or not all(isinstance(tool, dict) for tool in tools):
        return []
    return [ToolInfo.from_dict(tool) for tool in tools]


def content_text(response: JsonRpcResponse) -> str:
    """Text of the first content item of a tools/call result."""
    content = (response.result or {}).get("content") or [{}]
    return content[0].get("text") or ""


def decode_line(line: str) -> Optional[JsonRpcResponse]:
    """Decode one line of server output.

    Args:
        line: A single line, already stripped of surrounding whitespace

    Returns:
        The response, or None when the message carries no id (a notification)

    Raises:
        ResponseParseError: If the line is not a JSON object
    """
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        raise ResponseParseError(str(e), raw=line) from e

    if not isinstance(message, dict):
        raise ResponseParseError(
            f"expected a JSON object, got {type(message).__name__}", raw=line
        )

    if "id" not in message or message["id"] is None:
        return None

    return JsonRpcResponse.from_dict(message)


class LineBuffer:
    """Accumulates stdout text and yields complete, non-empty lines."""

    def __init__(self):
        self._pending = ""

    def feed(self, text: str) -> List[str]:
        """Add a chunk of text and return the complete lines it finished."""
        self._pending += text
        *complete, self._pending = self._pending.split("\n")
        return [line.strip() for line in complete if line.strip()]

    def flush(self) -> List[str]:
        """Return any unterminated trailing line at end of stream."""
        rest, self._pending = self._pending.strip(), ""
        return [rest] if rest else []
