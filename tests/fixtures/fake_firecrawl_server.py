"""Scripted stand-in for the Firecrawl MCP server.

Speaks newline-delimited JSON-RPC on stdio. Behaviour is selected with
FAKE_SERVER_MODE; every received message is appended to FAKE_SERVER_LOG.
"""
import json
import os
import sys
import time

MODE = os.environ.get("FAKE_SERVER_MODE", "auth_error")
LOG_PATH = os.environ.get("FAKE_SERVER_LOG")
STDERR_TEXT = os.environ.get("FAKE_SERVER_STDERR")
TOOLS_OVERRIDE = os.environ.get("FAKE_SERVER_TOOLS")

TOOLS = [
    {
        "name": "firecrawl_scrape",
        "description": "Scrape a single webpage.\nSupports markdown and html formats.",
        "inputSchema": {"type": "object", "properties": {"url": {"type": "string"}}, "required": ["url"]},
    },
    {
        "name": "firecrawl_map",
        "description": "Map a website to discover URLs.",
        "inputSchema": {"type": "object", "properties": {"url": {"type": "string"}}, "required": ["url"]},
    },
]

SCRAPED_TEXT = "# Example Domain\n\n" + "This domain is for use in illustrative examples. " * 10


def log(entry):
    if LOG_PATH:
        with open(LOG_PATH, "a") as f:
            f.write(json.dumps(entry) + "\n")


def write(text):
    sys.stdout.write(text)
    sys.stdout.flush()


def send(message):
    write(json.dumps(message) + "\n")


def respond(request_id, result):
    send({"jsonrpc": "2.0", "id": request_id, "result": result})


def handle(message):
    method = message.get("method")
    request_id = message.get("id")

    if method == "initialize":
        if MODE == "crash":
            sys.exit(2)
        if MODE == "garbage":
            write("Firecrawl MCP Server starting (not json)\n")
        elif MODE == "binary":
            sys.stdout.buffer.write(b"\xff\xfe garbage\n")
            sys.stdout.buffer.flush()
        result = {
            "protocolVersion": message["params"]["protocolVersion"],
            "capabilities": {"tools": {}, "logging": {}},
            "serverInfo": {"name": "firecrawl-mcp", "version": "1.0.0"},
        }
        if MODE == "split":
            line = json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result}) + "\n"
            write(line[:10])
            time.sleep(0.1)
            write(line[10:])
        elif MODE == "batched":
            notice = {"jsonrpc": "2.0", "method": "notifications/message", "params": {"level": "info", "data": "ready"}}
            write(json.dumps(notice) + "\n" + json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result}) + "\n")
        else:
            respond(request_id, result)
            if MODE == "duplicate":
                respond(request_id, result)
    elif method == "tools/list":
        if TOOLS_OVERRIDE is not None:
            tools = json.loads(TOOLS_OVERRIDE)
        else:
            tools = [] if MODE == "no_tools" else TOOLS
        respond(request_id, {"tools": tools})
    elif method == "tools/call":
        if MODE == "success":
            respond(request_id, {"content": [{"type": "text", "text": SCRAPED_TEXT}], "isError": False})
        else:
            send({
                "jsonrpc": "2.0",
                "id": request_id,
                "error": {"code": -32603, "message": "Unauthorized: Invalid API key"},
            })
    elif request_id is not None:
        send({"jsonrpc": "2.0", "id": request_id, "error": {"code": -32601, "message": "Method not found"}})


def main():
    log({"event": "start", "api_key": os.environ.get("FIRECRAWL_API_KEY")})
    if STDERR_TEXT:
        sys.stderr.write(STDERR_TEXT + "\n")
        sys.stderr.flush()

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        message = json.loads(line)
        log({"event": "message", "method": message.get("method"), "id": message.get("id")})
        handle(message)

    log({"event": "eof"})
    if MODE == "linger":
        time.sleep(30)


if __name__ == "__main__":
    main()
