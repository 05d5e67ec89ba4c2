#!/usr/bin/env python3
"""
QueryMCP Server - Demo SSE peer for the MCP client
Provides a fake `query` tool (with an optional delay, so replies can be
made to arrive out of order) and an `echo` tool.
"""
import sys
import logging

import anyio
import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.responses import Response
from starlette.routing import Route, Mount

logger = logging.getLogger("querymcp")

# ============================================================================
# Server Initialization
# ============================================================================

server = Server("querymcp")
sse_transport = SseServerTransport("/messages/")


# ============================================================================
# SSE Handler
# ============================================================================

async def handle_sse(request):
    """Handle SSE connections for the MCP server."""
    async with sse_transport.connect_sse(request.scope, request.receive, request._send) as streams:
        await server.run(streams[0], streams[1], server.create_initialization_options())
    return Response()


# ============================================================================
# Tool Definitions
# ============================================================================

@server.list_tools()
async def list_tools() -> list[types.Tool]:
    """List all available tools."""
    return [
        types.Tool(
            name="query",
            description="Runs a query and reports which statement was executed.",
            inputSchema={
                "type": "object",
                "required": ["query"],
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The statement to run."
                    },
                    "delay": {
                        "type": "number",
                        "description": "Seconds to wait before answering (default: 0)."
                    }
                }
            },
        ),
        types.Tool(
            name="echo",
            description="Returns its text argument unchanged.",
            inputSchema={
                "type": "object",
                "required": ["text"],
                "properties": {
                    "text": {
                        "type": "string",
                        "description": "The text to echo."
                    }
                }
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
    """Handle tool calls."""
    if name == "query":
        statement = arguments.get("query", "")
        delay = float(arguments.get("delay", 0))
        if delay > 0:
            await anyio.sleep(delay)
        logger.info(f"Query tool called with query={statement!r}, delay={delay}")
        return [types.TextContent(type="text", text=f"executed: {statement}")]

    elif name == "echo":
        return [types.TextContent(type="text", text=arguments.get("text", ""))]

    raise ValueError(f"Unknown tool: {name}")


# ============================================================================
# Create Starlette App
# ============================================================================

app = Starlette(
    routes=[
        Route("/sse", endpoint=handle_sse, methods=["GET"]),
        Mount("/messages/", app=sse_transport.handle_post_message),
    ]
)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    logger.info("Starting QueryMCP Server on http://0.0.0.0:8777")
    try:
        uvicorn.run(app, host="0.0.0.0", port=8777)
    except KeyboardInterrupt:
        logger.info("Server shutting down gracefully...")
        sys.exit(0)


"""
Client Example:

    python mcpcall.py --url http://localhost:8777/sse --list-tools
    python mcpcall.py --url http://localhost:8777/sse --call query --args '{"query": "SELECT 1"}'
"""
