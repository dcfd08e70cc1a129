"""MCP stdio server exposing the sdkgen tool registry."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from sdkgen.config import Settings, load_settings
from sdkgen.tools import build_tool_registry

logger = logging.getLogger(__name__)

SERVER_NAME = "java-sdk-tools-server"


def create_server(settings: Settings | None = None) -> FastMCP:
    """Create a FastMCP server with every registry tool registered."""
    settings = settings or load_settings()
    server = FastMCP(SERVER_NAME)
    for tool in build_tool_registry(settings).values():
        server.add_tool(
            tool.handler,
            name=tool.name,
            title=tool.title,
            description=tool.description,
        )
    return server


def run_server(settings: Settings | None = None) -> None:
    """Serve the tools over stdio until the client disconnects."""
    from sdkgen.tracing import init_tracing, shutdown_tracing

    init_tracing()
    server = create_server(settings)
    logger.info("Java SDK tools MCP server running on stdio")
    try:
        server.run(transport="stdio")
    finally:
        shutdown_tracing()
