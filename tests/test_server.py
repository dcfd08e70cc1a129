"""Tests for sdkgen.server: MCP tool registration."""

from __future__ import annotations

import pytest

from sdkgen.config import Settings
from sdkgen.server import SERVER_NAME, create_server
from tests.test_tools import EXPECTED_TOOLS


class TestCreateServer:
    def test_name(self) -> None:
        assert create_server(Settings()).name == SERVER_NAME

    @pytest.mark.asyncio
    async def test_lists_registry_tools(self) -> None:
        tools = await create_server(Settings()).list_tools()
        assert {tool.name for tool in tools} == EXPECTED_TOOLS

    @pytest.mark.asyncio
    async def test_parameters_are_described(self) -> None:
        tools = {tool.name: tool for tool in await create_server(Settings()).list_tools()}
        schema = tools["build_java_sdk"].inputSchema
        assert set(schema["required"]) == {"module_directory", "group_id", "artifact_id"}
        assert schema["properties"]["group_id"]["description"] == "The group ID for the Java SDK"

    @pytest.mark.asyncio
    async def test_call_tool_returns_text(self) -> None:
        server = create_server(Settings())
        result = await server.call_tool(
            "update_client_name", {"old_name": "Foo", "new_name": "Bar"}
        )
        # FastMCP returns either content blocks or (content, structured) depending on version.
        content = result[0] if isinstance(result, tuple) else result
        assert "rename Foo to Bar" in content[0].text
