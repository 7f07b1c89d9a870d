from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolhub.mcp_client import McpSession, ServerDescriptor, build_mcp_config, create_mcp_client


def test_build_mcp_config():
    config = build_mcp_config(
        {
            "demo": ServerDescriptor(
                url="https://x.test/mcp", headers={"Authorization": "Bearer k1"}
            ),
            "public": ServerDescriptor(url="https://p.test/mcp"),
        }
    )

    assert config == {
        "mcpServers": {
            "demo": {
                "url": "https://x.test/mcp",
                "transport": "http",
                "headers": {"Authorization": "Bearer k1"},
            },
            "public": {"url": "https://p.test/mcp", "transport": "http"},
        }
    }


def test_create_mcp_client_passes_timeout():
    with patch("toolhub.mcp_client.Client") as client_cls:
        create_mcp_client({"demo": ServerDescriptor(url="https://x.test/mcp")}, timeout=12.5)

    config = client_cls.call_args.args[0]
    assert list(config["mcpServers"]) == ["demo"]
    assert client_cls.call_args.kwargs == {"timeout": 12.5}


@pytest.fixture
def client():
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    client.list_tools = AsyncMock(
        return_value=[
            SimpleNamespace(
                name="search", description="Search", inputSchema={"type": "object"}
            ),
            SimpleNamespace(name="ping", description=None, inputSchema=None),
        ]
    )
    client.call_tool = AsyncMock(
        return_value=SimpleNamespace(
            content=[SimpleNamespace(text="line 1"), SimpleNamespace(text="line 2")]
        )
    )
    return client


class TestMcpSession:
    @pytest.mark.asyncio
    async def test_context_manager_connects_and_disconnects(self, client):
        async with McpSession(client) as session:
            assert session.connected

        client.__aenter__.assert_awaited_once()
        client.__aexit__.assert_awaited_once()
        assert not session.connected

    @pytest.mark.asyncio
    async def test_disconnect_without_connect_is_noop(self, client):
        await McpSession(client).disconnect()

        client.__aexit__.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, client):
        session = McpSession(client)
        await session.connect()

        await session.disconnect()
        await session.disconnect()

        client.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_tools(self, client):
        tools = await McpSession(client).list_tools()

        assert [(t.name, t.description, t.input_schema) for t in tools] == [
            ("search", "Search", {"type": "object"}),
            ("ping", "", {}),
        ]

    @pytest.mark.asyncio
    async def test_call_tool_flattens_text(self, client):
        result = await McpSession(client).call_tool("search", {"q": "x"})

        assert result == "line 1\nline 2"
        client.call_tool.assert_awaited_once_with("search", {"q": "x"})
