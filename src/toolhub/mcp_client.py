"""Multi-server MCP client session.

One ``McpSession`` wraps one ``fastmcp.Client`` built from an
``{"mcpServers": {...}}`` config covering every server a user can reach.
Sessions live for a single request: open, use, close.
"""

from dataclasses import dataclass, field
from typing import Any

from fastmcp import Client
from pydantic import BaseModel, Field
import structlog

logger = structlog.get_logger(__name__)


class ServerDescriptor(BaseModel):
    """Connection details for one remote tool server."""

    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def has_auth(self) -> bool:
        return "Authorization" in self.headers


@dataclass
class ToolSpec:
    """Tool definition as advertised by a server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


def build_mcp_config(descriptors: dict[str, ServerDescriptor]) -> dict[str, Any]:
    servers: dict[str, Any] = {}
    for name, descriptor in descriptors.items():
        entry: dict[str, Any] = {"url": descriptor.url, "transport": "http"}
        if descriptor.headers:
            entry["headers"] = dict(descriptor.headers)
        servers[name] = entry
    return {"mcpServers": servers}


def create_mcp_client(descriptors: dict[str, ServerDescriptor], timeout: float) -> Client:
    """Create a fastmcp client over all ``descriptors`` (not connected yet)."""
    return Client(build_mcp_config(descriptors), timeout=timeout)


class McpSession:
    """Connected view over a multi-server fastmcp client.

    Usage:
        async with McpSession.from_descriptors(descriptors, timeout=30) as session:
            tools = await session.list_tools()
    """

    def __init__(self, client: Client) -> None:
        self.client = client
        self.connected = False

    @classmethod
    def from_descriptors(
        cls, descriptors: dict[str, ServerDescriptor], timeout: float
    ) -> "McpSession":
        return cls(create_mcp_client(descriptors, timeout))

    async def connect(self) -> None:
        await self.client.__aenter__()
        self.connected = True

    async def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        await self.client.__aexit__(None, None, None)

    async def __aenter__(self) -> "McpSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def list_tools(self) -> list[ToolSpec]:
        """Aggregated tool catalog across all servers."""
        tools = await self.client.list_tools()
        return [
            ToolSpec(
                name=tool.name,
                description=tool.description or "",
                input_schema=getattr(tool, "inputSchema", None) or {},
            )
            for tool in tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Call a tool and flatten its content blocks to text."""
        result = await self.client.call_tool(name, arguments)
        parts = []
        for item in result.content or []:
            text = getattr(item, "text", None)
            parts.append(text if text is not None else str(item))
        return "\n".join(parts)
