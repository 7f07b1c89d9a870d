"""toolhub - per-user MCP tool access with API-key and OAuth credentials."""

from .components import HubComponents, build_components
from .hub import AccessibleServer, AgentSession, ToolHub

__all__ = [
    "AccessibleServer",
    "AgentSession",
    "HubComponents",
    "ToolHub",
    "build_components",
]
