"""Routers package."""

from . import auth, chat, health, oauth, servers, tools

__all__ = [
    "auth",
    "chat",
    "health",
    "oauth",
    "servers",
    "tools",
]
