"""Chat actions.

Handlers a chat transport calls with already-parsed input (message text,
form submissions). Every handler returns the plain-text reply to post back;
failures are logged and turned into short, non-technical messages.
"""

import structlog

from .conversation import ConversationCache
from .exceptions import HubError, OAuthFlowError
from .hub import ToolHub
from .oauth import OAuthFlowController

logger = structlog.get_logger(__name__)

MESSAGE_ERROR_REPLY = "Sorry, I encountered an error processing your message. Please try again."
NO_SERVERS_REPLY = "No servers configured yet. Use the 'Add Server' button to add one!"
NO_TOOLS_REPLY = (
    "No tools available. Make sure you have configured MCP servers with valid authentication."
)


class ChatActions:
    """Structured-input handlers for one workspace."""

    def __init__(
        self,
        hub: ToolHub,
        oauth: OAuthFlowController,
        conversation: ConversationCache,
        passphrase: str | None,
    ) -> None:
        self.hub = hub
        self.oauth = oauth
        self.conversation = conversation
        self.passphrase = passphrase

    async def respond(self, user_id: str, thread_id: str, text: str) -> str:
        """Generate a reply with the user's tools and record the exchange.

        Errors propagate; the agent's MCP connection is closed either way.
        """
        history = await self.conversation.load(thread_id)
        session = await self.hub.create_agent_session(user_id, self.passphrase, history)
        async with session as agent:
            reply = await agent.generate(text)
        await self.conversation.append(thread_id, "user", text)
        await self.conversation.append(thread_id, "assistant", reply.text)
        logger.info(
            "message_processed", user_id=user_id, thread_id=thread_id, reply_length=len(reply.text)
        )
        return reply.text

    async def handle_message(self, user_id: str, thread_id: str, text: str) -> str:
        """Chat entry point: like ``respond`` but failures become an apology."""
        text = text.strip()
        if not text:
            return ""
        try:
            return await self.respond(user_id, thread_id, text)
        except Exception:
            logger.exception("message_processing_failed", user_id=user_id, thread_id=thread_id)
            return MESSAGE_ERROR_REPLY

    async def add_server(
        self, user_id: str, name: str, url: str, api_key: str | None = None
    ) -> str:
        name, url = (name or "").strip(), (url or "").strip()
        if not name or not url:
            return (
                "Error: Server name and URL are required fields. "
                "Please fill in both fields and try again."
            )
        try:
            await self.hub.add_server(name, url)
            if api_key:
                await self.hub.add_user_api_key(user_id, name, api_key, self.passphrase)
        except HubError as e:
            logger.error("server_add_failed", server=name, error=str(e))
            return e.user_message
        return f'Server "{name.lower()}" configured successfully!'

    async def remove_server(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            return "Error: Please select a server to remove."
        try:
            await self.hub.remove_server(name)
        except HubError as e:
            logger.error("server_remove_failed", server=name, error=str(e))
            return e.user_message
        return f'Server "{name.lower()}" has been removed successfully!'

    async def submit_api_key(self, user_id: str, server_name: str, api_key: str) -> str:
        server_name, api_key = (server_name or "").strip(), (api_key or "").strip()
        if not server_name or not api_key:
            return "Error: Server name and API key are required."
        try:
            await self.hub.add_user_api_key(user_id, server_name, api_key, self.passphrase)
        except HubError as e:
            logger.error("api_key_save_failed", user_id=user_id, server=server_name, error=str(e))
            return e.user_message
        return f'Authentication for "{server_name}" saved successfully!'

    async def start_oauth(self, user_id: str, service: str) -> str:
        if not service:
            return "Error: Please select a service to authenticate with."
        try:
            url = await self.oauth.start(user_id, service)
        except OAuthFlowError as e:
            return f"Error: {e.user_message}"
        except HubError as e:
            logger.error("oauth_start_failed", user_id=user_id, service=service, error=str(e))
            return e.user_message
        return (
            "*OAuth Authentication Required*\n\n"
            f"To authenticate with {service}, open this link in your browser:\n\n"
            f"{url}\n\n"
            "*Note:* This link will expire in 10 minutes."
        )

    async def list_servers(self, user_id: str) -> str:
        servers = await self.hub.accessible_servers(user_id, self.passphrase)
        if not servers:
            return NO_SERVERS_REPLY
        lines = "\n".join(
            f"• *{s.name}*: {s.url}" + ("" if s.has_auth else " (not authenticated)")
            for s in servers
        )
        return f"*Configured MCP Servers:*\n\n{lines}"

    async def list_tools(self, user_id: str) -> str:
        try:
            tools = await self.hub.list_tools(user_id, self.passphrase)
        except Exception:
            logger.exception("tool_listing_failed", user_id=user_id)
            return "An error occurred while retrieving tools. Please try again or contact support."
        if not tools:
            return NO_TOOLS_REPLY
        lines = "\n".join(f"• {tool}" for tool in tools)
        return f"*Available MCP Tools:*\n\n{lines}"

    def oauth_services(self) -> str:
        services = self.oauth.providers.services()
        if not services:
            return "No OAuth services are configured."
        return "Available OAuth services: " + ", ".join(services)
