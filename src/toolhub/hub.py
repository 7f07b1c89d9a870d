"""Tool-access hub.

Combines the server registry, stored credentials and OAuth tokens into
per-user MCP connections. Every connection is opened and closed within the
call that needs it.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel
import structlog

from .agent import DEFAULT_MAX_TOOL_ROUNDS, ToolAgent
from .conversation import ChatMessage, render_history
from .credentials import ABSENT, Credential, CredentialStore, Present
from .mcp_client import McpSession, ServerDescriptor
from .oauth import OAuthFlowController
from .providers import ProviderTable
from .registry import ServerRegistry

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[dict[str, ServerDescriptor], float], McpSession]

AGENT_INSTRUCTIONS = (
    "You are a helpful assistant with access to tools from the user's connected "
    "MCP servers. Use the tools when they help answer the request, and say so "
    "plainly when a tool fails or a server is not connected."
)


class AccessibleServer(BaseModel):
    name: str
    url: str
    has_auth: bool


async def _noop() -> None:
    return None


@dataclass
class AgentSession:
    """An agent plus the cleanup that releases its MCP connection.

    Usage:
        async with await hub.create_agent_session(user_id, passphrase, history) as agent:
            reply = await agent.generate(text)
    """

    agent: ToolAgent
    cleanup: Callable[[], Awaitable[None]] = _noop

    async def __aenter__(self) -> ToolAgent:
        return self.agent

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()


class ToolHub:
    """Per-user view over the global server registry.

    Args:
        registry: Global server registry.
        credentials: Encrypted API keys.
        oauth: OAuth controller, used to resolve stored tokens.
        providers: Provider table deciding OAuth capability and header scheme.
        llm_factory: Builds the chat model for each agent session.
        session_factory: Builds an unconnected ``McpSession`` for descriptors.
        mcp_timeout: Timeout passed to every MCP client.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        credentials: CredentialStore,
        oauth: OAuthFlowController,
        providers: ProviderTable,
        llm_factory: Callable[[], BaseChatModel],
        session_factory: SessionFactory = McpSession.from_descriptors,
        mcp_timeout: float = 30.0,
        agent_name: str = "MCP Agent",
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        self.registry = registry
        self.credentials = credentials
        self.oauth = oauth
        self.providers = providers
        self.llm_factory = llm_factory
        self.session_factory = session_factory
        self.mcp_timeout = mcp_timeout
        self.agent_name = agent_name
        self.max_tool_rounds = max_tool_rounds

    # === Registry ===

    async def list_servers(self) -> dict[str, str]:
        return await self.registry.list()

    async def add_server(self, name: str, url: str) -> None:
        await self.registry.upsert(name, url)

    async def remove_server(self, name: str) -> None:
        await self.registry.remove(name)

    # === API keys ===

    async def add_user_api_key(
        self, user_id: str, server_name: str, api_key: str, passphrase: str | None
    ) -> None:
        await self.credentials.store_api_key(user_id, server_name, api_key, passphrase)

    async def user_has_api_key(self, user_id: str, server_name: str) -> bool:
        return await self.credentials.has_api_key(user_id, server_name)

    async def user_has_access_to_server(
        self, user_id: str, server_name: str, passphrase: str | None
    ) -> bool:
        """True if the server is registered and, given a passphrase, the user has a key."""
        servers = await self.registry.list()
        if server_name.lower() not in servers:
            return False
        if not passphrase:
            return True
        return await self.credentials.has_api_key(user_id, server_name)

    # === Credential resolution ===

    async def resolve_server_credential(
        self, user_id: str, server_name: str, passphrase: str | None
    ) -> Credential[str]:
        """OAuth token first (OAuth-capable servers only), then API key."""
        if not passphrase:
            return ABSENT

        if self.providers.is_oauth_capable(server_name):
            token = await self.oauth.resolve_credential(user_id, server_name, passphrase)
            if isinstance(token, Present):
                return token

        return await self.credentials.load_api_key(user_id, server_name, passphrase)

    async def build_server_descriptors(
        self, user_id: str, passphrase: str | None
    ) -> dict[str, ServerDescriptor]:
        """Descriptors for every registered server.

        Servers without a usable credential are included without headers.
        """
        return await self._descriptors_for(await self.registry.list(), user_id, passphrase)

    async def _descriptors_for(
        self, servers: dict[str, str], user_id: str, passphrase: str | None
    ) -> dict[str, ServerDescriptor]:
        descriptors = {}
        for name, url in servers.items():
            credential = (
                await self.resolve_server_credential(user_id, name, passphrase)
            ).value_or_none()
            headers = self.providers.auth_header(name, credential) if credential else {}
            descriptors[name] = ServerDescriptor(url=url, headers=headers)
        return descriptors

    async def accessible_servers(
        self, user_id: str, passphrase: str | None, require_auth: bool = False
    ) -> list[AccessibleServer]:
        """Registered servers with the user's authentication status.

        Without a passphrase credentials cannot be checked and every server
        is reported as authenticated.
        """
        result = []
        for name, url in (await self.registry.list()).items():
            if passphrase:
                credential = await self.resolve_server_credential(user_id, name, passphrase)
                has_auth = isinstance(credential, Present)
            else:
                has_auth = True
            if require_auth and not has_auth:
                continue
            result.append(AccessibleServer(name=name, url=url, has_auth=has_auth))
        return result

    async def authenticated_servers(
        self, user_id: str, passphrase: str | None
    ) -> list[AccessibleServer]:
        return await self.accessible_servers(user_id, passphrase, require_auth=True)

    # === Connections ===

    async def _safe_disconnect(self, session: McpSession) -> None:
        try:
            await session.disconnect()
        except Exception as e:
            logger.warning("mcp_disconnect_failed", error=str(e), error_type=type(e).__name__)

    async def list_tools(self, user_id: str, passphrase: str | None) -> list[str]:
        """Names of all tools the user can reach."""
        servers = await self.registry.list()
        if not servers:
            return []

        descriptors = await self._descriptors_for(servers, user_id, passphrase)
        session = self.session_factory(descriptors, self.mcp_timeout)
        try:
            await session.connect()
            tools = await session.list_tools()
            logger.info("mcp_tools_listed", user_id=user_id, servers=len(servers), tools=len(tools))
            return [tool.name for tool in tools]
        except Exception:
            logger.exception("mcp_list_tools_failed", user_id=user_id)
            raise
        finally:
            await self._safe_disconnect(session)

    async def create_agent_session(
        self,
        user_id: str,
        passphrase: str | None,
        history: list[ChatMessage] | None = None,
    ) -> AgentSession:
        """Build an agent wired to the user's tools.

        With no registered servers the agent has no tools and no connection
        is opened. Otherwise the returned session's cleanup closes the MCP
        connection; if setup fails the connection is closed before the error
        propagates.
        """
        instructions = render_history(history or []) + AGENT_INSTRUCTIONS
        servers = await self.registry.list()
        llm = self.llm_factory()

        if not servers:
            agent = ToolAgent(
                self.agent_name, instructions, llm, max_tool_rounds=self.max_tool_rounds
            )
            return AgentSession(agent=agent)

        descriptors = await self._descriptors_for(servers, user_id, passphrase)
        session = self.session_factory(descriptors, self.mcp_timeout)
        try:
            await session.connect()
            tools = await session.list_tools()
        except Exception:
            logger.exception("mcp_agent_setup_failed", user_id=user_id)
            await self._safe_disconnect(session)
            raise

        agent = ToolAgent(
            self.agent_name,
            instructions,
            llm,
            tools=tools,
            session=session,
            max_tool_rounds=self.max_tool_rounds,
        )
        logger.info("agent_session_created", user_id=user_id, tools=len(tools))
        return AgentSession(agent=agent, cleanup=partial(self._safe_disconnect, session))
