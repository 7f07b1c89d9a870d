"""Object graph for one running hub (API process or CLI invocation)."""

from collections.abc import Callable
from dataclasses import dataclass
import time

from langchain_core.language_models import BaseChatModel

from .actions import ChatActions
from .agent import LLMFactory
from .config import Settings
from .conversation import ConversationCache
from .credentials import CredentialStore
from .hub import SessionFactory, ToolHub
from .mcp_client import McpSession
from .oauth import OAuthFlowController
from .providers import ProviderTable
from .registry import ServerRegistry
from .storage import KeyValueStore


@dataclass
class HubComponents:
    settings: Settings
    kv: KeyValueStore
    registry: ServerRegistry
    credentials: CredentialStore
    providers: ProviderTable
    oauth: OAuthFlowController
    hub: ToolHub
    conversation: ConversationCache
    actions: ChatActions

    @property
    def passphrase(self) -> str | None:
        return self.settings.encryption_key


def build_components(
    kv: KeyValueStore,
    settings: Settings,
    *,
    providers: ProviderTable | None = None,
    llm_factory: Callable[[], BaseChatModel] | None = None,
    session_factory: SessionFactory = McpSession.from_descriptors,
    clock: Callable[[], float] = time.time,
) -> HubComponents:
    """Wire every component over ``kv`` using ``settings``."""
    registry = ServerRegistry(kv, max_retries=settings.registry_max_retries)
    credentials = CredentialStore(kv)
    providers = providers or ProviderTable.from_settings(settings)
    oauth = OAuthFlowController(
        credentials,
        registry,
        providers,
        passphrase=settings.encryption_key,
        state_ttl=settings.oauth_state_ttl_seconds,
        http_timeout=settings.oauth_http_timeout_seconds,
        clock=clock,
    )
    if llm_factory is None:

        def llm_factory() -> BaseChatModel:
            return LLMFactory.create_llm(settings.agent_model, settings.openai_api_key)

    hub = ToolHub(
        registry,
        credentials,
        oauth,
        providers,
        llm_factory=llm_factory,
        session_factory=session_factory,
        mcp_timeout=settings.mcp_timeout_seconds,
        agent_name=settings.agent_name,
        max_tool_rounds=settings.agent_max_tool_rounds,
    )
    conversation = ConversationCache(kv, max_messages=settings.conversation_max_messages)
    actions = ChatActions(hub, oauth, conversation, passphrase=settings.encryption_key)
    return HubComponents(
        settings=settings,
        kv=kv,
        registry=registry,
        credentials=credentials,
        providers=providers,
        oauth=oauth,
        hub=hub,
        conversation=conversation,
        actions=actions,
    )
