from typing import Any
from unittest.mock import MagicMock

from fakeredis import FakeAsyncRedis
from langchain_core.messages import AIMessage
import pytest

from toolhub.components import build_components
from toolhub.config import Settings
from toolhub.mcp_client import ToolSpec
from toolhub.storage import RedisKeyValueStore

PASSPHRASE = "test-passphrase"


class FakeSession:
    """Stands in for McpSession; records lifecycle calls."""

    def __init__(
        self,
        tools: list[ToolSpec] | None = None,
        fail_on_list: Exception | None = None,
        fail_on_disconnect: Exception | None = None,
    ):
        self.tools = tools or []
        self.fail_on_list = fail_on_list
        self.fail_on_disconnect = fail_on_disconnect
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.tool_calls: list[tuple[str, dict]] = []
        self.tool_results: dict[str, str] = {}

    async def connect(self) -> None:
        self.connect_calls += 1
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False
        if self.fail_on_disconnect:
            raise self.fail_on_disconnect

    async def list_tools(self) -> list[ToolSpec]:
        if self.fail_on_list:
            raise self.fail_on_list
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        self.tool_calls.append((name, arguments))
        return self.tool_results.get(name, f"{name} ok")


class ScriptedLLM:
    """Chat model double returning queued responses."""

    def __init__(self, responses: list[AIMessage] | None = None):
        self.responses = list(responses or [AIMessage(content="hello")])
        self.calls: list[list] = []
        self.bound_tools: list[dict] | None = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def fake_redis():
    return FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def kv(fake_redis):
    return RedisKeyValueStore(fake_redis)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        encryption_key=PASSPHRASE,
        sentry_client_id="sentry-id",
        sentry_client_secret="sentry-secret",
        sentry_redirect_uri="https://hub.test/oauth/callback",
        github_client_id="github-id",
        github_client_secret="github-secret",
        github_redirect_uri="https://hub.test/oauth/callback",
    )


@pytest.fixture
def fake_session():
    return FakeSession(tools=[ToolSpec(name="search", description="Search things")])


@pytest.fixture
def session_factory(fake_session):
    return MagicMock(return_value=fake_session)


@pytest.fixture
def llm():
    return ScriptedLLM()


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def components(kv, settings, session_factory, llm, clock):
    return build_components(
        kv,
        settings,
        llm_factory=lambda: llm,
        session_factory=session_factory,
        clock=clock,
    )
