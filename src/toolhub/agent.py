"""LLM agent that answers a prompt using MCP tools.

The agent binds the tool catalog of an open ``McpSession`` to a chat model
and runs a bounded tool-calling loop, routing every call through the
session.
"""

from dataclasses import dataclass
import time
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_openai import ChatOpenAI
import structlog

from .exceptions import ConfigurationError
from .mcp_client import McpSession, ToolSpec

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 8


@dataclass(frozen=True)
class AgentReply:
    text: str


class LLMFactory:
    """Factory for chat model instances."""

    @staticmethod
    def create_llm(model: str, api_key: str | None, temperature: float = 0.0) -> ChatOpenAI:
        """Create a ChatOpenAI client for ``model``.

        Raises:
            ConfigurationError: If no OpenAI API key is configured.
        """
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        logger.info("llm_created", model=model, temperature=temperature)
        return ChatOpenAI(api_key=api_key, model=model, temperature=temperature)


def tool_to_openai_function(tool: ToolSpec) -> dict[str, Any]:
    """Convert an MCP tool definition to an OpenAI function schema."""
    parameters = tool.input_schema or {"type": "object", "properties": {}}
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters,
        },
    }


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ToolAgent:
    """Chat model plus an optional tool session.

    Args:
        name: Agent display name.
        instructions: System prompt, history prefix included.
        llm: Chat model.
        tools: Tool catalog of ``session``; empty for a tool-less agent.
        session: Open MCP session used to execute tool calls.
        max_tool_rounds: Upper bound on model turns that request tools.
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        llm: BaseChatModel,
        tools: list[ToolSpec] | None = None,
        session: McpSession | None = None,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        self.name = name
        self.instructions = instructions
        self.llm = llm
        self.tools = tools or []
        self.session = session
        self.max_tool_rounds = max_tool_rounds
        self.tool_names = {tool.name for tool in self.tools}

    @property
    def tool_count(self) -> int:
        return len(self.tools)

    async def generate(self, prompt: str) -> AgentReply:
        messages: list[BaseMessage] = []
        if self.instructions:
            messages.append(SystemMessage(content=self.instructions))
        messages.append(HumanMessage(content=prompt))

        if not self.tools:
            response = await self.llm.ainvoke(messages)
            return AgentReply(text=_message_text(response))

        model = self.llm.bind_tools([tool_to_openai_function(t) for t in self.tools])
        for _ in range(self.max_tool_rounds):
            response = await model.ainvoke(messages)
            messages.append(response)
            if not isinstance(response, AIMessage) or not response.tool_calls:
                return AgentReply(text=_message_text(response))
            for tool_call in response.tool_calls:
                messages.append(await self._execute_tool(tool_call))

        logger.warning("agent_tool_rounds_exhausted", agent=self.name, rounds=self.max_tool_rounds)
        response = await self.llm.ainvoke(messages)
        return AgentReply(text=_message_text(response))

    async def _execute_tool(self, tool_call: dict[str, Any]) -> ToolMessage:
        tool_name = tool_call["name"]
        tool_call_id = tool_call["id"]

        if self.session is None or tool_name not in self.tool_names:
            logger.warning("unknown_tool_called", tool_name=tool_name)
            return ToolMessage(content=f"Unknown tool: {tool_name}", tool_call_id=tool_call_id)

        logger.info("tool_execution_start", tool_name=tool_name, tool_call_id=tool_call_id)
        start = time.time()
        try:
            result = await self.session.call_tool(tool_name, tool_call.get("args") or {})
        except Exception as e:
            logger.error(
                "tool_execution_failed",
                tool_name=tool_name,
                tool_call_id=tool_call_id,
                duration_ms=round((time.time() - start) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
            )
            return ToolMessage(
                content=f"Error executing {tool_name}: {e!s}", tool_call_id=tool_call_id
            )

        logger.info(
            "tool_execution_complete",
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return ToolMessage(content=result, tool_call_id=tool_call_id)
