"""Per-thread conversation history.

Each chat thread keeps a sliding window of its most recent messages, used to
seed agent instructions. Writes are last-writer-wins.
"""

import json
import time

from pydantic import BaseModel, ValidationError
import structlog

from .storage import KeyValueStore, conversation_key

logger = structlog.get_logger(__name__)

DEFAULT_MAX_MESSAGES = 20


class ChatMessage(BaseModel):
    role: str
    content: str


class ConversationEntry(BaseModel):
    """Stored value under ``conversation:{thread_id}``."""

    messages: list[ChatMessage]
    lastUpdated: int
    messageCount: int


def render_history(messages: list[ChatMessage]) -> str:
    """Render history as an instruction prefix.

    One ``role: content`` line per message, oldest first, followed by a
    blank line. Empty history renders as an empty string.
    """
    if not messages:
        return ""
    lines = "\n".join(f"{m.role}: {m.content}" for m in messages)
    return f"Previous conversation:\n{lines}\n\n"


class ConversationCache:
    """Bounded message history keyed by thread id."""

    def __init__(self, kv: KeyValueStore, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        self.kv = kv
        self.max_messages = max_messages

    async def load(self, thread_id: str) -> list[ChatMessage]:
        """Return the thread's messages; missing or corrupt history is empty."""
        raw = await self.kv.get(conversation_key(thread_id))
        if not raw:
            return []
        try:
            entry = ConversationEntry.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("conversation_history_corrupt", thread_id=thread_id)
            return []
        return entry.messages

    async def save(self, thread_id: str, messages: list[ChatMessage]) -> None:
        messages = messages[-self.max_messages :]
        entry = ConversationEntry(
            messages=messages,
            lastUpdated=int(time.time() * 1000),
            messageCount=len(messages),
        )
        await self.kv.put(conversation_key(thread_id), entry.model_dump_json())

    async def append(self, thread_id: str, role: str, content: str) -> None:
        """Push one message, dropping the oldest beyond the window."""
        messages = await self.load(thread_id)
        messages.append(ChatMessage(role=role, content=content))
        await self.save(thread_id, messages)
