"""Dialogue state storage.

States are kept as JSON keyed by chat id:
- InMemoryDialogueStorage: per-process, for local dev and tests
- RedisDialogueStorage: shared across restarts and workers
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from deploybot.bot.state import ConversationState, StartState, dump_state, load_state
from deploybot.config import Settings


logger = logging.getLogger(__name__)


class DialogueStorage(ABC):
    """get/set/reset of one ``ConversationState`` per chat."""

    @abstractmethod
    async def get(self, chat_id: int) -> ConversationState:
        """Return the chat's state, ``StartState`` if none was stored."""
        ...

    @abstractmethod
    async def set(self, chat_id: int, state: ConversationState) -> None:
        ...

    @abstractmethod
    async def reset(self, chat_id: int) -> None:
        """Forget the chat's state so the next ``get`` returns ``StartState``."""
        ...

    async def close(self) -> None:
        return None


class InMemoryDialogueStorage(DialogueStorage):
    def __init__(self):
        self._states: dict[int, str] = {}

    async def get(self, chat_id: int) -> ConversationState:
        raw = self._states.get(chat_id)
        return load_state(raw) if raw is not None else StartState()

    async def set(self, chat_id: int, state: ConversationState) -> None:
        self._states[chat_id] = dump_state(state)

    async def reset(self, chat_id: int) -> None:
        self._states.pop(chat_id, None)


class RedisDialogueStorage(DialogueStorage):
    def __init__(self, client: Any, prefix: str = "deploybot:dialogue:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, prefix: str = "deploybot:dialogue:") -> RedisDialogueStorage:
        import redis.asyncio as redis  # lazy import

        return cls(redis.from_url(redis_url, decode_responses=True), prefix=prefix)

    def _key(self, chat_id: int) -> str:
        return f"{self.prefix}{chat_id}"

    async def get(self, chat_id: int) -> ConversationState:
        raw = await self.client.get(self._key(chat_id))
        return load_state(raw) if raw else StartState()

    async def set(self, chat_id: int, state: ConversationState) -> None:
        await self.client.set(self._key(chat_id), dump_state(state))

    async def reset(self, chat_id: int) -> None:
        await self.client.delete(self._key(chat_id))

    async def close(self) -> None:
        await self.client.aclose()


# -------------------------------------------------
# Factory
# -------------------------------------------------
def get_dialogue_storage(settings: Settings) -> DialogueStorage:
    if settings.redis_url:
        return RedisDialogueStorage.from_url(settings.redis_url, prefix=settings.dialogue_key_prefix)
    logger.warning("REDIS_URL not set, dialogue state is kept in memory")
    return InMemoryDialogueStorage()
