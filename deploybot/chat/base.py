"""Abstract base class for chat transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class IncomingMessage:
    """An update received from the chat; ``text`` is None for non-text updates."""
    update_id: int
    chat_id: int | None
    text: str | None


class ChatClient(ABC):
    """Abstract base class for chat transport adapters.

    The HTTP handlers and the dialogue engine only talk to chats through
    this interface, so the Telegram adapter can be swapped for a fake in
    tests. One instance is shared by every request and chat turn.
    """

    @abstractmethod
    async def send_message(self, chat_id: int, text: str) -> None:
        """Send an HTML formatted message to a chat.

        Raises:
            NotifyError: the message could not be delivered
            NotifyTimeoutError: the transport timed out
        """
        ...

    @abstractmethod
    async def set_commands_menu(self, chat_id: int) -> None:
        """Point the chat's menu button at the bot command list."""
        ...

    @abstractmethod
    async def get_updates(self, offset: int | None = None) -> list[IncomingMessage]:
        """Long-poll for new text messages after ``offset``."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
