from deploybot.chat.base import ChatClient, IncomingMessage
from deploybot.chat.telegram import TelegramClient

__all__ = ["ChatClient", "IncomingMessage", "TelegramClient"]
