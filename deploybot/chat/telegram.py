"""Telegram Bot API adapter.

Talks to https://api.telegram.org/bot<token>/<method> with httpx.
Methods used:
- sendMessage: notifications and dialogue replies (HTML parse mode)
- setChatMenuButton: show the command list as the chat menu
- getUpdates: long polling for incoming messages
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from deploybot.chat.base import ChatClient, IncomingMessage
from deploybot.config import Settings
from deploybot.errors import ConfigurationError, NotifyError, NotifyTimeoutError


logger = logging.getLogger(__name__)


class TelegramClient(ChatClient):
    """Telegram Bot API adapter using one shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        poll_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not token:
            raise ConfigurationError("telegram bot token")

        self.poll_timeout = poll_timeout
        # sendMessage has no deadline of its own; getUpdates sets one per call
        self._client = httpx.AsyncClient(
            base_url=f"{api_url.rstrip('/')}/bot{token}/",
            timeout=httpx.Timeout(None),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> TelegramClient:
        return cls(
            token=settings.telegram_bot_token,
            api_url=settings.telegram_api_url,
            poll_timeout=settings.telegram_poll_timeout,
        )

    async def _call(
        self,
        method: str,
        payload: dict[str, Any],
        timeout: float | None = None,
    ) -> Any:
        try:
            response = await self._client.post(
                method,
                json=payload,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            raise NotifyTimeoutError(f"telegram {method} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NotifyError(f"telegram {method} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise NotifyError(
                f"telegram {method} returned non-JSON response ({response.status_code})"
            ) from e

        if response.status_code != 200 or not data.get("ok"):
            description = data.get("description", "unknown error")
            raise NotifyError(f"telegram {method} rejected ({response.status_code}): {description}")

        return data.get("result")

    async def send_message(self, chat_id: int, text: str) -> None:
        await self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "link_preview_options": {"is_disabled": True},
            },
        )

    async def set_commands_menu(self, chat_id: int) -> None:
        await self._call(
            "setChatMenuButton",
            {"chat_id": chat_id, "menu_button": {"type": "commands"}},
        )

    async def get_updates(self, offset: int | None = None) -> list[IncomingMessage]:
        payload: dict[str, Any] = {
            "timeout": self.poll_timeout,
            "allowed_updates": ["message"],
        }
        if offset is not None:
            payload["offset"] = offset

        result = await self._call("getUpdates", payload, timeout=self.poll_timeout + 10)

        messages: list[IncomingMessage] = []
        for update in result or []:
            message = update.get("message") or {}
            text = message.get("text")
            chat = message.get("chat") or {}
            # Non-text updates are kept so the offset still advances past them
            messages.append(
                IncomingMessage(
                    update_id=update["update_id"],
                    chat_id=chat.get("id"),
                    text=text,
                )
            )
        return messages

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
