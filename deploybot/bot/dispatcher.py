"""Chat update dispatcher.

Long-polls the chat transport and feeds each text message to the dialogue
engine. A failing update is logged and answered generically; it never
stops the loop for other chats.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from deploybot.bot.engine import DialogueEngine
from deploybot.chat.base import ChatClient, IncomingMessage
from deploybot.errors import NotifyError, ServiceError


logger = logging.getLogger(__name__)

# Backoff between failed polls, in seconds
MIN_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 30.0


class ChatDispatcher:
    def __init__(self, chat: ChatClient, engine: DialogueEngine):
        self.chat = chat
        self.engine = engine

    async def run(self, stop: asyncio.Event) -> None:
        """Poll and dispatch until ``stop`` is set.

        The update being handled when ``stop`` is set finishes first.
        """
        logger.info("Chat dispatcher started")
        offset: int | None = None
        delay = MIN_RETRY_DELAY

        while not stop.is_set():
            try:
                messages = await self._next_batch(offset, stop)
            except NotifyError as e:
                logger.warning(f"Polling chat updates failed, retrying in {delay:.0f}s: {e}")
                with suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                delay = min(delay * 2, MAX_RETRY_DELAY)
                continue

            if messages is None:
                break
            delay = MIN_RETRY_DELAY

            for message in messages:
                offset = message.update_id + 1
                await self.dispatch(message)

        logger.info("Chat dispatcher stopped")

    async def _next_batch(self, offset: int | None, stop: asyncio.Event) -> list[IncomingMessage] | None:
        """Wait for the next batch of updates; None when stopped first."""
        poll = asyncio.ensure_future(self.chat.get_updates(offset))
        stopped = asyncio.ensure_future(stop.wait())
        try:
            done, _ = await asyncio.wait({poll, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not poll.done():
                poll.cancel()

        if poll in done:
            return poll.result()
        with suppress(asyncio.CancelledError):
            await poll
        return None

    async def dispatch(self, message: IncomingMessage) -> None:
        if message.chat_id is None or message.text is None:
            return

        try:
            await self.engine.handle(message.chat_id, message.text)
        except NotifyError as e:
            logger.warning(f"chat {message.chat_id}: reply dropped: {e}")
        except ServiceError as e:
            logger.error(f"chat {message.chat_id}: command failed: {e.code}: {e.description}")
            try:
                await self.engine.invalid_command(message.chat_id)
            except NotifyError as reply_error:
                logger.warning(f"chat {message.chat_id}: reply dropped: {reply_error}")
        except Exception:
            logger.exception(f"chat {message.chat_id}: unexpected failure handling update {message.update_id}")
