"""CLI entrypoint (Typer).

Commands:
- `deploybot serve`: run the webhook API and the chat bot in one process
- `deploybot init-db`: create database tables
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
import uvicorn

from deploybot.api.main import create_app
from deploybot.bot.dispatcher import ChatDispatcher
from deploybot.bot.engine import DialogueEngine
from deploybot.bot.storage import get_dialogue_storage
from deploybot.chat.telegram import TelegramClient
from deploybot.config import Settings, get_settings
from deploybot.database.session import Database


logger = logging.getLogger(__name__)

app = typer.Typer(help="deploybot: CI/CD job notifications for Telegram chats.")


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _serve(settings: Settings) -> None:
    db = Database.from_settings(settings)
    chat = TelegramClient.from_settings(settings)
    storage = get_dialogue_storage(settings)

    # tables are created below, before either context starts
    api = create_app(settings.model_copy(update={"init_db_on_startup": False}), db=db, chat=chat)
    engine = DialogueEngine(db=db, storage=storage, chat=chat, settings=settings)
    dispatcher = ChatDispatcher(chat=chat, engine=engine)

    server = uvicorn.Server(
        uvicorn.Config(api, host=settings.api_host, port=settings.api_port, log_config=None)
    )
    stop = asyncio.Event()

    if settings.init_db_on_startup:
        await db.init_db()

    bot_task = asyncio.create_task(dispatcher.run(stop), name="chat dispatcher")

    def _on_bot_exit(task: asyncio.Task) -> None:
        # the bot is not meant to stop on its own; take the server down with it
        if not stop.is_set():
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Chat dispatcher crashed: {task.exception()!r}")
            server.should_exit = True

    bot_task.add_done_callback(_on_bot_exit)

    try:
        await server.serve()
    finally:
        logger.info(
            f"Performing graceful shutdown which may take up to {settings.shutdown_grace_seconds:.0f} seconds..."
        )
        stop.set()
        try:
            await asyncio.wait_for(bot_task, timeout=settings.shutdown_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("Chat dispatcher did not drain in time, cancelled")
        except Exception as e:
            logger.error(f"Chat dispatcher exited with error: {e!r}")

        await storage.close()
        await chat.close()
        await db.close()
        logger.info("Exiting...")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address, overrides API_HOST"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port, overrides API_PORT"),
):
    """Run the webhook API and the chat bot until interrupted."""
    settings = get_settings()
    overrides = {key: value for key, value in {"api_host": host, "api_port": port}.items() if value is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)

    _configure_logging(settings)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}...")
    asyncio.run(_serve(settings))


@app.command("init-db")
def init_db():
    """Create database tables."""
    settings = get_settings()
    _configure_logging(settings)

    async def _init() -> None:
        db = Database.from_settings(settings)
        try:
            await db.init_db()
        finally:
            await db.close()

    asyncio.run(_init())
    typer.echo(f"Initialized tables at {settings.database_url}")


if __name__ == "__main__":
    app()
