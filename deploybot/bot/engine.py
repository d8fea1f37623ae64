"""Dialogue engine.

Responsibilities:
- Load the chat's ConversationState and pick the command vocabulary for it
- Run the command against the repo/job stores
- Store the next state, only after the store work it depends on committed
- Reply in the chat

Anything that is not a valid command for the current state gets the
invalid-command reply and leaves the state untouched.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from html import escape
from typing import AsyncGenerator, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deploybot.bot.commands import GENERAL_COMMANDS, REPO_COMMANDS, Command
from deploybot.bot.state import ConfiguringState, SelectedState, StartState
from deploybot.bot.storage import DialogueStorage
from deploybot.chat.base import ChatClient
from deploybot.config import Settings
from deploybot.database.models import utcnow
from deploybot.database.repositories import JobStore, RepoStore
from deploybot.database.session import Database
from deploybot.errors import StoreError
from deploybot.services.formatter import format_job_list, format_repo_info, format_repo_list


logger = logging.getLogger(__name__)

WELCOME_TEXT = "Let's start by configuring your first repo. Type /help for more info."
INVALID_COMMAND_TEXT = "Invalid command. See /help for more info."
REPO_NOT_FOUND_TEXT = "Requested repo does not exist."
NO_REPO_TEXT = "No repo configured. Type /help to get started."
NO_JOB_TODAY_TEXT = "No job started today. Start a job to see it here."
NO_RUNNING_JOB_TEXT = "No running job. Start a job to see it here."
NO_LATEST_JOB_TEXT = "No job yet. Start a job to see it here."
RENAMED_TEXT = "Successfully updated repo name."
DELETED_TEXT = "Successfully deleted repo."
DESELECTED_TEXT = "Repo deselected. Type /help for more info."
RESET_TEXT = "Successfully reset all state."

GeneralHandler = Callable[[int, ConfiguringState, Command], Awaitable[None]]
RepoHandler = Callable[[int, SelectedState, Command], Awaitable[None]]


class DialogueEngine:
    """Per-chat command state machine."""

    def __init__(
        self,
        db: Database,
        storage: DialogueStorage,
        chat: ChatClient,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.storage = storage
        self.chat = chat
        self.settings = settings
        self.clock = clock

        self._general: dict[str, GeneralHandler] = {
            "help": self._general_help,
            "list": self._list,
            "today": self._general_today,
            "create": self._create,
            "select_repo": self._select_repo,
            "reset": self._reset,
        }
        self._repo: dict[str, RepoHandler] = {
            "help": self._repo_help,
            "get_info": self._get_info,
            "today": self._repo_today,
            "running": self._running,
            "latest": self._latest,
            "rename": self._rename,
            "delete": self._delete,
            "cancel": self._cancel,
        }

    async def handle(self, chat_id: int, text: str) -> None:
        """Process one message from a chat."""
        state = await self.storage.get(chat_id)

        if isinstance(state, StartState):
            await self._start(chat_id)
            return

        if isinstance(state, ConfiguringState):
            command = GENERAL_COMMANDS.parse(text)
            if command is None:
                await self.invalid_command(chat_id)
                return
            logger.info(f"chat {chat_id}: /{command.name} in configuring state")
            await self._general[command.name](chat_id, state, command)
            return

        command = REPO_COMMANDS.parse(text)
        if command is None:
            await self.invalid_command(chat_id)
            return
        logger.info(f"chat {chat_id}: /{command.name} on repo {state.selected}")
        await self._repo[command.name](chat_id, state, command)

    async def invalid_command(self, chat_id: int) -> None:
        logger.info(f"invalid command: {chat_id}")
        await self.chat.send_message(chat_id, INVALID_COMMAND_TEXT)

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.db.session() as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError.from_exception(e) from e

    def _beginning_of_today(self) -> datetime:
        return self.clock().replace(hour=0, minute=0, second=0, microsecond=0)

    # =========================================================================
    # Start
    # =========================================================================

    async def _start(self, chat_id: int) -> None:
        await self.chat.send_message(chat_id, WELCOME_TEXT)
        await self.chat.set_commands_menu(chat_id)
        await self.storage.set(chat_id, ConfiguringState(repos=[]))

    # =========================================================================
    # Configuring
    # =========================================================================

    async def _general_help(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        await self.chat.send_message(chat_id, GENERAL_COMMANDS.descriptions())

    async def _list(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        async with self._session() as session:
            repos = await RepoStore(session).list_by_ids(state.repos)

        if not repos:
            await self.chat.send_message(chat_id, NO_REPO_TEXT)
            return
        await self.chat.send_message(chat_id, format_repo_list(repos))

    async def _general_today(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        async with self._session() as session:
            repos = await RepoStore(session).list_by_ids(state.repos)
            jobs = await JobStore(session).started_since(
                [repo.id for repo in repos], self._beginning_of_today()
            )

        if not jobs:
            await self.chat.send_message(chat_id, NO_JOB_TODAY_TEXT)
            return
        names = {repo.id: repo.name for repo in repos}
        await self.chat.send_message(chat_id, format_job_list("Jobs started today:", jobs, names))

    async def _create(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        name = str(command.argument)
        async with self._session() as session:
            repo = await RepoStore(session).create(
                name=name,
                chat_binding=chat_id,
                status=self.settings.default_repo_status,
            )

        await self.storage.set(chat_id, ConfiguringState(repos=[*state.repos, repo.id]))
        logger.info(f"chat {chat_id}: created repo {repo.id}")

        await self.chat.send_message(chat_id, f"Successfully added repo: {escape(name, quote=False)}")
        await self.chat.send_message(chat_id, f"key: <code>{repo.id}</code>")

    async def _select_repo(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        index = int(command.argument)
        if not 1 <= index <= len(state.repos):
            await self.chat.send_message(chat_id, REPO_NOT_FOUND_TEXT)
            return

        async with self._session() as session:
            repo = await RepoStore(session).get(state.repos[index - 1])

        if repo is None:
            await self.chat.send_message(chat_id, REPO_NOT_FOUND_TEXT)
            return

        await self.storage.set(chat_id, SelectedState(repos=state.repos, selected=repo.id))
        await self.chat.send_message(chat_id, f"Selected repo: {escape(repo.name, quote=False)}")

    async def _reset(self, chat_id: int, state: ConfiguringState, command: Command) -> None:
        async with self._session() as session:
            deleted = await RepoStore(session).delete_by_chat(chat_id)

        await self.storage.reset(chat_id)
        logger.info(f"chat {chat_id}: reset, deleted {len(deleted)} repo(s)")
        await self.chat.send_message(chat_id, RESET_TEXT)

    # =========================================================================
    # Selected
    # =========================================================================

    async def _repo_help(self, chat_id: int, state: SelectedState, command: Command) -> None:
        await self.chat.send_message(chat_id, REPO_COMMANDS.descriptions())

    async def _get_info(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            repo = await RepoStore(session).get(state.selected)

        if repo is None:
            await self.chat.send_message(chat_id, REPO_NOT_FOUND_TEXT)
            return
        await self.chat.send_message(chat_id, format_repo_info(repo))

    async def _repo_today(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            jobs = await JobStore(session).started_since([state.selected], self._beginning_of_today())

        if not jobs:
            await self.chat.send_message(chat_id, NO_JOB_TODAY_TEXT)
            return
        await self.chat.send_message(chat_id, format_job_list("Jobs started today:", jobs))

    async def _running(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            jobs = await JobStore(session).running(state.selected)

        if not jobs:
            await self.chat.send_message(chat_id, NO_RUNNING_JOB_TEXT)
            return
        await self.chat.send_message(chat_id, format_job_list("Running jobs:", jobs))

    async def _latest(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            job = await JobStore(session).latest(state.selected)

        if job is None:
            await self.chat.send_message(chat_id, NO_LATEST_JOB_TEXT)
            return
        await self.chat.send_message(chat_id, format_job_list("Latest job:", [job]))

    async def _rename(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            renamed = await RepoStore(session).rename(state.selected, str(command.argument))

        if not renamed:
            await self.chat.send_message(chat_id, REPO_NOT_FOUND_TEXT)
            return
        await self.chat.send_message(chat_id, RENAMED_TEXT)

    async def _delete(self, chat_id: int, state: SelectedState, command: Command) -> None:
        async with self._session() as session:
            await RepoStore(session).delete(state.selected)

        remaining = [repo_id for repo_id in state.repos if repo_id != state.selected]
        await self.storage.set(chat_id, ConfiguringState(repos=remaining))
        logger.info(f"chat {chat_id}: deleted repo {state.selected}")
        await self.chat.send_message(chat_id, DELETED_TEXT)

    async def _cancel(self, chat_id: int, state: SelectedState, command: Command) -> None:
        await self.storage.set(chat_id, ConfiguringState(repos=state.repos))
        await self.chat.send_message(chat_id, DESELECTED_TEXT)
        await self.chat.set_commands_menu(chat_id)
