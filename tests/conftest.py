from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest

from deploybot.api.main import create_app
from deploybot.bot.engine import DialogueEngine
from deploybot.bot.storage import InMemoryDialogueStorage
from deploybot.chat.base import ChatClient, IncomingMessage
from deploybot.config import Settings
from deploybot.database.models import Job, Repo
from deploybot.database.repositories import JobStore, RepoStore
from deploybot.database.session import Database
from deploybot.errors import NotifyError
from deploybot.schemas import DeployStatus


CHAT_ID = 4242


class FakeChat(ChatClient):
    """Records outgoing messages; can be told to fail the next sends."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.menus: list[int] = []
        self.fail_sends = 0
        self.batches: list[list[IncomingMessage] | Exception] = []
        self.on_empty: Callable[[], None] | None = None

    async def send_message(self, chat_id: int, text: str) -> None:
        if self.fail_sends:
            self.fail_sends -= 1
            raise NotifyError("chat unavailable")
        self.sent.append((chat_id, text))

    async def set_commands_menu(self, chat_id: int) -> None:
        self.menus.append(chat_id)

    async def get_updates(self, offset: int | None = None) -> list[IncomingMessage]:
        await asyncio.sleep(0)
        if self.batches:
            batch = self.batches.pop(0)
            if isinstance(batch, Exception):
                raise batch
            return batch
        if self.on_empty is not None:
            self.on_empty()
        return []

    def texts(self, chat_id: int | None = None) -> list[str]:
        return [text for sent_to, text in self.sent if chat_id is None or sent_to == chat_id]


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'deploybot.db'}",
        telegram_bot_token="test-token",
        init_db_on_startup=False,
    )


@pytest.fixture
async def db(settings):
    database = Database.from_settings(settings)
    await database.init_db()
    yield database
    await database.close()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 18, 9, 30, 0))


@pytest.fixture
def make_client(settings, db, chat, clock):
    """Build an HTTP client for an app using the shared fakes and optional setting overrides."""

    def _make(**overrides) -> httpx.AsyncClient:
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        app = create_app(app_settings, db=db, chat=chat, clock=clock)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    return _make


@pytest.fixture
async def client(make_client):
    async with make_client() as http:
        yield http


@pytest.fixture
def engine(db, chat, settings, clock) -> DialogueEngine:
    return DialogueEngine(
        db=db,
        storage=InMemoryDialogueStorage(),
        chat=chat,
        settings=settings,
        clock=clock,
    )


async def create_repo(
    db: Database,
    name: str = "Foo",
    chat_binding: int = CHAT_ID,
    status: DeployStatus = DeployStatus.IDLE,
) -> Repo:
    async with db.session() as session:
        return await RepoStore(session).create(name=name, chat_binding=chat_binding, status=status)


async def get_repo(db: Database, repo_id: str) -> Repo | None:
    async with db.session() as session:
        return await RepoStore(session).get(repo_id)


async def create_job(db: Database, repo_id: str, job_id: int, started_at: datetime, **fields) -> Job:
    async with db.session() as session:
        return await JobStore(session).create(repo_id=repo_id, job_id=job_id, started_at=started_at, **fields)


async def get_job(db: Database, seq: int) -> Job | None:
    async with db.session() as session:
        return await JobStore(session).get(seq)


async def finish_job(db: Database, seq: int, status: DeployStatus, elapsed_seconds: int) -> None:
    async with db.session() as session:
        jobs = JobStore(session)
        await jobs.finish(await jobs.get(seq), status, elapsed_seconds)
