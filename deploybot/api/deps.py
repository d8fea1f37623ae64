"""FastAPI dependencies reading the per-request context."""

from __future__ import annotations

from fastapi import Depends, Request

from deploybot.api.middleware import Identity
from deploybot.chat.base import ChatClient
from deploybot.database.models import utcnow
from deploybot.database.session import Database
from deploybot.errors import ConfigurationError
from deploybot.services.jobs import JobService


def get_database(request: Request) -> Database:
    db = getattr(request.state, "db", None)
    if db is None:
        raise ConfigurationError("database")
    return db


def get_chat(request: Request) -> ChatClient:
    chat = getattr(request.state, "chat", None)
    if chat is None:
        raise ConfigurationError("chat client")
    return chat


def get_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise ConfigurationError("session")
    return identity


def get_job_service(
    request: Request,
    db: Database = Depends(get_database),
    chat: ChatClient = Depends(get_chat),
) -> JobService:
    clock = getattr(request.state, "clock", None) or utcnow
    return JobService(db=db, chat=chat, clock=clock)
