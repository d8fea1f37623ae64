"""Request pipeline stages.

Stages, outermost first:
- ResourceMiddleware: copies the shared database and chat handles from
  ``app.state`` onto each request
- SessionMiddleware: resolves the bearer credential header to a repo
  identity and attaches it as ``request.state.identity``

A missing credential is not an error here: the request carries an empty
identity and handlers that need one reject it themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from deploybot.database.repositories import RepoStore
from deploybot.errors import (
    ConfigurationError,
    CredentialParseError,
    NotFoundError,
    ServiceError,
    StoreError,
)


logger = logging.getLogger(__name__)

UnknownTokenPolicy = Literal["anonymous", "reject"]


@dataclass(frozen=True)
class Identity:
    """The repo a request is acting for; ``repo_id`` is None when anonymous."""
    repo_id: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.repo_id is not None


EMPTY_IDENTITY = Identity()


def attach_identity(request: Request, identity: Identity) -> None:
    """Attach an identity unless one is already present."""
    if getattr(request.state, "identity", None) is None:
        request.state.identity = identity


def parse_credential(value: str) -> str:
    """Parse a credential header value into a repo key.

    Accepts the bare key or ``Bearer <key>``. Keys are UUIDs; the canonical
    32-char hex form is returned.

    Raises:
        CredentialParseError: value is empty, not printable ASCII, or not a key
    """
    token = value.strip()
    scheme, _, rest = token.partition(" ")
    if scheme.lower() == "bearer" and rest.strip():
        token = rest.strip()

    if not token or not token.isascii() or not token.isprintable():
        raise CredentialParseError("credential header is not a printable ASCII string")

    try:
        return UUID(hex=token).hex
    except ValueError as e:
        raise CredentialParseError(f"credential is not a repo key: {e}") from e


class ResourceMiddleware(BaseHTTPMiddleware):
    """Attach long-lived shared handles to each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        app_state = request.app.state
        for name in ("db", "chat", "clock"):
            handle = getattr(app_state, name, None)
            if handle is not None:
                setattr(request.state, name, handle)
        return await call_next(request)


class SessionMiddleware(BaseHTTPMiddleware):
    """Resolve the credential header into an ``Identity``."""

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = "Authorization",
        unknown_token_policy: UnknownTokenPolicy = "anonymous",
    ):
        super().__init__(app)
        self.header_name = header_name
        self.unknown_token_policy = unknown_token_policy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            await self.authenticate(request)
        except ServiceError as e:
            return e.to_response()

        attach_identity(request, EMPTY_IDENTITY)
        return await call_next(request)

    async def authenticate(self, request: Request) -> None:
        db = getattr(request.state, "db", None)
        if db is None:
            raise ConfigurationError("database")

        raw = request.headers.get(self.header_name)
        if raw is None:
            return

        repo_key = parse_credential(raw)

        try:
            async with db.session() as session:
                repo = await RepoStore(session).get(repo_key)
        except SQLAlchemyError as e:
            raise StoreError.from_exception(e) from e

        if repo is None:
            if self.unknown_token_policy == "reject":
                raise NotFoundError("credential does not match any repo")
            logger.info("Credential does not match any repo, continuing unauthenticated")
            return

        attach_identity(request, Identity(repo_id=repo.id))
