"""Service error taxonomy.

Every failure the service reports is a ``ServiceError`` subclass carrying an
HTTP status and a SCREAMING_SNAKE code. The API layer renders them as
``{"code": ..., "description": ...}``; the chat dispatcher logs them and
replies generically.
"""

from __future__ import annotations

import logging

from fastapi.responses import JSONResponse
from sqlalchemy.exc import NoResultFound, SQLAlchemyError

from deploybot.schemas import ErrorResponse


logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors surfaced to HTTP callers or chat users."""

    status_code: int = 500
    code: str = "INTERNAL_FAILURE"

    def __init__(self, description: str | None = None):
        self.description = description or self.default_description()
        super().__init__(self.description)

    def default_description(self) -> str:
        return self.code.replace("_", " ").lower()

    def to_response(self) -> JSONResponse:
        if self.status_code >= 500:
            logger.error(f"{self.code}: {self.description}")
        else:
            logger.warning(f"{self.code}: {self.description}")
        body = ErrorResponse(code=self.code, description=self.description)
        return JSONResponse(status_code=self.status_code, content=body.model_dump())


class UnauthenticatedError(ServiceError):
    status_code = 401
    code = "UNAUTHENTICATED"

    def default_description(self) -> str:
        return "bad credential"


class CredentialParseError(ServiceError):
    status_code = 400
    code = "CREDENTIAL_PARSE_ERROR"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(ServiceError):
    status_code = 422
    code = "VALIDATION_FAILURE"


class StoreError(ServiceError):
    status_code = 500
    code = "STORE_FAILURE"

    @classmethod
    def from_exception(cls, exc: SQLAlchemyError) -> ServiceError:
        """Classify a SQLAlchemy failure; an empty result becomes NotFoundError."""
        if isinstance(exc, NoResultFound):
            return NotFoundError("database returned zero rows, expecting one")
        return cls(f"database failure: {exc.__class__.__name__}: {exc}")


class NotifyError(ServiceError):
    status_code = 502
    code = "NOTIFY_FAILURE"


class NotifyTimeoutError(NotifyError):
    status_code = 408
    code = "CLIENT_TIMEOUT"


class ConfigurationError(ServiceError):
    status_code = 500
    code = "CONFIGURATION_FAILURE"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} middleware not set")
