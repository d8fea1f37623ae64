"""Pydantic schemas for the webhook contract.

These schemas define the strict contracts between:
- CI pipelines calling the webhook API
- The job service and the notification formatter
- Error responses returned to callers
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class DeployStatus(str, Enum):
    """Lifecycle status of a repo or a job.

    Jobs only use RUNNING, CANCELLED, SUCCESS and FAILURE. IDLE is a repo
    status. Values are stored upper-case; request bodies upper-case the
    incoming value, so the wire may send ``success`` or ``SUCCESS``.
    """
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    CANCELLED = "CANCELLED"


# =============================================================================
# Request Schemas
# =============================================================================

class _WebhookBody(BaseModel):
    """Base for webhook payloads: unknown fields rejected, blanks mean absent."""

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def _empty_string_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and value == "":
            return None
        return value

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _status_case_insensitive(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class JobCreateRequest(_WebhookBody):
    """POST /job payload."""
    job_id: int = Field(..., description="Caller supplied job number, unique per repo")
    url: str | None = Field(default=None, description="Link to the pipeline run")
    description: str | None = Field(default=None, description="Overrides the generated headline")
    by: str | None = Field(default=None, description="Profile URL of whoever triggered the job")
    by_name: str | None = Field(default=None, description="Display name of whoever triggered the job")


class JobUpdateRequest(_WebhookBody):
    """PUT /job payload."""
    job_id: int
    status: DeployStatus
    description: str | None = None
    by: str | None = None


class StatusQuery(_WebhookBody):
    """PUT /status query string."""
    status: DeployStatus
    url: str | None = None
    description: str | None = None
    by: str | None = None
    by_name: str | None = None


# =============================================================================
# Response Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Tagged error body returned for every failure."""
    code: str
    description: str


class RootResponse(BaseModel):
    name: str
    version: str
