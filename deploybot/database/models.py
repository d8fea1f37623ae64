"""SQLModel database tables.

Tables:
- Repo: a deployable unit, its opaque key and the chat it reports to
- Job: one deployment run of a repo
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from deploybot.schemas import DeployStatus


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in ``started_at``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Repo Model
# =============================================================================

class Repo(SQLModel, table=True):
    """A deployable unit bound to one chat.

    ``id`` doubles as the bearer credential CI uses to report jobs.
    """

    __tablename__ = "repos"

    id: str = Field(primary_key=True, description="Random UUID4 as 32 hex chars")
    name: str
    status: str = Field(default=DeployStatus.IDLE.value)
    chat_binding: int = Field(index=True, description="Chat that receives notifications")

    @property
    def deploy_status(self) -> DeployStatus:
        return DeployStatus(self.status)


# =============================================================================
# Job Model
# =============================================================================

class Job(SQLModel, table=True):
    """One deployment attempt belonging to a repo."""

    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_repo_status", "repo_id", "status"),
    )

    # ``id`` is only unique per repo by convention, so rows need their own key
    seq: Optional[int] = Field(default=None, primary_key=True)
    id: int = Field(index=True, description="Caller supplied job number")
    status: str = Field(default=DeployStatus.RUNNING.value)
    triggered_by: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    callback_url: Optional[str] = Field(default=None)
    repo_id: str = Field(foreign_key="repos.id", index=True)
    started_at: datetime = Field(default_factory=utcnow)
    elapsed: Optional[int] = Field(default=None, description="Seconds, set when the job leaves RUNNING")

    @property
    def deploy_status(self) -> DeployStatus:
        return DeployStatus(self.status)
