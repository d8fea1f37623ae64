"""Database repositories for repos and jobs.

Each store wraps one ``AsyncSession``; transaction boundaries belong to the
caller, so a store never commits. Rows are never cached beyond the session
that loaded them.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from deploybot.database.models import Job, Repo, utcnow
from deploybot.schemas import DeployStatus


def new_repo_key() -> str:
    """Random 128-bit credential rendered as compact hex."""
    return uuid4().hex


class RepoStore:
    """Repository for repo rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, chat_binding: int, status: DeployStatus) -> Repo:
        repo = Repo(
            id=new_repo_key(),
            name=name,
            status=status.value,
            chat_binding=chat_binding,
        )
        self.session.add(repo)
        await self.session.flush()
        return repo

    async def get(self, repo_id: str) -> Repo | None:
        result = await self.session.execute(select(Repo).where(Repo.id == repo_id))
        return result.scalar_one_or_none()

    async def list_by_ids(self, repo_ids: list[str]) -> list[Repo]:
        """Return the repos in ``repo_ids`` order, skipping ids with no row."""
        if not repo_ids:
            return []
        result = await self.session.execute(select(Repo).where(col(Repo.id).in_(repo_ids)))
        by_id = {repo.id: repo for repo in result.scalars().all()}
        return [by_id[repo_id] for repo_id in repo_ids if repo_id in by_id]

    async def rename(self, repo_id: str, name: str) -> bool:
        result = await self.session.execute(
            update(Repo).where(col(Repo.id) == repo_id).values(name=name)
        )
        return result.rowcount > 0

    async def set_status(self, repo: Repo, status: DeployStatus) -> None:
        repo.status = status.value
        self.session.add(repo)
        await self.session.flush()

    async def delete(self, repo_id: str) -> int:
        """Delete a repo and its job history. Returns deleted repo rows."""
        await self.session.execute(delete(Job).where(col(Job.repo_id) == repo_id))
        result = await self.session.execute(delete(Repo).where(col(Repo.id) == repo_id))
        return result.rowcount

    async def delete_by_chat(self, chat_binding: int) -> list[str]:
        """Delete every repo bound to a chat. Returns the deleted ids."""
        result = await self.session.execute(
            select(Repo.id).where(Repo.chat_binding == chat_binding)
        )
        repo_ids = list(result.scalars().all())
        if repo_ids:
            await self.session.execute(delete(Job).where(col(Job.repo_id).in_(repo_ids)))
            await self.session.execute(delete(Repo).where(col(Repo.id).in_(repo_ids)))
        return repo_ids


class JobStore:
    """Repository for job rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        repo_id: str,
        job_id: int,
        triggered_by: str | None = None,
        description: str | None = None,
        callback_url: str | None = None,
        started_at: datetime | None = None,
    ) -> Job:
        job = Job(
            id=job_id,
            status=DeployStatus.RUNNING.value,
            triggered_by=triggered_by,
            description=description,
            callback_url=callback_url,
            repo_id=repo_id,
            started_at=started_at or utcnow(),
        )
        self.session.add(job)
        await self.session.flush()
        return job

    async def find_running(self, repo_id: str, job_id: int) -> Job | None:
        """Latest RUNNING row for ``job_id``, locked where the backend supports it."""
        result = await self.session.execute(
            select(Job)
            .where(Job.repo_id == repo_id)
            .where(Job.id == job_id)
            .where(Job.status == DeployStatus.RUNNING.value)
            .order_by(col(Job.started_at).desc(), col(Job.seq).desc())
            .limit(1)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def finish(self, job: Job, status: DeployStatus, elapsed_seconds: int) -> None:
        job.status = status.value
        job.elapsed = elapsed_seconds
        self.session.add(job)
        await self.session.flush()

    async def get(self, seq: int) -> Job | None:
        result = await self.session.execute(select(Job).where(Job.seq == seq))
        return result.scalar_one_or_none()

    async def running(self, repo_id: str) -> list[Job]:
        result = await self.session.execute(
            select(Job)
            .where(Job.repo_id == repo_id)
            .where(Job.status == DeployStatus.RUNNING.value)
            .order_by(col(Job.started_at))
        )
        return list(result.scalars().all())

    async def started_since(self, repo_ids: list[str], since: datetime) -> list[Job]:
        if not repo_ids:
            return []
        result = await self.session.execute(
            select(Job)
            .where(col(Job.repo_id).in_(repo_ids))
            .where(Job.started_at >= since)
            .order_by(col(Job.started_at))
        )
        return list(result.scalars().all())

    async def latest(self, repo_id: str) -> Job | None:
        result = await self.session.execute(
            select(Job)
            .where(Job.repo_id == repo_id)
            .order_by(col(Job.started_at).desc(), col(Job.seq).desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
