"""Webhook transaction handling.

Responsibilities:
- Turn authenticated CI webhook calls into repo/job mutations
- Send the matching chat notification
- Keep store writes, notification and commit in a fixed order

Ordering:
- create_job: insert, commit, then notify. A failed send is reported to the
  caller but the job row stays.
- update_job / update_repo_status: mutate, notify, then commit. A failed send
  rolls the transaction back, so the caller can retry and the job is still
  RUNNING with its original ``started_at``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from deploybot.chat.base import ChatClient
from deploybot.database.models import Job, Repo, utcnow
from deploybot.database.repositories import JobStore, RepoStore
from deploybot.database.session import Database
from deploybot.errors import NotFoundError, StoreError, UnauthenticatedError, ValidationError
from deploybot.schemas import DeployStatus, JobCreateRequest, JobUpdateRequest, StatusQuery
from deploybot.services.formatter import format_notification


logger = logging.getLogger(__name__)

JOB_FINAL_STATUSES = (DeployStatus.SUCCESS, DeployStatus.FAILURE, DeployStatus.CANCELLED)


def _require_identity(repo_id: str | None) -> str:
    if repo_id is None:
        raise UnauthenticatedError()
    return repo_id


class JobService:
    """Applies webhook calls to the store and mirrors them to the chat."""

    def __init__(
        self,
        db: Database,
        chat: ChatClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.chat = chat
        self.clock = clock

    async def create_job(self, repo_id: str | None, request: JobCreateRequest) -> Job:
        """Record a new RUNNING job and announce it."""
        repo_id = _require_identity(repo_id)

        try:
            async with self.db.session_maker() as session:
                async with session.begin():
                    repo = await RepoStore(session).get(repo_id)
                    if repo is None:
                        raise NotFoundError(f"repo {repo_id} not found")
                    job = await JobStore(session).create(
                        repo_id=repo_id,
                        job_id=request.job_id,
                        triggered_by=request.by_name,
                        description=request.description,
                        callback_url=request.url,
                        started_at=self.clock(),
                    )
                    repo_name, chat_binding = repo.name, repo.chat_binding
        except SQLAlchemyError as e:
            raise StoreError.from_exception(e) from e

        logger.info(f"Created job {request.job_id} for repo {repo_id}")

        text = format_notification(
            repo_name,
            DeployStatus.RUNNING,
            description=request.description,
            url=request.url,
            by=request.by,
            by_name=request.by_name,
        )
        await self.chat.send_message(chat_binding, text)
        return job

    async def update_job(self, repo_id: str | None, request: JobUpdateRequest) -> Job:
        """Move a RUNNING job to a final status; commit only once notified."""
        repo_id = _require_identity(repo_id)
        if request.status not in JOB_FINAL_STATUSES:
            raise ValidationError(
                f"invalid job status: {request.status.value}, "
                f"expecting one of {', '.join(s.value for s in JOB_FINAL_STATUSES)}"
            )

        try:
            async with self.db.session_maker() as session:
                async with session.begin():
                    repo = await RepoStore(session).get(repo_id)
                    if repo is None:
                        raise NotFoundError(f"repo {repo_id} not found")

                    jobs = JobStore(session)
                    job = await jobs.find_running(repo_id, request.job_id)
                    if job is None:
                        raise NotFoundError(f"no running job {request.job_id} for repo {repo_id}")

                    elapsed = self.clock() - job.started_at
                    await jobs.finish(job, request.status, max(int(elapsed.total_seconds()), 0))

                    text = format_notification(
                        repo.name,
                        request.status,
                        DeployStatus.RUNNING,
                        description=request.description,
                        url=job.callback_url,
                        by=request.by,
                        by_name=job.triggered_by,
                        elapsed=elapsed,
                    )
                    # a failed send propagates out of begin() and rolls back
                    await self.chat.send_message(repo.chat_binding, text)
        except SQLAlchemyError as e:
            raise StoreError.from_exception(e) from e

        logger.info(
            f"Job {request.job_id} of repo {repo_id} finished as {request.status.value} "
            f"after {job.elapsed}s"
        )
        return job

    async def update_repo_status(self, repo_id: str | None, query: StatusQuery) -> Repo:
        """Set a repo's deployment status; commit only once notified."""
        repo_id = _require_identity(repo_id)

        try:
            async with self.db.session_maker() as session:
                async with session.begin():
                    repos = RepoStore(session)
                    repo = await repos.get(repo_id)
                    if repo is None:
                        raise NotFoundError(f"repo {repo_id} not found")

                    previous_status = repo.deploy_status
                    await repos.set_status(repo, query.status)

                    text = format_notification(
                        repo.name,
                        query.status,
                        previous_status,
                        description=query.description,
                        url=query.url,
                        by=query.by,
                        by_name=query.by_name,
                    )
                    await self.chat.send_message(repo.chat_binding, text)
        except SQLAlchemyError as e:
            raise StoreError.from_exception(e) from e

        logger.info(
            f"Repo {repo_id} status {previous_status.value} -> {query.status.value}"
        )
        return repo
