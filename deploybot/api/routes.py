"""FastAPI routes for the webhook API.

Endpoints:
- GET  /        - Liveness probe
- POST /        - Credential probe, always unauthenticated
- PUT  /status  - Report repo deployment status (query string)
- POST /job     - Report a new running job
- PUT  /job     - Report a job's final status

Authentication:
- Repo key in the credential header, resolved by SessionMiddleware
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from deploybot.api.deps import get_identity, get_job_service
from deploybot.api.middleware import Identity
from deploybot.errors import UnauthenticatedError
from deploybot.schemas import JobCreateRequest, JobUpdateRequest, RootResponse, StatusQuery
from deploybot.services.jobs import JobService


logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# Probes
# =============================================================================

@router.get("/", response_model=RootResponse)
async def root(request: Request) -> RootResponse:
    """Liveness probe."""
    settings = request.app.state.settings
    return RootResponse(name=settings.app_name, version=settings.app_version)


@router.post("/")
async def root_failure() -> None:
    """Always answers with the unauthenticated error body."""
    raise UnauthenticatedError()


# =============================================================================
# Webhooks
# =============================================================================

@router.put("/status")
async def update_status(
    query: Annotated[StatusQuery, Query()],
    identity: Identity = Depends(get_identity),
    service: JobService = Depends(get_job_service),
) -> dict:
    """Update the repo's deployment status and notify its chat."""
    repo = await service.update_repo_status(identity.repo_id, query)
    return {"repo": repo.name, "status": repo.deploy_status.value}


@router.post("/job")
async def create_job(
    body: JobCreateRequest,
    identity: Identity = Depends(get_identity),
    service: JobService = Depends(get_job_service),
) -> dict:
    """Record a new running job and notify the repo's chat."""
    job = await service.create_job(identity.repo_id, body)
    return {"job_id": job.id, "status": job.deploy_status.value}


@router.put("/job")
async def update_job(
    body: JobUpdateRequest,
    identity: Identity = Depends(get_identity),
    service: JobService = Depends(get_job_service),
) -> dict:
    """Finish the running job, notify the chat, then commit."""
    job = await service.update_job(identity.repo_id, body)
    return {"job_id": job.id, "status": job.deploy_status.value, "elapsed": job.elapsed}
