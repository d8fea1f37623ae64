"""Chat message formatting.

Pure functions only: the same inputs always give the same text. Messages
are sent with Telegram's HTML parse mode, so values interpolated into
markup are escaped. A caller supplied description is used verbatim.
"""

from __future__ import annotations

from datetime import timedelta
from html import escape
from typing import Iterable

from deploybot.database.models import Job, Repo
from deploybot.schemas import DeployStatus


HEADLINES: dict[DeployStatus, str] = {
    DeployStatus.RUNNING: "🚧 {repo}'s job is running...",
    DeployStatus.SUCCESS: "✅ {repo}'s job has completed",
    DeployStatus.FAILURE: "🚨 {repo}'s job encountered failure",
    DeployStatus.CANCELLED: "⛔️ {repo}'s job was cancelled",
}
IDLE_HEADLINE = "💤 {repo} is doing nothing"


def format_duration(elapsed: timedelta | int) -> str:
    """Render a duration in its largest whole unit.

    0-59s -> seconds, under an hour -> minutes, under a day -> hours,
    otherwise days. Negative durations (clock skew) render as 0 seconds.
    """
    if isinstance(elapsed, timedelta):
        seconds = int(elapsed.total_seconds())
    else:
        seconds = int(elapsed)
    seconds = max(seconds, 0)

    if seconds < 60:
        return f"{seconds} second(s)"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minute(s)"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour(s)"
    return f"{hours // 24} day(s)"


def _headline(repo_name: str, status: DeployStatus, previous_status: DeployStatus | None) -> str:
    repo = escape(repo_name, quote=False)
    if status is DeployStatus.IDLE:
        if previous_status is not DeployStatus.RUNNING:
            return IDLE_HEADLINE.format(repo=repo)
        return HEADLINES[DeployStatus.CANCELLED].format(repo=repo)
    return HEADLINES[status].format(repo=repo)


def format_notification(
    repo_name: str,
    status: DeployStatus,
    previous_status: DeployStatus | None = None,
    *,
    description: str | None = None,
    url: str | None = None,
    by: str | None = None,
    by_name: str | None = None,
    elapsed: timedelta | int | None = None,
) -> str:
    """Build the chat notification for a job or repo status change.

    Args:
        repo_name: Display name of the repo
        status: The new status
        previous_status: Status before the change; only decides between the
            "doing nothing" and "cancelled" wording for IDLE
        description: Replaces the generated headline when given, shown as plain text
        url: Pipeline link, appended as a ``link:`` line
        by: Profile URL of whoever triggered the job
        by_name: Display name of whoever triggered the job; the
            ``triggered by:`` line needs both ``by`` and ``by_name``
        elapsed: Set for update events only, appended as ``elapsed:``

    Returns:
        The message text, lines joined with newlines
    """
    headline = _headline(repo_name, status, previous_status)
    lines = [escape(description, quote=False) if description is not None else headline]

    if by and by_name:
        lines.append(f'triggered by: <a href="{escape(by)}">{escape(by_name, quote=False)}</a>')

    if url:
        lines.append(f'link: <a href="{escape(url)}">{escape(repo_name, quote=False)}</a>')

    if elapsed is not None:
        lines.append(f"elapsed: {format_duration(elapsed)}")

    return "\n".join(lines)


# =============================================================================
# Dialogue listings
# =============================================================================

def format_repo_list(repos: Iterable[Repo]) -> str:
    lines = ["Configured repos:"]
    for index, repo in enumerate(repos, 1):
        lines.append(f"{index}. {escape(repo.name, quote=False)} ({repo.deploy_status.value.lower()})")
    return "\n".join(lines)


def format_job(job: Job, repo_name: str | None = None) -> str:
    label = f"#{job.id}"
    if repo_name is not None:
        label = f"{escape(repo_name, quote=False)} {label}"
    text = f"{label}: {job.deploy_status.value.lower()}, started {job.started_at:%Y-%m-%d %H:%M:%S} UTC"
    if job.elapsed is not None:
        text += f", took {format_duration(job.elapsed)}"
    if job.triggered_by:
        text += f", by {escape(job.triggered_by, quote=False)}"
    return text


def format_job_list(title: str, jobs: Iterable[Job], repo_names: dict[str, str] | None = None) -> str:
    lines = [title]
    for job in jobs:
        name = repo_names.get(job.repo_id) if repo_names is not None else None
        lines.append(format_job(job, name))
    return "\n".join(lines)


def format_repo_info(repo: Repo) -> str:
    return (
        f"name: {escape(repo.name, quote=False)}\n"
        f"status: {repo.deploy_status.value.lower()}\n"
        f"key: <tg-spoiler>{repo.id}</tg-spoiler>"
    )
