from deploybot.database.models import Job, Repo, utcnow
from deploybot.database.repositories import JobStore, RepoStore
from deploybot.database.session import Database

__all__ = ["Database", "Job", "JobStore", "Repo", "RepoStore", "utcnow"]
