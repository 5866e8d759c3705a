"""Database utilities shared by ingestion, analysis and the API."""

from .models import Base, ContentRecord, JobRun, JobStage, JobStatus, UserAccount  # noqa: F401
from .session import get_engine, get_sessionmaker, init_schema, session_scope  # noqa: F401

__all__ = [
    "Base",
    "ContentRecord",
    "JobRun",
    "JobStage",
    "JobStatus",
    "UserAccount",
    "get_engine",
    "get_sessionmaker",
    "init_schema",
    "session_scope",
]
