from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from ingestion.db.session import init_schema, session_scope


def init_db() -> None:
    init_schema()


def session_dependency() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session
