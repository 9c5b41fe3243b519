"""SQLite persistence layer for s2tldr."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from sqlmodel import Field, SQLModel, create_engine

from s2tldr.utils import utcnow


class WorkRecord(SQLModel, table=True):
    """Bibliographic entry row."""

    key: str = Field(primary_key=True)
    title: str = Field(default="")
    abstract: str | None = None
    added_at: datetime = Field(default_factory=utcnow)


class NoteRecord(SQLModel, table=True):
    """Child note attached to a work."""

    key: str = Field(primary_key=True)
    parent_key: str = Field(index=True, foreign_key="workrecord.key")
    body: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OutcomeRecord(SQLModel, table=True):
    """Resolution outcome per work; a null note_key means nothing was found."""

    work_key: str = Field(primary_key=True)
    note_key: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)


def create_engine_for_path(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


@lru_cache(maxsize=4)
def get_engine(path_str: str):
    engine = create_engine_for_path(Path(path_str))
    init_db(engine)
    return engine
