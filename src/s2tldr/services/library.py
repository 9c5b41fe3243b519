"""SQLite-backed work library: bibliographic entries and their child notes."""

from __future__ import annotations

import asyncio
from typing import Iterable, Protocol

import structlog
from sqlalchemy import text
from sqlmodel import Session, select

from s2tldr.db import NoteRecord, WorkRecord, get_engine
from s2tldr.models import Note, Work
from s2tldr.settings import Settings
from s2tldr.utils import generate_key, is_valid_key, utcnow

logger = structlog.get_logger(__name__)

FIELD_NAMES = ("title", "abstractNote")


class LibraryError(LookupError):
    """Raised when a work or field cannot be found in the library."""


class WorkStore(Protocol):
    """What the resolution engine needs from the library holding works."""

    def get_field(self, work: Work, field: str) -> str:
        ...

    async def get_notes(self, work_key: str) -> list[str]:
        ...

    async def create_or_update_note(self, work_key: str, note_key: str | None, text: str) -> str:
        ...


class WorkLibrary(WorkStore):
    """Local library of works persisted with SQLModel."""

    def __init__(self, settings: Settings) -> None:
        settings.ensure_directories()
        self._engine = get_engine(str(settings.db_path))
        self._lock = asyncio.Lock()

    @property
    def engine(self):
        return self._engine

    def get_field(self, work: Work, field: str) -> str:
        if field == "title":
            return work.title or ""
        if field == "abstractNote":
            return work.abstract or ""
        raise LibraryError(f"Unknown field {field!r}; expected one of {', '.join(FIELD_NAMES)}")

    async def add_work(self, *, title: str, abstract: str | None = None, key: str | None = None) -> Work:
        if key is not None and not is_valid_key(key):
            raise ValueError(f"{key!r} is not a valid library key")
        async with self._lock:
            return await asyncio.to_thread(self._add_work_sync, title, abstract, key)

    async def get_work(self, key: str) -> Work | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_work_sync, key)

    async def require_work(self, key: str) -> Work:
        work = await self.get_work(key)
        if work is None:
            raise LibraryError(f"No work with key {key}")
        return work

    async def get_works(self, keys: Iterable[str]) -> list[Work]:
        """Return works for ``keys`` in the order given."""
        works = []
        for key in keys:
            works.append(await self.require_work(key))
        return works

    async def list_works(self) -> list[Work]:
        async with self._lock:
            return await asyncio.to_thread(self._list_works_sync)

    async def delete_works(self, keys: Iterable[str]) -> list[str]:
        async with self._lock:
            return await asyncio.to_thread(self._delete_works_sync, list(keys))

    async def get_notes(self, work_key: str) -> list[str]:
        async with self._lock:
            return await asyncio.to_thread(self._note_keys_sync, work_key)

    async def get_note(self, note_key: str) -> Note | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_note_sync, note_key)

    async def create_or_update_note(self, work_key: str, note_key: str | None, text: str) -> str:
        """Overwrite note ``note_key`` when it is a child of the work, otherwise create a new child note."""
        async with self._lock:
            return await asyncio.to_thread(self._save_note_sync, work_key, note_key, text)

    # Internal helpers -----------------------------------------------------

    def _add_work_sync(self, title: str, abstract: str | None, key: str | None) -> Work:
        with Session(self._engine, expire_on_commit=False) as session:
            if key is None:
                key = self._unused_key(session, WorkRecord)
            elif session.get(WorkRecord, key) is not None:
                raise ValueError(f"A work with key {key} already exists")
            record = WorkRecord(key=key, title=title, abstract=abstract or None)
            session.add(record)
            session.commit()
        logger.info("library.work_added", key=key)
        return self._record_to_work(record)

    def _get_work_sync(self, key: str) -> Work | None:
        with Session(self._engine) as session:
            record = session.get(WorkRecord, key)
            return self._record_to_work(record) if record else None

    def _list_works_sync(self) -> list[Work]:
        stmt = select(WorkRecord).order_by(text("workrecord.rowid"))
        with Session(self._engine) as session:
            records = session.exec(stmt).all()
        return [self._record_to_work(record) for record in records]

    def _delete_works_sync(self, keys: list[str]) -> list[str]:
        deleted: list[str] = []
        with Session(self._engine) as session:
            for key in keys:
                record = session.get(WorkRecord, key)
                if record is None:
                    continue
                notes = session.exec(select(NoteRecord).where(NoteRecord.parent_key == key)).all()
                for note in notes:
                    session.delete(note)
                session.delete(record)
                deleted.append(key)
            session.commit()
        if deleted:
            logger.info("library.works_deleted", keys=deleted)
        return deleted

    def _note_keys_sync(self, work_key: str) -> list[str]:
        stmt = (
            select(NoteRecord.key)
            .where(NoteRecord.parent_key == work_key)
            .order_by(text("noterecord.rowid"))
        )
        with Session(self._engine) as session:
            return list(session.exec(stmt).all())

    def _get_note_sync(self, note_key: str) -> Note | None:
        with Session(self._engine) as session:
            record = session.get(NoteRecord, note_key)
            return self._record_to_note(record) if record else None

    def _save_note_sync(self, work_key: str, note_key: str | None, body: str) -> str:
        with Session(self._engine, expire_on_commit=False) as session:
            if session.get(WorkRecord, work_key) is None:
                raise LibraryError(f"No work with key {work_key}")
            record = session.get(NoteRecord, note_key) if note_key else None
            if record is None or record.parent_key != work_key:
                record = NoteRecord(
                    key=self._unused_key(session, NoteRecord),
                    parent_key=work_key,
                    body=body,
                )
                logger.debug("library.note_created", work=work_key, note=record.key)
            else:
                record.body = body
                record.updated_at = utcnow()
                logger.debug("library.note_updated", work=work_key, note=record.key)
            session.add(record)
            session.commit()
            return record.key

    def _unused_key(self, session: Session, model) -> str:
        while True:
            key = generate_key()
            if session.get(model, key) is None:
                return key

    def _record_to_work(self, record: WorkRecord) -> Work:
        return Work(key=record.key, title=record.title or "", abstract=record.abstract)

    def _record_to_note(self, record: NoteRecord) -> Note:
        return Note(
            key=record.key,
            parent_key=record.parent_key,
            body=record.body,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
