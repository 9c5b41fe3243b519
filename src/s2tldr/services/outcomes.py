"""Durable record of which works already have a TL;DR (or are known to lack one)."""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable

import structlog
from sqlmodel import Session, select

from s2tldr.db import OutcomeRecord
from s2tldr.models import NotFound, Resolved, ResolutionOutcome, Unresolved, Work
from s2tldr.utils import utcnow
from .library import WorkStore

logger = structlog.get_logger(__name__)

OutcomeMap = dict[str, ResolutionOutcome]


def format_tldr_note(tldr_text: str) -> str:
    return f"<p>TL;DR</p>\n<p>{tldr_text}</p>"


class OutcomeStore:
    """Maps work keys to resolution outcomes and owns the TL;DR note of each work.

    A work never gets more than one TL;DR note from this store: when a
    ``Resolved`` outcome points at a note that is still attached to the work,
    later commits rewrite that note instead of adding another.
    """

    def __init__(self, engine, library: WorkStore) -> None:
        self._engine = engine
        self._library = library
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> ResolutionOutcome:
        async with self._lock:
            return await asyncio.to_thread(self._get_sync, key)

    async def snapshot(self) -> OutcomeMap:
        async with self._lock:
            return await asyncio.to_thread(self._load_sync)

    async def modify(self, updater: Callable[[OutcomeMap], OutcomeMap]) -> None:
        """Apply ``updater`` to the whole mapping and store the result in one transaction."""
        async with self._lock:
            current = await asyncio.to_thread(self._load_sync)
            updated = updater(dict(current))
            await asyncio.to_thread(self._replace_sync, current, updated)

    async def commit_found(self, work: Work, tldr_text: str) -> str:
        existing = await self.get(work.key)
        reuse: str | None = None
        if isinstance(existing, Resolved):
            if existing.note_key in await self._library.get_notes(work.key):
                reuse = existing.note_key
            else:
                logger.info("outcomes.stale_note", work=work.key, note=existing.note_key)
        note_key = await self._library.create_or_update_note(work.key, reuse, format_tldr_note(tldr_text))

        def record(data: OutcomeMap) -> OutcomeMap:
            data[work.key] = Resolved(note_key)
            return data

        await self.modify(record)
        logger.info("outcomes.commit_found", work=work.key, note=note_key, reused=reuse is not None)
        return note_key

    async def commit_not_found(self, key: str) -> None:
        def record(data: OutcomeMap) -> OutcomeMap:
            data[key] = NotFound()
            return data

        await self.modify(record)
        logger.info("outcomes.commit_not_found", work=key)

    async def remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)

        def drop(data: OutcomeMap) -> OutcomeMap:
            for key in keys:
                data.pop(key, None)
            return data

        await self.modify(drop)
        logger.debug("outcomes.removed", works=keys)

    # Internal helpers -----------------------------------------------------

    def _get_sync(self, key: str) -> ResolutionOutcome:
        with Session(self._engine) as session:
            record = session.get(OutcomeRecord, key)
            return self._record_to_outcome(record) if record else Unresolved()

    def _load_sync(self) -> OutcomeMap:
        with Session(self._engine) as session:
            records = session.exec(select(OutcomeRecord)).all()
        return {record.work_key: self._record_to_outcome(record) for record in records}

    def _replace_sync(self, before: OutcomeMap, after: OutcomeMap) -> None:
        with Session(self._engine) as session:
            for key in before.keys() - after.keys():
                record = session.get(OutcomeRecord, key)
                if record is not None:
                    session.delete(record)
            for key, outcome in after.items():
                if isinstance(outcome, Unresolved):
                    record = session.get(OutcomeRecord, key)
                    if record is not None:
                        session.delete(record)
                    continue
                if before.get(key) == outcome:
                    continue
                record = session.get(OutcomeRecord, key) or OutcomeRecord(work_key=key)
                record.note_key = outcome.note_key if isinstance(outcome, Resolved) else None
                record.updated_at = utcnow()
                session.add(record)
            session.commit()

    def _record_to_outcome(self, record: OutcomeRecord) -> ResolutionOutcome:
        if record.note_key:
            return Resolved(record.note_key)
        return NotFound()
