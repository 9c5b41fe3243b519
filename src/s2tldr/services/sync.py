"""Keeps TL;DR outcomes in step with the work library as works come and go."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

from s2tldr.models import BatchSummary, Work
from s2tldr.settings import Settings
from .batch import BatchOrchestrator, EventCallback
from .library import WorkLibrary
from .outcomes import OutcomeStore

logger = structlog.get_logger(__name__)


class LibrarySync:
    """Reacts to library add/delete events and runs full-library sweeps."""

    def __init__(
        self,
        library: WorkLibrary,
        outcomes: OutcomeStore,
        orchestrator: BatchOrchestrator,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_event: EventCallback | None = None,
    ) -> None:
        self._library = library
        self._outcomes = outcomes
        self._orchestrator = orchestrator
        self._settle_delay = settings.add_settle_delay
        self._sleep = sleep
        self._on_event = on_event

    async def fetch_all(self, *, force: bool = False) -> BatchSummary:
        works = await self._library.list_works()
        return await self.update_items(works, force=force)

    async def update_items(self, works: Sequence[Work], *, force: bool = False) -> BatchSummary:
        pending = await self._orchestrator.select_pending(works, force=force)
        if not pending:
            logger.debug("sync.nothing_pending", candidates=len(works))
            return BatchSummary()
        return await self._orchestrator.process_queue(pending, on_event=self._on_event)

    async def on_items_added(self, keys: Iterable[str]) -> BatchSummary:
        keys = list(keys)
        if not keys:
            return BatchSummary()
        # Metadata of freshly added entries may still be filling in.
        await self._sleep(self._settle_delay)
        works = [work for work in [await self._library.get_work(key) for key in keys] if work]
        logger.info("sync.items_added", keys=keys, found=len(works))
        return await self.update_items(works)

    async def on_items_deleted(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        await self._outcomes.remove(keys)
        logger.info("sync.items_deleted", keys=keys)
